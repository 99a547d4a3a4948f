"""Type definitions for thoughts, sessions and tool results.

All models serialize with camelCase aliases so the persisted session file
and tool payloads keep the wire field names (``thoughtNumber``,
``isRevision``, ``deadEnds`` ...). Python code uses snake_case names.
"""

from __future__ import annotations

import time
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def now_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(UTC).isoformat()


def now_ms() -> int:
    """Current epoch time in milliseconds."""
    return int(time.time() * 1000)


class WireModel(BaseModel):
    """Base model with camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        """Dump with camelCase keys, omitting unset optionals."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# =============================================================================
# Enums
# =============================================================================


class ExtensionType(str, Enum):
    """Kinds of deep-dive annotations attachable to a thought."""

    CRITIQUE = "critique"
    ELABORATION = "elaboration"
    CORRECTION = "correction"
    ALTERNATIVE_SCENARIO = "alternative_scenario"
    ASSUMPTION_TESTING = "assumption_testing"
    INNOVATION = "innovation"
    OPTIMIZATION = "optimization"
    POLISH = "polish"


class ImpactLevel(str, Enum):
    """How strongly an extension affects the final result."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    BLOCKER = "blocker"


ConsolidateVerdict = Literal["ready", "needs_more_work"]


# =============================================================================
# Thoughts
# =============================================================================


class ThoughtExtension(WireModel):
    """Typed annotation owned by exactly one thought."""

    type: ExtensionType
    content: str
    impact: ImpactLevel = ImpactLevel.MEDIUM
    timestamp: str = Field(default_factory=now_iso)

    @property
    def is_blocker(self) -> bool:
        return self.impact == ImpactLevel.BLOCKER

    @property
    def is_high_critique(self) -> bool:
        return self.impact == ImpactLevel.HIGH and self.type == ExtensionType.CRITIQUE

    @property
    def is_critical_critique(self) -> bool:
        """High or blocker impact critique."""
        return self.type == ExtensionType.CRITIQUE and self.impact in (
            ImpactLevel.HIGH,
            ImpactLevel.BLOCKER,
        )


class QuickExtension(WireModel):
    """Inline extension submitted together with a thought."""

    type: ExtensionType
    content: str
    impact: ImpactLevel = ImpactLevel.MEDIUM


class ThoughtInput(WireModel):
    """One thought as submitted by the caller."""

    thought: str
    next_thought_needed: bool = True
    thought_number: int = Field(ge=1)
    total_thoughts: int = Field(default=1, ge=1)
    is_revision: bool | None = None
    revises_thought: int | None = Field(default=None, ge=1)
    branch_from_thought: int | None = Field(default=None, ge=1)
    branch_id: str | None = None
    needs_more_thoughts: bool | None = None
    confidence: float | None = Field(default=None, ge=1, le=10)
    sub_steps: list[str] | None = Field(default=None, max_length=5)
    alternatives: list[str] | None = Field(default=None, max_length=5)
    goal: str | None = None
    quick_extension: QuickExtension | None = None


class ThoughtRecord(ThoughtInput):
    """A stored thought: input plus creation time, owning session and extensions."""

    timestamp: int = Field(default_factory=now_ms)
    session_id: str | None = None
    extensions: list[ThoughtExtension] = Field(default_factory=list)

    @property
    def is_branch(self) -> bool:
        return self.branch_from_thought is not None

    def has_revision_in(self, thoughts: list[ThoughtRecord]) -> bool:
        """True if any thought in ``thoughts`` revises this one."""
        return any(t.is_revision and t.revises_thought == self.thought_number for t in thoughts)


class DeadEnd(WireModel):
    """A reasoning path explicitly marked unsuccessful."""

    path: list[int]
    reason: str
    timestamp: str = Field(default_factory=now_iso)
    session_id: str | None = None


class SessionData(WireModel):
    """Persisted session snapshot."""

    history: list[ThoughtRecord] = Field(default_factory=list)
    branches: list[tuple[str, list[ThoughtRecord]]] = Field(default_factory=list)
    last_thought_number: int = 0
    saved_at: str = Field(default_factory=now_iso)
    goal: str | None = None
    current_session_id: str = ""
    dead_ends: list[DeadEnd] = Field(default_factory=list)


# =============================================================================
# Validation results
# =============================================================================


class ValidationResult(WireModel):
    """Outcome of a structural check; ``warning`` carries the message."""

    valid: bool
    warning: str | None = None


class PathConnectivityResult(WireModel):
    """Outcome of a path connectivity check."""

    valid: bool
    error: str | None = None
    disconnected_at: int | None = None


# =============================================================================
# Single-thought submission
# =============================================================================


class ThoughtSummary(WireModel):
    thought_number: int
    thought: str
    confidence: float | None = None


class ThinkingResult(WireModel):
    """Admission outcome of one submitted thought."""

    thought_number: int
    total_thoughts: int
    next_thought_needed: bool
    branches: list[str] = Field(default_factory=list)
    thought_history_length: int = 0
    context_summary: list[ThoughtSummary] = Field(default_factory=list)
    warning: str | None = None
    average_confidence: float | None = None
    system_advice: str | None = None
    session_goal: str | None = None
    is_error: bool = False
    error_message: str | None = None


class ExtendThoughtInput(WireModel):
    target_thought_number: int = Field(ge=1)
    extension_type: ExtensionType
    content: str
    impact_on_final_result: ImpactLevel = ImpactLevel.MEDIUM


class ExtendThoughtResult(WireModel):
    status: Literal["success", "error"]
    system_advice: str
    target_thought: str | None = None
    total_extensions_on_this_thought: int | None = None
    error_message: str | None = None


# =============================================================================
# Consolidation
# =============================================================================


class ConsolidateInput(WireModel):
    winning_path: list[int]
    summary: str
    verdict: ConsolidateVerdict
    constraint_check: str | None = None
    potential_flaws: str | None = None


class PathAnalysis(WireModel):
    total_thoughts: int = 0
    path_length: int = 0
    ignored_ratio: float = 0.0
    low_confidence_in_path: list[int] = Field(default_factory=list)
    unaddressed_blockers: list[int] = Field(default_factory=list)
    unaddressed_critical: list[int] = Field(default_factory=list)
    disconnected_at: list[int] | None = None


class ConsolidateResult(WireModel):
    status: Literal["success", "error"]
    evaluation: str
    warnings: list[str] = Field(default_factory=list)
    can_proceed_to_final_answer: bool = False
    path_analysis: PathAnalysis = Field(default_factory=PathAnalysis)
    error_message: str | None = None


# =============================================================================
# Burst submission
# =============================================================================


class BurstThought(WireModel):
    """One thought inside a burst submission."""

    thought_number: int = Field(ge=1)
    thought: str = Field(min_length=1)
    confidence: float | None = Field(default=None, ge=1, le=10)
    sub_steps: list[str] | None = Field(default=None, max_length=5)
    alternatives: list[str] | None = Field(default=None, max_length=5)
    is_revision: bool | None = None
    revises_thought: int | None = Field(default=None, ge=1)
    branch_from_thought: int | None = Field(default=None, ge=1)
    branch_id: str | None = None
    extensions: list[QuickExtension] | None = None


class BurstConsolidation(WireModel):
    winning_path: list[int]
    summary: str
    verdict: ConsolidateVerdict


class BurstMetrics(WireModel):
    avg_confidence: float = 0.0
    avg_entropy: float = 0.0
    avg_length: int = 0
    stagnation_score: float = 0.0
    thought_count: int = 0


class BurstValidation(WireModel):
    passed: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class BurstResult(WireModel):
    status: Literal["accepted", "rejected"]
    session_id: str = ""
    thoughts_processed: int = 0
    metrics: BurstMetrics = Field(default_factory=BurstMetrics)
    validation: BurstValidation
