"""Validation for burst submissions: a whole reasoning chain in one call.

Validation is atomic: any error rejects the entire batch and nothing is
committed. Warnings never block acceptance.

Phases:
    1. basic        - goal length, batch size (early exit on failure)
    2. structure    - contiguous 1..N non-revision numbering, no duplicates,
                      revision targets / branch origins inside the batch
    3. content      - per-thought length bounds, running metrics
    4. stagnation   - mean Jaccard between consecutive thoughts (batch >= 3)
    5. quality      - low diversity / low confidence warnings
    6. consolidation (optional)
"""

from __future__ import annotations

from dataclasses import dataclass, field

from thoughtchain.tools.thought_graph import find_path_gaps
from thoughtchain.tools.thought_types import (
    BurstConsolidation,
    BurstMetrics,
    BurstThought,
    ThoughtExtension,
    ThoughtRecord,
)
from thoughtchain.utils.text_metrics import jaccard_similarity, word_entropy


@dataclass(frozen=True)
class BurstLimits:
    """Burst validation limits."""

    min_goal_length: int = 10
    min_thoughts: int = 1
    max_thoughts: int = 30
    min_thought_length: int = 50
    max_thought_length: int = 1000
    max_stagnation_score: float = 0.6
    min_stagnation_batch: int = 3
    min_avg_entropy: float = 0.25
    min_entropy_batch: int = 5
    min_avg_confidence: float = 4.0


BURST_LIMITS = BurstLimits()


@dataclass
class BurstValidationResult:
    """Outcome of burst validation; ``sorted_thoughts`` is set only on success."""

    passed: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    metrics: BurstMetrics = field(default_factory=BurstMetrics)
    sorted_thoughts: list[BurstThought] | None = None


class BurstValidator:
    """Stateless validator; returns prepared data for the engine to commit."""

    def __init__(self, limits: BurstLimits = BURST_LIMITS) -> None:
        self.limits = limits

    def validate(
        self,
        goal: str,
        thoughts: list[BurstThought],
        consolidation: BurstConsolidation | None = None,
    ) -> BurstValidationResult:
        limits = self.limits
        errors: list[str] = []
        warnings: list[str] = []

        # Phase 1: basic validation
        if not goal or len(goal.strip()) < limits.min_goal_length:
            errors.append(
                f"Goal is required and must be at least {limits.min_goal_length} characters"
            )
        if len(thoughts) < limits.min_thoughts:
            errors.append("At least 1 thought is required")
        elif len(thoughts) > limits.max_thoughts:
            errors.append(f"Too many thoughts: {len(thoughts)} > {limits.max_thoughts} max")

        if errors:
            return BurstValidationResult(passed=False, errors=errors, warnings=warnings)

        # Phase 2: structure
        sorted_thoughts = sorted(thoughts, key=lambda t: t.thought_number)
        errors.extend(self._check_numbering(sorted_thoughts))
        errors.extend(self._check_references(sorted_thoughts))

        # Phase 3: content quality
        total_length = 0
        total_entropy = 0.0
        confidences: list[float] = []
        for t in sorted_thoughts:
            length = len(t.thought)
            if length < limits.min_thought_length:
                errors.append(
                    f"#{t.thought_number} too short: {length} < {limits.min_thought_length}"
                )
            if length > limits.max_thought_length:
                warnings.append(
                    f"#{t.thought_number} truncated: {length} > {limits.max_thought_length}"
                )
            total_length += min(length, limits.max_thought_length)
            total_entropy += word_entropy(t.thought)
            if t.confidence is not None:
                confidences.append(t.confidence)

        # Phase 4: stagnation
        stagnation_score = 0.0
        if len(sorted_thoughts) >= limits.min_stagnation_batch:
            similarities = [
                jaccard_similarity(current.thought, previous.thought)
                for previous, current in zip(sorted_thoughts, sorted_thoughts[1:], strict=False)
            ]
            stagnation_score = sum(similarities) / len(similarities)
            if stagnation_score > limits.max_stagnation_score:
                errors.append(
                    f"Stagnation: {stagnation_score * 100:.0f}% similarity > "
                    f"{limits.max_stagnation_score * 100:.0f}%"
                )

        # Phase 5: quality warnings
        count = len(sorted_thoughts)
        avg_length = total_length / count
        avg_entropy = total_entropy / count
        avg_confidence = sum(confidences) / len(confidences) if confidences else 0.0

        if avg_entropy < limits.min_avg_entropy and count >= limits.min_entropy_batch:
            warnings.append(f"Low diversity: {avg_entropy:.2f} < {limits.min_avg_entropy}")
        if confidences and avg_confidence < limits.min_avg_confidence:
            warnings.append(
                f"Low confidence: {avg_confidence:.1f} < {limits.min_avg_confidence:g}"
            )

        # Phase 6: consolidation
        if consolidation is not None:
            self._check_consolidation(consolidation, sorted_thoughts, errors, warnings)

        metrics = BurstMetrics(
            avg_confidence=round(avg_confidence, 1),
            avg_entropy=round(avg_entropy, 2),
            avg_length=round(avg_length),
            stagnation_score=round(stagnation_score, 2),
            thought_count=count,
        )
        passed = not errors
        return BurstValidationResult(
            passed=passed,
            errors=errors,
            warnings=warnings,
            metrics=metrics,
            sorted_thoughts=sorted_thoughts if passed else None,
        )

    @staticmethod
    def _check_numbering(sorted_thoughts: list[BurstThought]) -> list[str]:
        errors: list[str] = []
        numbers = [t.thought_number for t in sorted_thoughts if not t.is_revision]

        seen: set[int] = set()
        duplicates: list[int] = []
        for n in numbers:
            if n in seen and n not in duplicates:
                duplicates.append(n)
            seen.add(n)
        if duplicates:
            errors.append(f"Duplicate thought numbers: {', '.join(map(str, duplicates))}")

        for expected, actual in enumerate(sorted(seen), start=1):
            if actual != expected:
                errors.append(f"Sequence break: expected thought #{expected}, got #{actual}")
                break
        return errors

    @staticmethod
    def _check_references(sorted_thoughts: list[BurstThought]) -> list[str]:
        errors: list[str] = []
        numbers = {t.thought_number for t in sorted_thoughts}
        for t in sorted_thoughts:
            if t.is_revision and t.revises_thought is None:
                errors.append(f"Revision #{t.thought_number} has no revisesThought")
            elif t.is_revision and t.revises_thought not in numbers:
                errors.append(
                    f"Revision #{t.thought_number} targets non-existent #{t.revises_thought}"
                )
            if t.branch_from_thought is not None and t.branch_from_thought not in numbers:
                errors.append(
                    f"Branch #{t.thought_number} from non-existent #{t.branch_from_thought}"
                )
        return errors

    @staticmethod
    def _check_consolidation(
        consolidation: BurstConsolidation,
        thoughts: list[BurstThought],
        errors: list[str],
        warnings: list[str],
    ) -> None:
        path = consolidation.winning_path
        numbers = {t.thought_number for t in thoughts}
        invalid_refs = [n for n in path if n not in numbers]
        if invalid_refs:
            errors.append(
                f"Invalid winning path references: {', '.join(map(str, invalid_refs))}"
            )
        else:
            records = [to_thought_record(t, len(thoughts), "") for t in thoughts]
            gaps = find_path_gaps(path, records)
            if gaps:
                rendered = ", ".join(f"#{prev}→#{cur}" for prev, cur in gaps)
                warnings.append(
                    f"Path gaps: {rendered}. Use branches or include intermediate thoughts."
                )

        if consolidation.verdict != "ready":
            return
        for number in path:
            thought = next((t for t in thoughts if t.thought_number == number), None)
            if thought is None or not thought.extensions:
                continue
            if any(e.impact == "blocker" for e in thought.extensions):
                revised = any(t.is_revision and t.revises_thought == number for t in thoughts)
                if not revised:
                    errors.append(f"Blocker in #{number} unresolved - cannot mark ready")


def to_thought_record(
    thought: BurstThought,
    total_thoughts: int,
    session_id: str,
    limits: BurstLimits = BURST_LIMITS,
) -> ThoughtRecord:
    """Convert a burst thought into a canonical stored record."""
    return ThoughtRecord(
        thought=thought.thought[: limits.max_thought_length],
        thought_number=thought.thought_number,
        total_thoughts=max(total_thoughts, thought.thought_number),
        next_thought_needed=thought.thought_number < total_thoughts,
        confidence=thought.confidence,
        sub_steps=thought.sub_steps,
        alternatives=thought.alternatives,
        is_revision=thought.is_revision,
        revises_thought=thought.revises_thought,
        branch_from_thought=thought.branch_from_thought,
        branch_id=thought.branch_id,
        session_id=session_id,
        extensions=[
            ThoughtExtension(type=e.type, content=e.content, impact=e.impact)
            for e in thought.extensions or []
        ],
    )
