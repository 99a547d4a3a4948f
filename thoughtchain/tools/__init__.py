"""ThoughtChain reasoning tools - validation and auditing of thought chains."""

from .burst import BURST_LIMITS, BurstValidator
from .consolidation import consolidate
from .stagnation import detect_stagnation, stagnation_threshold
from .thought_graph import FollowGraph, find_path_gaps, validate_path_connectivity
from .thought_types import (
    BurstResult,
    ConsolidateInput,
    ConsolidateResult,
    DeadEnd,
    ExtensionType,
    ImpactLevel,
    SessionData,
    ThinkingResult,
    ThoughtExtension,
    ThoughtInput,
    ThoughtRecord,
)
from .validation import check_duplicate, validate_branch_source, validate_sequence

__all__ = [
    # Burst
    "BURST_LIMITS",
    "BurstValidator",
    # Consolidation
    "consolidate",
    # Stagnation
    "detect_stagnation",
    "stagnation_threshold",
    # Connectivity
    "FollowGraph",
    "find_path_gaps",
    "validate_path_connectivity",
    # Types
    "BurstResult",
    "ConsolidateInput",
    "ConsolidateResult",
    "DeadEnd",
    "ExtensionType",
    "ImpactLevel",
    "SessionData",
    "ThinkingResult",
    "ThoughtExtension",
    "ThoughtInput",
    "ThoughtRecord",
    # Validation
    "check_duplicate",
    "validate_branch_source",
    "validate_sequence",
]
