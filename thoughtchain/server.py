"""ThoughtChain MCP Server.

FastMCP implementation exposing the sequential-thinking engine.
The calling LLM does all reasoning; these tools record, validate and audit
the chain of thoughts.

Tools:
1. sequentialthinking - Submit one thought (revisions and branches included)
2. extend_thought - Attach a critique/elaboration/... to an earlier thought
3. consolidate_and_verify - Audit a winning path before the final answer
4. submit_thinking_session - Submit a whole chain at once (atomic)
5. reset_session - Clear the current session
6. get_dead_ends - List paths rejected in this session

Run with: thoughtchain
Or: python -m thoughtchain.server
"""

# Note: We intentionally do NOT use `from __future__ import annotations` here
# because it causes issues with Pydantic/FastMCP type resolution at decorator time.

from typing import Any, Literal

import orjson
from dotenv import load_dotenv
from fastmcp import FastMCP
from loguru import logger
from pydantic import ValidationError

from thoughtchain.config import get_config
from thoughtchain.tools.thinking import get_engine
from thoughtchain.tools.thought_types import BurstConsolidation, BurstThought
from thoughtchain.utils.errors import ThoughtChainException, ToolExecutionError
from thoughtchain.utils.logging import configure_logging, tool_context

# Load environment variables from .env file (for local development)
load_dotenv()


def _json(data: dict[str, Any] | list[Any] | None, *, indent: bool = True) -> str:
    """Serialize data to JSON string with proper typing.

    Type-safe wrapper around orjson.dumps that returns str.
    """
    if data is None:
        data = {}
    opts = orjson.OPT_INDENT_2 if indent else 0
    result: bytes = orjson.dumps(data, option=opts, default=str)
    return result.decode("utf-8")


def _validation_error(tool_name: str, error: ValidationError) -> str:
    details = {
        "errors": [
            {"loc": ".".join(str(p) for p in e["loc"]), "msg": e["msg"]} for e in error.errors()
        ]
    }
    logger.warning(f"Invalid input for {tool_name}: {error.error_count()} error(s)")
    return _json(ToolExecutionError(tool_name, "Invalid input", details).to_dict(), indent=False)


def _tool_error(tool_name: str, error: Exception) -> str:
    logger.error(f"{tool_name} failed: {error}")
    details = {} if isinstance(error, ThoughtChainException) else {"type": type(error).__name__}
    return _json(ToolExecutionError(tool_name, str(error), details).to_dict(), indent=False)


mcp = FastMCP(
    name=get_config().server.name,
    instructions="""ThoughtChain MCP Server - Sequential thinking with structural guard rails.

You (the LLM) do ALL reasoning. These tools RECORD, VALIDATE and AUDIT your chain.

WORKFLOW:
1. sequentialthinking(thought, thought_number=1, total_thoughts=N, goal=...)
2. sequentialthinking(..., thought_number=2, ...) - one step at a time, no skipping
   - is_revision + revises_thought to fix an earlier step
   - branch_from_thought + branch_id to explore an alternative
3. extend_thought(target_thought_number, extension_type, content, impact) for critique
4. consolidate_and_verify(winning_path, summary, verdict) before the final answer

BURST MODE:
submit_thinking_session(goal, thoughts=[...], consolidation?) validates the whole
chain at once; any error rejects everything.

Thought #1 (not a revision) always starts a new session.
""",
)


# =============================================================================
# TOOL 1: SEQUENTIAL THINKING
# =============================================================================


@mcp.tool
async def sequentialthinking(
    thought: str,
    thought_number: int,
    total_thoughts: int,
    next_thought_needed: bool = True,
    is_revision: bool | None = None,
    revises_thought: int | None = None,
    branch_from_thought: int | None = None,
    branch_id: str | None = None,
    needs_more_thoughts: bool | None = None,
    confidence: float | None = None,
    sub_steps: list[str] | None = None,
    alternatives: list[str] | None = None,
    goal: str | None = None,
    quick_extension: dict[str, Any] | None = None,
) -> str:
    """Record one reasoning step.

    Steps must arrive in order (1, 2, 3, ...). Revisions and branch
    continuations may refer back to any existing step of the session.

    Args:
        thought: Content of this reasoning step (required)
        thought_number: Position of this step, starting at 1
        total_thoughts: Current estimate of total steps (raised automatically)
        next_thought_needed: False when this is the last step
        is_revision: True if this step revises an earlier one
        revises_thought: Number of the step being revised
        branch_from_thought: Step this branch forks from
        branch_id: Name of the branch
        needs_more_thoughts: True if the estimate turned out too low
        confidence: Self-assessed confidence 1-10
        sub_steps: Up to 5 sub-steps of this step
        alternatives: Up to 5 alternatives considered
        goal: Session goal (read from thought #1)
        quick_extension: Inline extension {type, content, impact}

    Returns:
        JSON with admission outcome, warnings, context summary and confidence

    """
    engine = get_engine()
    with tool_context("sequentialthinking", engine.session_id):
        try:
            result = engine.submit_thought(
                {
                    "thought": thought,
                    "thought_number": thought_number,
                    "total_thoughts": total_thoughts,
                    "next_thought_needed": next_thought_needed,
                    "is_revision": is_revision,
                    "revises_thought": revises_thought,
                    "branch_from_thought": branch_from_thought,
                    "branch_id": branch_id,
                    "needs_more_thoughts": needs_more_thoughts,
                    "confidence": confidence,
                    "sub_steps": sub_steps,
                    "alternatives": alternatives,
                    "goal": goal,
                    "quick_extension": quick_extension,
                }
            )
            return _json(result.to_wire())
        except ValidationError as e:
            return _validation_error("sequentialthinking", e)
        except ThoughtChainException as e:
            return _tool_error("sequentialthinking", e)


# =============================================================================
# TOOL 2: EXTEND THOUGHT
# =============================================================================


@mcp.tool
async def extend_thought(
    target_thought_number: int,
    extension_type: Literal[
        "critique",
        "elaboration",
        "correction",
        "alternative_scenario",
        "assumption_testing",
        "innovation",
        "optimization",
        "polish",
    ],
    content: str,
    impact_on_final_result: Literal["low", "medium", "high", "blocker"] = "medium",
) -> str:
    """Attach a deep-dive annotation to an existing thought of this session.

    High or blocker critiques must be resolved with a revision before
    consolidation can succeed.

    Args:
        target_thought_number: Thought to extend
        extension_type: Kind of annotation
        content: The annotation text
        impact_on_final_result: low, medium, high or blocker

    Returns:
        JSON with status, advice and the number of extensions on the target

    """
    engine = get_engine()
    with tool_context("extend_thought", engine.session_id):
        try:
            result = engine.extend_thought(
                {
                    "target_thought_number": target_thought_number,
                    "extension_type": extension_type,
                    "content": content,
                    "impact_on_final_result": impact_on_final_result,
                }
            )
            return _json(result.to_wire())
        except ValidationError as e:
            return _validation_error("extend_thought", e)
        except ThoughtChainException as e:
            return _tool_error("extend_thought", e)


# =============================================================================
# TOOL 3: CONSOLIDATE AND VERIFY
# =============================================================================


@mcp.tool
async def consolidate_and_verify(
    winning_path: list[int],
    summary: str,
    verdict: Literal["ready", "needs_more_work"],
    constraint_check: str | None = None,
    potential_flaws: str | None = None,
) -> str:
    """Audit the chosen chain of thoughts before giving the final answer.

    A "needs_more_work" verdict records the path as a dead end, so later
    thoughts heading the same way get a warning.

    Args:
        winning_path: Thought numbers forming the final reasoning path
        summary: Synthesis of the path
        verdict: "ready" or "needs_more_work"
        constraint_check: How the path satisfies the problem constraints
        potential_flaws: Known weaknesses of the path

    Returns:
        JSON with evaluation, warnings, can_proceed_to_final_answer and path analysis

    """
    engine = get_engine()
    with tool_context("consolidate_and_verify", engine.session_id):
        try:
            result = engine.consolidate(
                {
                    "winning_path": winning_path,
                    "summary": summary,
                    "verdict": verdict,
                    "constraint_check": constraint_check,
                    "potential_flaws": potential_flaws,
                }
            )
            return _json(result.to_wire())
        except ValidationError as e:
            return _validation_error("consolidate_and_verify", e)
        except ThoughtChainException as e:
            return _tool_error("consolidate_and_verify", e)


# =============================================================================
# TOOL 4: BURST SESSION
# =============================================================================


@mcp.tool
async def submit_thinking_session(
    goal: str,
    thoughts: list[dict[str, Any]],
    consolidation: dict[str, Any] | None = None,
) -> str:
    """Submit a complete reasoning chain in one call.

    Validation is all-or-nothing: on any error nothing is stored and the
    whole session must be resubmitted.

    Args:
        goal: Session goal (at least 10 characters)
        thoughts: 1-30 thoughts, each {thoughtNumber, thought, confidence?,
            subSteps?, alternatives?, isRevision?, revisesThought?,
            branchFromThought?, branchId?, extensions?}
        consolidation: Optional {winningPath, summary, verdict}

    Returns:
        JSON with status (accepted/rejected), session id, metrics and validation

    """
    engine = get_engine()
    with tool_context("submit_thinking_session", engine.session_id):
        try:
            batch = [BurstThought.model_validate(t) for t in thoughts]
            final = (
                BurstConsolidation.model_validate(consolidation)
                if consolidation is not None
                else None
            )
            result = engine.submit_batch(goal, batch, final)
            return _json(result.to_wire())
        except ValidationError as e:
            return _validation_error("submit_thinking_session", e)
        except ThoughtChainException as e:
            return _tool_error("submit_thinking_session", e)


# =============================================================================
# TOOL 5-6: SESSION MANAGEMENT
# =============================================================================


@mcp.tool
async def reset_session() -> str:
    """Clear all thoughts, branches, dead ends and the goal of the current session.

    Returns:
        JSON with clearedThoughts and clearedBranches counts

    """
    engine = get_engine()
    with tool_context("reset_session", engine.session_id):
        return _json(engine.reset_session())


@mcp.tool
async def get_dead_ends() -> str:
    """List reasoning paths rejected in the current session.

    Returns:
        JSON with count and the dead ends (path, reason, timestamp)

    """
    engine = get_engine()
    dead_ends = engine.get_dead_ends()
    return _json({"count": len(dead_ends), "deadEnds": [d.to_wire() for d in dead_ends]})


# =============================================================================
# Entry point
# =============================================================================


def main() -> None:
    """Run the ThoughtChain MCP server."""
    configure_logging()
    config = get_config()
    server = config.server
    logger.info(f"Starting {server.name} (transport: {server.transport})")
    logger.debug(f"Configuration: {config.to_dict()}")

    engine = get_engine()
    if engine.load_session():
        logger.info(f"Resumed session with {len(engine.store)} thoughts")

    try:
        if server.transport == "stdio":
            mcp.run(transport="stdio")
        elif server.transport == "http":
            mcp.run(transport="streamable-http", host=server.host, port=server.port)
        else:
            mcp.run(transport="sse", host=server.host, port=server.port)
    finally:
        engine.flush()
        engine.close()


if __name__ == "__main__":
    main()
