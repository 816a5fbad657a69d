"""
Coach Command Parser
====================

The coach model embeds structured commands in its replies as fenced JSON:

    ```json
    {"action": "PROPOSE_PLAN", "plan": {...}}
    ```

    ```action
    {"action": "delete", "workout_ids": ["..."]}
    ```

This module extracts them, normalises the legacy plan shape
(`plan_ready` + `workouts` -> CREATE_PLAN) and strips the blocks from the
text shown to the athlete. Bad blocks are logged and kept as diagnostics,
never raised.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

PLACEHOLDER = "I've prepared changes based on our discussion. You can review them below."

COMMAND_BLOCK_RE = re.compile(r"```(?:json|action)\s*([\s\S]*?)\s*```")

LEGACY_PLAN_ACTION = "CREATE_PLAN"


@dataclass
class CommandDiagnostic:
    """A fenced block that did not yield a command."""
    block: str
    reason: str


@dataclass
class CommandExtraction:
    commands: List[Dict[str, Any]] = field(default_factory=list)
    diagnostics: List[CommandDiagnostic] = field(default_factory=list)

    @property
    def has_commands(self) -> bool:
        return bool(self.commands)


def extract_candidate_blocks(text: str) -> List[str]:
    """Bodies of every ```json / ```action fenced block, in order."""
    return COMMAND_BLOCK_RE.findall(text or "")


def _is_legacy_plan(parsed: Dict[str, Any]) -> bool:
    return bool(parsed.get("plan_ready") and parsed.get("workouts"))


def parse_commands(text: str) -> CommandExtraction:
    result = CommandExtraction()

    for block in extract_candidate_blocks(text):
        try:
            parsed = json.loads(block)
        except json.JSONDecodeError as e:
            logger.warning(f"Failed to parse JSON command: {e}")
            result.diagnostics.append(CommandDiagnostic(block=block, reason=f"invalid JSON: {e}"))
            continue

        if not isinstance(parsed, dict):
            result.diagnostics.append(CommandDiagnostic(block=block, reason="not a JSON object"))
            continue

        if parsed.get("action"):
            result.commands.append(parsed)
        elif _is_legacy_plan(parsed):
            result.commands.append({"action": LEGACY_PLAN_ACTION, **parsed})
        else:
            logger.info("Ignoring JSON block without an action")
            result.diagnostics.append(CommandDiagnostic(block=block, reason="no action"))

    return result


def parse_workout_plan(text: str) -> Optional[Dict[str, Any]]:
    """Legacy plan (`plan_ready` + `workouts`) from the first JSON block, if any."""
    blocks = extract_candidate_blocks(text)
    if not blocks:
        return None
    try:
        plan = json.loads(blocks[0])
    except json.JSONDecodeError as e:
        logger.warning(f"Failed to parse workout plan JSON: {e}")
        return None
    if isinstance(plan, dict) and _is_legacy_plan(plan):
        return plan
    return None


def clean_response_text(text: str, has_commands: bool) -> str:
    """Reply text without command blocks, for display."""
    display_text = COMMAND_BLOCK_RE.sub("", text or "").strip()
    if not display_text and has_commands:
        display_text = PLACEHOLDER
    return display_text
