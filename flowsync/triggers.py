"""Keeping background triggers in line with the enabled flag of workflows.

Updates produce :class:`TriggerTransition` values as plain data; the hook is
only called afterwards by :func:`dispatch_transitions`, once the record
change has been committed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Protocol

from .contracts import WorkflowRecord
from .errors import TriggerHookFailed

logger = logging.getLogger(__name__)


class TriggerHook(Protocol):
    """Registers and tears down background triggers of workflows."""

    async def register_trigger(self, workflow_id: str, node: Dict[str, Any]) -> None:
        """Register the trigger described by ``node``."""

    async def cleanup_triggers(self, workflow_id: str) -> None:
        """Remove every trigger registered for ``workflow_id``."""


@dataclass(frozen=True)
class TriggerTransition:
    """Enabled state change of one workflow."""

    workflow_id: str
    enabled: bool
    trigger_node: Optional[Dict[str, Any]] = None


def detect_transition(
    before: Optional[WorkflowRecord], after: WorkflowRecord
) -> Optional[TriggerTransition]:
    """Return a transition when ``is_disabled`` differs between the versions."""
    if before is None or before.is_disabled == after.is_disabled:
        return None
    return TriggerTransition(
        workflow_id=after.id,
        enabled=not after.is_disabled,
        trigger_node=after.trigger_node(),
    )


async def dispatch_transitions(
    hook: TriggerHook, transitions: Iterable[TriggerTransition]
) -> Dict[str, str]:
    """Apply ``transitions`` through ``hook``.

    Disabling tears triggers down; enabling registers the trigger node when
    the workflow has one. Failures are logged and returned by workflow id,
    never raised.
    """
    failures: Dict[str, str] = {}
    for transition in transitions:
        try:
            if not transition.enabled:
                await hook.cleanup_triggers(transition.workflow_id)
            elif transition.trigger_node is not None:
                await hook.register_trigger(
                    transition.workflow_id, transition.trigger_node
                )
        except Exception as exc:
            error = TriggerHookFailed(transition.workflow_id, str(exc))
            logger.warning(f"Trigger hook failed: {error}")
            failures[transition.workflow_id] = str(error)
    return failures


class InMemoryTriggerRegistry:
    """Trigger hook that keeps registrations in memory."""

    def __init__(self) -> None:
        self.registered: Dict[str, Dict[str, Any]] = {}
        self.calls: List[tuple[str, str]] = []

    async def register_trigger(self, workflow_id: str, node: Dict[str, Any]) -> None:
        self.calls.append(("register", workflow_id))
        self.registered[workflow_id] = node

    async def cleanup_triggers(self, workflow_id: str) -> None:
        self.calls.append(("cleanup", workflow_id))
        self.registered.pop(workflow_id, None)
