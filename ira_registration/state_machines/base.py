"""
Base state machine class for flow state machines.

Provides structured transition logging, error bookkeeping and flow info
retrieval on top of python-statemachine.
"""

from typing import Any, Dict, Optional

import structlog
from statemachine import StateMachine


class FlowMachine(StateMachine):
    """
    Base class for flow state machines.

    Features:
    - Structured logging on every transition
    - error_code / error_message for the last failure surfaced to the user
    - get_flow_info() for render layers and operator tooling

    Subclasses keep their own context in ``context``; ``model`` belongs to
    python-statemachine and holds the persisted state value.
    """

    flow_name = "flow"

    def __init__(
        self,
        context: Optional[Dict[str, Any]] = None,
        start_value: Any = None,
        **kwargs
    ):
        """
        Initialize flow machine.

        Args:
            context: Free-form metadata included in logs and flow info
            start_value: State value to start from instead of the initial state
            **kwargs: Additional arguments passed to StateMachine
        """
        self.context: Dict[str, Any] = dict(context or {})
        self.logger = structlog.get_logger(__name__)
        self.error_code: Optional[str] = None
        self.error_message: Optional[str] = None
        super().__init__(start_value=start_value, **kwargs)

    @property
    def is_final(self) -> bool:
        return self.current_state.final

    def set_error(self, code: Optional[str], message: Optional[str]) -> None:
        self.error_code = code
        self.error_message = message

    def clear_error(self) -> None:
        self.set_error(None, None)

    def get_flow_info(self) -> Dict[str, Any]:
        """
        Returns current state + allowed events.

        Returns:
            Dict with state, allowed_events, metadata, and error info
        """
        return {
            "flow": self.flow_name,
            "state": self.current_state.id,
            "allowed_events": [e.id for e in self.allowed_events],
            "metadata": dict(self.context),
            "error_code": self.error_code,
            "error_message": self.error_message,
        }

    def on_transition(self, event: str, source, target):
        """Generic callback python-statemachine runs on every transition."""
        self.log_transition(str(event), source.id, target.id)

    def log_transition(self, event: str, from_state: str, to_state: str):
        """
        Log state transition with structured logging.

        Args:
            event: Event name that triggered transition
            from_state: Previous state
            to_state: New state
        """
        self.logger.info(
            "state_transition",
            flow=self.flow_name,
            transition_event=event,
            from_state=from_state,
            to_state=to_state,
            **self.context,
        )
