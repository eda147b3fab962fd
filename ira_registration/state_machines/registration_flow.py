"""
Registration Flow State Machine.

Ten linear steps plus two absorbing states:
- complete: final submission accepted
- session_expired: the server no longer recognises the session id

Movement rules:
- advance: step n -> n+1, only after the active step validated and saved
- back: step n -> n-1, no network, no validation
- resume: step 1 -> step n (or complete) when server progress says so
- finish: step 10 -> complete
- expire: any step -> session_expired
"""

from typing import Any, Dict, Optional

import structlog
from statemachine import State

from .base import FlowMachine

logger = structlog.get_logger(__name__)

COMPLETE = "complete"
SESSION_EXPIRED = "session_expired"


class RegistrationFlowMachine(FlowMachine):
    """State machine for the IRA onboarding wizard."""

    flow_name = "registration"

    step_1 = State("Welcome & Account Creation", value=1, initial=True)
    step_2 = State("Personal & Identity Information", value=2)
    step_3 = State("Identity Verification (KYC/AML)", value=3)
    step_4 = State("Employment & Financial Profile", value=4)
    step_5 = State("IRA Type & Purpose", value=5)
    step_6 = State("Beneficiaries", value=6)
    step_7 = State("Funding Method", value=7)
    step_8 = State("Investment Preferences & Risk", value=8)
    step_9 = State("Agreements & Signature", value=9)
    step_10 = State("Security Setup & Confirmation", value=10)
    complete = State("Registration Complete", value=COMPLETE, final=True)
    session_expired = State("Session Expired", value=SESSION_EXPIRED, final=True)

    advance = (
        step_1.to(step_2)
        | step_2.to(step_3)
        | step_3.to(step_4)
        | step_4.to(step_5)
        | step_5.to(step_6)
        | step_6.to(step_7)
        | step_7.to(step_8)
        | step_8.to(step_9)
        | step_9.to(step_10)
    )

    back = (
        step_2.to(step_1)
        | step_3.to(step_2)
        | step_4.to(step_3)
        | step_5.to(step_4)
        | step_6.to(step_5)
        | step_7.to(step_6)
        | step_8.to(step_7)
        | step_9.to(step_8)
        | step_10.to(step_9)
    )

    resume = step_1.to(
        step_2, step_3, step_4, step_5, step_6, step_7, step_8, step_9, step_10, complete,
        cond="is_resume_target",
    )

    finish = step_10.to(complete)

    expire = (
        step_1.to(session_expired)
        | step_2.to(session_expired)
        | step_3.to(session_expired)
        | step_4.to(session_expired)
        | step_5.to(session_expired)
        | step_6.to(session_expired)
        | step_7.to(session_expired)
        | step_8.to(session_expired)
        | step_9.to(session_expired)
        | step_10.to(session_expired)
    )

    def __init__(self, context: Optional[Dict[str, Any]] = None, start_step: Any = None, **kwargs):
        """
        Initialize registration flow machine.

        Args:
            context: Metadata for logs (never identifiers or PII)
            start_step: Step number, "complete" or "session_expired" to start from
        """
        super().__init__(context=context, start_value=start_step, **kwargs)

    @property
    def current_step(self) -> Optional[int]:
        """Active step number, or None once absorbed."""
        value = self.current_state.value
        return value if isinstance(value, int) else None

    def is_resume_target(self, target: State, step: Any = None, completed: bool = False) -> bool:
        """Guard: pick the resume target matching the server's progress."""
        if completed:
            return target.value == COMPLETE
        return target.value == step

    def on_enter_complete(self):
        logger.info("registration_flow_completed", **self.context)

    def on_enter_session_expired(self):
        logger.warning("registration_flow_session_expired", **self.context)
