"""
State machine infrastructure for the registration wizard.

This package provides the base flow machine and the ten-step registration
flow with its absorbing complete / session-expired states.
"""

from .base import FlowMachine
from .registration_flow import COMPLETE, SESSION_EXPIRED, RegistrationFlowMachine

__all__ = ["FlowMachine", "RegistrationFlowMachine", "COMPLETE", "SESSION_EXPIRED"]
