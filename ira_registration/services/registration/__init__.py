from ira_registration.services.registration.agreements import build_agreements, set_acceptance
from ira_registration.services.registration.dashboard import (
    DashboardOverview,
    build_overview,
    load_overview,
    section_data,
    update_section,
)
from ira_registration.services.registration.draft_store import RegistrationDraftStore, sanitize_draft
from ira_registration.services.registration.step_validation import STEP_VALIDATORS, validate_step
from ira_registration.services.registration.wizard import RegistrationWizard, StepResult

__all__ = [
    "build_agreements",
    "set_acceptance",
    "DashboardOverview",
    "build_overview",
    "load_overview",
    "section_data",
    "update_section",
    "RegistrationDraftStore",
    "sanitize_draft",
    "STEP_VALIDATORS",
    "validate_step",
    "RegistrationWizard",
    "StepResult",
]
