"""
Post-registration dashboard: application status and per-section editing.

Sections are read from the server progress record; edits are validated
with the same step rules as the wizard and saved to the step's endpoint.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, NamedTuple, Optional

import structlog

from ira_registration.core.exceptions import StepValidationError
from ira_registration.domain.schemas import RegistrationProgress, StepPayload
from ira_registration.domain.steps import get_step, step_for_payload
from ira_registration.infrastructure.registration_client import STEP_ENDPOINTS, RegistrationClient
from ira_registration.services.registration.step_validation import validate_step

logger = structlog.get_logger(__name__)


class DashboardSection(NamedTuple):
    step: int
    label: str
    description: str
    data_key: str


DASHBOARD_SECTIONS = (
    DashboardSection(2, "Personal & Address", "Name, DOB, contact, address", "personalInfo"),
    DashboardSection(3, "Identity (KYC)", "Government ID and verification", "kycIdentity"),
    DashboardSection(4, "Employment & Financial", "Employment and income", "employmentFinancial"),
    DashboardSection(5, "IRA Type", "IRA type and purpose", "iraType"),
    DashboardSection(6, "Beneficiaries", "Primary and contingent", "beneficiaries"),
    DashboardSection(7, "Funding Method", "Transfer, rollover, or contribution", "fundingMethod"),
    DashboardSection(8, "Investments & Risk", "Asset types and acknowledgments", "investmentPreferences"),
    DashboardSection(9, "Agreements & Signature", "Documents and e-signature", "agreements"),
    DashboardSection(10, "Security & 2FA", "Two-factor authentication", "securitySetup"),
)


@dataclass
class SectionStatus:
    step: int
    label: str
    description: str
    saved: bool
    editable: bool


@dataclass
class DashboardOverview:
    is_complete: bool
    application_id: Optional[str]
    sections: List[SectionStatus] = field(default_factory=list)

    @property
    def status_label(self) -> str:
        return "Application submitted" if self.is_complete else "Registration in progress"


def build_overview(progress: RegistrationProgress) -> DashboardOverview:
    data = progress.data
    sections = [
        SectionStatus(
            step=section.step,
            label=section.label,
            description=section.description,
            saved=bool(data.get(section.data_key)),
            editable=section.step in STEP_ENDPOINTS,
        )
        for section in DASHBOARD_SECTIONS
    ]
    return DashboardOverview(
        is_complete=progress.is_complete,
        application_id=progress.application_id,
        sections=sections,
    )


def section_data(progress: RegistrationProgress, step: int) -> Dict[str, Any]:
    """Saved server record for one section, or an empty dict."""
    for section in DASHBOARD_SECTIONS:
        if section.step == step:
            value = progress.data.get(section.data_key)
            return value if isinstance(value, dict) else {}
    raise ValueError(f"Step {step} ({get_step(step).title}) has no dashboard section")


async def load_overview(client: RegistrationClient, session_id: str) -> DashboardOverview:
    progress = await client.fetch_progress(session_id)
    return build_overview(progress)


async def update_section(
    client: RegistrationClient,
    session_id: str,
    payload: StepPayload,
    today: Optional[date] = None,
) -> None:
    """
    Validate and save one section outside the wizard.

    Raises:
        StepValidationError: If the payload fails its step rules
        ValueError: If the section has no save endpoint
        RegistrationApiError: If the service rejects the save
    """
    step = step_for_payload(payload).number
    if step not in STEP_ENDPOINTS:
        raise ValueError(f"Step {step} cannot be edited from the dashboard")

    errors = validate_step(payload, today=today)
    if errors:
        raise StepValidationError(step, errors)

    await client.save_step(step, session_id, payload)
    logger.info("dashboard_section_saved", step=step)
