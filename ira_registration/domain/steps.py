"""
The ten fixed registration steps.

Each step owns exactly one payload model; the controller dispatches on the
payload's type through this table, so adding a model without a row here
fails loudly at lookup time.
"""

from typing import Dict, NamedTuple, Tuple, Type

from ira_registration.domain.schemas import (
    AccountCreationData,
    AgreementsData,
    BeneficiariesData,
    EmploymentFinancialData,
    FundingMethodData,
    InvestmentPreferencesData,
    IRATypeData,
    KYCIdentityData,
    PersonalInfoSubmission,
    SecuritySetupData,
    StepPayload,
)

FIRST_STEP = 1
LAST_STEP = 10


class StepDefinition(NamedTuple):
    number: int
    title: str
    payload_model: Type[StepPayload]
    # Draft keys written when the step completes (step 2 writes two).
    draft_keys: Tuple[str, ...]


STEPS: Tuple[StepDefinition, ...] = (
    StepDefinition(1, "Welcome & Account Creation", AccountCreationData, ("account_creation",)),
    StepDefinition(2, "Personal & Identity Information", PersonalInfoSubmission, ("personal_info", "address")),
    StepDefinition(3, "Identity Verification (KYC/AML)", KYCIdentityData, ("kyc_identity",)),
    StepDefinition(4, "Employment & Financial Profile", EmploymentFinancialData, ("employment_financial",)),
    StepDefinition(5, "IRA Type & Purpose", IRATypeData, ("ira_type",)),
    StepDefinition(6, "Beneficiaries", BeneficiariesData, ("beneficiaries",)),
    StepDefinition(7, "Funding Method", FundingMethodData, ("funding_method",)),
    StepDefinition(8, "Investment Preferences & Risk", InvestmentPreferencesData, ("investment_preferences",)),
    StepDefinition(9, "Agreements & Signature", AgreementsData, ("agreements",)),
    StepDefinition(10, "Security Setup & Confirmation", SecuritySetupData, ("security_setup",)),
)

_BY_NUMBER: Dict[int, StepDefinition] = {s.number: s for s in STEPS}
_BY_MODEL: Dict[type, StepDefinition] = {s.payload_model: s for s in STEPS}


def get_step(number: int) -> StepDefinition:
    """
    Look up a step by number.

    Raises:
        ValueError: If the number is outside 1..10
    """
    if number not in _BY_NUMBER:
        raise ValueError(f"Unknown step: {number}. Steps run {FIRST_STEP}..{LAST_STEP}")
    return _BY_NUMBER[number]


def step_for_payload(payload: StepPayload) -> StepDefinition:
    """
    Resolve the step a payload belongs to.

    Raises:
        TypeError: If the payload is not one of the step models
    """
    definition = _BY_MODEL.get(type(payload))
    if definition is None:
        raise TypeError(f"{type(payload).__name__} is not a registration step payload")
    return definition


def progress_percentage(current_step: int) -> float:
    return (current_step - FIRST_STEP) / (LAST_STEP - FIRST_STEP) * 100
