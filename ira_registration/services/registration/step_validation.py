"""
Per-step validation rules.

Each validator takes the step's payload model and returns a map of
field name -> error message. An empty map means the step may be submitted.
Validators never touch the network and never mutate the payload.
"""

from datetime import date
from typing import Callable, Dict, List, Optional

from ira_registration.domain.schemas import (
    AccountCreationData,
    AgreementsData,
    BeneficiariesData,
    Beneficiary,
    EmploymentFinancialData,
    EmploymentStatus,
    FundingMethodData,
    FundingSource,
    InvestmentPreferencesData,
    IRAType,
    IRATypeData,
    KYCIdentityData,
    NewContributionMethod,
    PersonalInfoSubmission,
    RolloverMethod,
    SecuritySetupData,
    StepPayload,
    TransferMethod,
    TwoFAMethod,
)
from ira_registration.domain.steps import step_for_payload
from ira_registration.utils.validation import (
    allocation_total,
    validate_account_number,
    validate_address,
    validate_date_of_birth,
    validate_email,
    validate_password,
    validate_phone,
    validate_routing_number,
    validate_ssn,
    validate_zip,
)

EMPLOYER_REQUIRED_STATUSES = (EmploymentStatus.EMPLOYED.value, EmploymentStatus.SELF_EMPLOYED.value)
BUSINESS_IRA_TYPES = (IRAType.SEP.value, IRAType.SIMPLE.value)


def validate_account_creation(data: AccountCreationData) -> Dict[str, str]:
    errors: Dict[str, str] = {}

    if not data.email:
        errors["email"] = "Email is required"
    elif not validate_email(data.email):
        errors["email"] = "Invalid email format"

    if not data.password:
        errors["password"] = "Password is required"
    else:
        is_valid, violations = validate_password(data.password)
        if not is_valid:
            errors["password"] = ", ".join(violations)

    if data.password != data.confirm_password:
        errors["confirmPassword"] = "Passwords do not match"

    if not data.accept_terms:
        errors["acceptTerms"] = "You must accept the terms"

    return errors


def validate_personal_info(
    data: PersonalInfoSubmission, today: Optional[date] = None
) -> Dict[str, str]:
    errors: Dict[str, str] = {}
    personal = data.personal_info
    address = data.address

    if not personal.first_name:
        errors["firstName"] = "First name is required"
    if not personal.last_name:
        errors["lastName"] = "Last name is required"

    if not personal.date_of_birth:
        errors["dateOfBirth"] = "Date of birth is required"
    else:
        is_valid, message = validate_date_of_birth(personal.date_of_birth, today=today)
        if not is_valid:
            errors["dateOfBirth"] = message or "Invalid date"

    if not personal.ssn:
        errors["ssn"] = "SSN is required"
    elif not validate_ssn(personal.ssn):
        errors["ssn"] = "Invalid SSN format (###-##-####)"

    if not personal.phone:
        errors["phone"] = "Phone is required"
    elif not validate_phone(personal.phone):
        errors["phone"] = "Invalid phone format (###-###-####)"

    if not address.street:
        errors["street"] = "Address is required"
    else:
        is_valid, message = validate_address(address.street)
        if not is_valid:
            errors["street"] = message or "Invalid address"

    if not address.city:
        errors["city"] = "City is required"
    if not address.state:
        errors["state"] = "State is required"

    if not address.zip:
        errors["zip"] = "ZIP code is required"
    elif not validate_zip(address.zip):
        errors["zip"] = "Invalid ZIP format"

    return errors


def validate_kyc_identity(data: KYCIdentityData) -> Dict[str, str]:
    errors: Dict[str, str] = {}

    if not data.id_number:
        errors["idNumber"] = "ID number is required"
    if not data.issuing_state:
        errors["issuingState"] = "Issuing state/country is required"
    if not data.expiration_date:
        errors["expirationDate"] = "Expiration date is required"
    if not data.id_front_image_url:
        errors["idFront"] = "Front ID image required"
    if not data.id_back_image_url:
        errors["idBack"] = "Back ID image required"
    if not data.proof_of_address_url:
        errors["proofOfAddress"] = "Proof of address required"

    return errors


def validate_employment_financial(data: EmploymentFinancialData) -> Dict[str, str]:
    errors: Dict[str, str] = {}

    if data.employment_status in EMPLOYER_REQUIRED_STATUSES:
        if not data.employer_name:
            errors["employerName"] = "Employer name is required"
        if not data.occupation:
            errors["occupation"] = "Occupation is required"

    if not data.source_of_funds:
        errors["sourceOfFunds"] = "Select at least one source of funds"

    return errors


def validate_ira_type(data: IRATypeData) -> Dict[str, str]:
    errors: Dict[str, str] = {}
    questions = data.conditional_questions

    if not data.purpose:
        errors["purpose"] = "Please select a purpose"

    if data.ira_type in BUSINESS_IRA_TYPES:
        if not questions.business_details:
            errors["businessDetails"] = "Business details are required"

    if data.ira_type == IRAType.INHERITED.value:
        if not questions.decedent_name:
            errors["decedentName"] = "Decedent name is required"
        if not questions.relationship:
            errors["relationship"] = "Relationship is required"
        if not questions.date_of_death:
            errors["dateOfDeath"] = "Date of death is required"

    return errors


def _beneficiary_field_errors(
    beneficiaries: List[Beneficiary], bucket: str, errors: Dict[str, str]
) -> None:
    for index, b in enumerate(beneficiaries):
        key = b.id or f"{bucket}-{index}"
        if not b.full_name:
            errors[f"name-{key}"] = "Name required"
        if not b.relationship:
            errors[f"rel-{key}"] = "Relationship required"
        if not b.date_of_birth:
            errors[f"dob-{key}"] = "DOB required"
        if not b.ssn:
            errors[f"ssn-{key}"] = "SSN required"


def validate_beneficiaries(data: BeneficiariesData) -> Dict[str, str]:
    errors: Dict[str, str] = {}

    if not data.primary_beneficiaries:
        errors["primaryBeneficiaries"] = "At least one primary beneficiary is required"
    else:
        primary_total = allocation_total(data.primary_beneficiaries)
        if primary_total != 100:
            errors["primaryPercentage"] = (
                f"Primary beneficiary percentages must total 100% (current: {primary_total}%)"
            )
        _beneficiary_field_errors(data.primary_beneficiaries, "primary", errors)

    if data.contingent_beneficiaries:
        contingent_total = allocation_total(data.contingent_beneficiaries)
        if contingent_total != 100:
            errors["contingentPercentage"] = (
                f"Contingent beneficiary percentages must total 100% (current: {contingent_total}%)"
            )
        _beneficiary_field_errors(data.contingent_beneficiaries, "contingent", errors)

    return errors


def validate_funding_method(data: FundingMethodData) -> Dict[str, str]:
    errors: Dict[str, str] = {}

    if not data.methods:
        errors["methods"] = "Please select at least one funding method"
        return errors

    for idx, method in enumerate(data.methods):
        if isinstance(method, TransferMethod):
            details = method.transfer_details
            if not details.current_custodian:
                errors[f"transfer-custodian-{idx}"] = "Custodian name required"
            if not details.account_number:
                errors[f"transfer-account-{idx}"] = "Account number required"

        elif isinstance(method, RolloverMethod):
            details = method.rollover_details
            if not details.employer_name:
                errors[f"rollover-employer-{idx}"] = "Employer name required"
            if not details.plan_admin_contact:
                errors[f"rollover-contact-{idx}"] = "Plan admin contact required"

        elif isinstance(method, NewContributionMethod):
            details = method.contribution_details
            if details.amount <= 0:
                errors[f"contribution-amount-{idx}"] = "Amount required"

            if details.funding_source == FundingSource.BANK_TRANSFER.value:
                bank = details.bank_account
                if bank is None:
                    errors[f"bank-account-{idx}"] = "Bank account details required"
                    continue

                if not bank.routing_number:
                    errors[f"bank-routing-{idx}"] = "Routing number required"
                elif not validate_routing_number(bank.routing_number):
                    errors[f"bank-routing-{idx}"] = "Invalid routing number"

                if not bank.account_number:
                    errors[f"bank-account-{idx}"] = "Account number required"
                elif not validate_account_number(bank.account_number):
                    errors[f"bank-account-{idx}"] = "Invalid account number"

    return errors


def validate_investment_preferences(data: InvestmentPreferencesData) -> Dict[str, str]:
    errors: Dict[str, str] = {}
    acks = data.risk_acknowledgments

    if not acks.understands_non_traditional_risks:
        errors["understandsRisks"] = "You must acknowledge the risks"
    if not acks.accepts_responsibility_for_decisions:
        errors["acceptsResponsibility"] = "You must accept responsibility for investment decisions"

    return errors


def validate_agreements(data: AgreementsData) -> Dict[str, str]:
    errors: Dict[str, str] = {}

    if not all(a.accepted for a in data.agreements):
        errors["agreements"] = "You must accept all documents to proceed"
    if not data.signature_name:
        errors["signatureName"] = "Signature name is required"

    return errors


def validate_security_setup(data: SecuritySetupData) -> Dict[str, str]:
    errors: Dict[str, str] = {}

    if data.two_fa_method != TwoFAMethod.EMAIL.value and not data.phone_number_verified:
        errors["twoFA"] = "2FA verification is required"

    return errors


STEP_VALIDATORS: Dict[int, Callable[..., Dict[str, str]]] = {
    1: validate_account_creation,
    2: validate_personal_info,
    3: validate_kyc_identity,
    4: validate_employment_financial,
    5: validate_ira_type,
    6: validate_beneficiaries,
    7: validate_funding_method,
    8: validate_investment_preferences,
    9: validate_agreements,
    10: validate_security_setup,
}


def validate_step(payload: StepPayload, today: Optional[date] = None) -> Dict[str, str]:
    """
    Run the rules for whichever step the payload belongs to.

    Args:
        payload: One of the ten step payload models
        today: Reference date for age checks (defaults to the current date)

    Returns:
        Field -> message map; empty when the step is valid
    """
    step = step_for_payload(payload).number
    if step == 2:
        return validate_personal_info(payload, today=today)
    return STEP_VALIDATORS[step](payload)
