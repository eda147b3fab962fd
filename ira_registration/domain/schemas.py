from datetime import date, datetime
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


def to_camel(string: str) -> str:
    """Convert snake_case to camelCase"""
    components = string.split("_")
    return components[0] + "".join(x.title() for x in components[1:])


class CamelCaseModel(BaseModel):
    """Base model with camelCase alias configuration"""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,  # Allow both snake_case and camelCase
        use_enum_values=True,
        validate_default=True,  # enum defaults are stored as plain values too
        extra="ignore",
    )

    def to_wire(self) -> Dict[str, Any]:
        """JSON-safe camelCase dict as sent to the progress service"""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Citizenship(str, Enum):
    US_CITIZEN = "us-citizen"
    RESIDENT_ALIEN = "resident-alien"
    NON_RESIDENT = "non-resident"


class GovernmentIdType(str, Enum):
    DRIVER_LICENSE = "driver-license"
    PASSPORT = "passport"
    STATE_ID = "state-id"


class EmploymentStatus(str, Enum):
    EMPLOYED = "employed"
    SELF_EMPLOYED = "self-employed"
    UNEMPLOYED = "unemployed"
    RETIRED = "retired"
    STUDENT = "student"
    HOMEMAKER = "homemaker"


class IncomeRange(str, Enum):
    UNDER_50K = "under-50k"
    FROM_50K_TO_100K = "50k-100k"
    FROM_100K_TO_250K = "100k-250k"
    FROM_250K_TO_500K = "250k-500k"
    OVER_500K = "over-500k"


class NetWorthRange(str, Enum):
    UNDER_100K = "under-100k"
    FROM_100K_TO_500K = "100k-500k"
    FROM_500K_TO_1M = "500k-1m"
    OVER_1M = "over-1m"


class ExperienceLevel(str, Enum):
    NONE = "none"
    LIMITED = "limited"
    MODERATE = "moderate"
    EXTENSIVE = "extensive"


class IRAType(str, Enum):
    TRADITIONAL = "traditional"
    ROTH = "roth"
    SEP = "sep"
    SIMPLE = "simple"
    INHERITED = "inherited"


class BeneficiaryType(str, Enum):
    PRIMARY = "primary"
    CONTINGENT = "contingent"


class FundingSource(str, Enum):
    BANK_TRANSFER = "bank-transfer"
    CHECK = "check"
    WIRE = "wire"


class TwoFAMethod(str, Enum):
    SMS = "sms"
    AUTHENTICATOR = "authenticator"
    EMAIL = "email"


SOURCE_OF_FUNDS_OPTIONS = (
    "salary",
    "business",
    "investments",
    "inheritance",
    "retirement-plan",
    "other",
)

ASSET_TYPE_OPTIONS = (
    "real-estate",
    "private-equity",
    "crypto",
    "precious-metals",
    "notes-lending",
    "other",
)


# Step 1: Account creation
class AccountCreationData(CamelCaseModel):
    email: str = ""
    # Held in memory for the register call only; stripped from every snapshot.
    password: Optional[str] = Field(default=None, repr=False)
    confirm_password: Optional[str] = Field(default=None, repr=False)
    accept_terms: bool = False


# Step 2: Personal information and residential address
class PersonalInfoData(CamelCaseModel):
    first_name: str = ""
    middle_name: Optional[str] = None
    last_name: str = ""
    date_of_birth: str = ""  # ISO 8601
    citizenship: Citizenship = Citizenship.US_CITIZEN
    ssn: str = Field(default="", repr=False)
    phone: str = ""


class AddressData(CamelCaseModel):
    street: str = ""
    city: str = ""
    state: str = ""
    zip: str = ""
    country: str = "US"


# Step 3: KYC/AML identity verification
class KYCIdentityData(CamelCaseModel):
    government_id_type: GovernmentIdType = GovernmentIdType.DRIVER_LICENSE
    id_number: str = ""
    issuing_state: str = ""
    expiration_date: str = ""  # ISO 8601
    id_front_image_url: Optional[str] = None
    id_back_image_url: Optional[str] = None
    proof_of_address_url: Optional[str] = None
    identity_quiz_answers: Optional[Dict[str, str]] = None


# Step 4: Employment and financial profile
class EmploymentFinancialData(CamelCaseModel):
    employment_status: EmploymentStatus = EmploymentStatus.EMPLOYED
    employer_name: Optional[str] = None
    employer_address: Optional[str] = None
    occupation: Optional[str] = None
    annual_income_range: IncomeRange = IncomeRange.UNDER_50K
    net_worth_range: NetWorthRange = NetWorthRange.UNDER_100K
    source_of_funds: List[str] = Field(default_factory=list)
    investment_experience: Optional[ExperienceLevel] = None


# Step 5: IRA type
class IRAConditionalQuestions(CamelCaseModel):
    # SEP / SIMPLE
    is_employer: Optional[bool] = None
    business_details: Optional[str] = None
    # Inherited
    decedent_name: Optional[str] = None
    relationship: Optional[str] = None
    date_of_death: Optional[str] = None


class IRATypeData(CamelCaseModel):
    ira_type: IRAType = IRAType.TRADITIONAL
    purpose: str = ""
    conditional_questions: IRAConditionalQuestions = Field(
        default_factory=IRAConditionalQuestions
    )


# Step 6: Beneficiaries
class Beneficiary(CamelCaseModel):
    id: Optional[str] = None
    full_name: str = ""
    relationship: str = ""
    date_of_birth: str = ""
    ssn: str = Field(default="", repr=False)
    type: BeneficiaryType = BeneficiaryType.PRIMARY
    # Whole percentages; a bucket must total exactly 100.
    allocation_percentage: int = 0


class BeneficiariesData(CamelCaseModel):
    primary_beneficiaries: List[Beneficiary] = Field(default_factory=list)
    contingent_beneficiaries: List[Beneficiary] = Field(default_factory=list)


# Step 7: Funding (tagged variant per method)
class TransferDetails(CamelCaseModel):
    current_custodian: str = ""
    account_type: Literal["traditional", "roth", "sep", "simple"] = "traditional"
    account_number: str = Field(default="", repr=False)
    estimated_amount: float = 0
    statement_file_url: Optional[str] = None


class RolloverDetails(CamelCaseModel):
    plan_type: Literal["401k", "403b", "457", "other"] = "401k"
    employer_name: str = ""
    plan_admin_contact: str = ""
    estimated_amount: float = 0


class BankAccount(CamelCaseModel):
    account_holder_name: str = ""
    routing_number: str = ""
    account_number: str = Field(default="", repr=False)
    account_type: Literal["checking", "savings"] = "checking"


class ContributionDetails(CamelCaseModel):
    amount: float = 0
    tax_year: int = Field(default_factory=lambda: date.today().year)
    funding_source: FundingSource = FundingSource.BANK_TRANSFER
    bank_account: Optional[BankAccount] = None


class TransferMethod(CamelCaseModel):
    type: Literal["transfer"] = "transfer"
    transfer_details: TransferDetails = Field(default_factory=TransferDetails)


class RolloverMethod(CamelCaseModel):
    type: Literal["rollover"] = "rollover"
    rollover_details: RolloverDetails = Field(default_factory=RolloverDetails)


class NewContributionMethod(CamelCaseModel):
    type: Literal["new-contribution"] = "new-contribution"
    contribution_details: ContributionDetails = Field(default_factory=ContributionDetails)


FundingMethod = Annotated[
    Union[TransferMethod, RolloverMethod, NewContributionMethod],
    Field(discriminator="type"),
]


class FundingMethodData(CamelCaseModel):
    methods: List[FundingMethod] = Field(default_factory=list)


# Step 8: Investment preferences and risk
class AssetDetail(CamelCaseModel):
    experience_level: Optional[ExperienceLevel] = None
    planned_allocation: Optional[float] = None


class RiskAcknowledgments(CamelCaseModel):
    understands_non_traditional_risks: bool = False
    accepts_responsibility_for_decisions: bool = False


class InvestmentPreferencesData(CamelCaseModel):
    asset_types: List[str] = Field(default_factory=list)
    asset_details: Optional[Dict[str, AssetDetail]] = None
    risk_acknowledgments: RiskAcknowledgments = Field(default_factory=RiskAcknowledgments)


# Step 9: Agreements and signature
class AgreementRecord(CamelCaseModel):
    document_name: str
    document_url: str = ""
    accepted: bool = False
    accepted_at: Optional[datetime] = None


class AgreementsData(CamelCaseModel):
    agreements: List[AgreementRecord] = Field(default_factory=list)
    e_signature_type: Literal["typed", "drawn"] = "typed"
    signature_name: str = ""
    signature_date: Optional[date] = None
    signature_image: Optional[str] = None


# Step 10: Security setup
class SecuritySetupData(CamelCaseModel):
    two_fa_method: TwoFAMethod = Field(
        default=TwoFAMethod.EMAIL,
        alias="twoFAMethod",
        validation_alias=AliasChoices("twoFAMethod", "twoFaMethod", "two_fa_method"),
    )
    # Set by the render layer once the (external) verification succeeded.
    phone_number_verified: bool = False
    authenticator_secret: Optional[str] = Field(default=None, repr=False)
    security_questions: Optional[Dict[str, str]] = None

    def final_submission(self) -> Dict[str, Any]:
        """Body of the terminal security-2fa call"""
        return {
            "twoFAMethod": self.two_fa_method,
            "phoneNumberVerified": self.phone_number_verified
            or self.two_fa_method == TwoFAMethod.EMAIL.value,
        }


# Step 2 submits two logical records as one step.
class PersonalInfoSubmission(CamelCaseModel):
    personal_info: PersonalInfoData = Field(default_factory=PersonalInfoData)
    address: AddressData = Field(default_factory=AddressData)

    def to_wire(self) -> Dict[str, Any]:
        """The progress service expects personal and address fields flattened."""
        return {**self.personal_info.to_wire(), **self.address.to_wire()}


StepPayload = Union[
    AccountCreationData,
    PersonalInfoSubmission,
    KYCIdentityData,
    EmploymentFinancialData,
    IRATypeData,
    BeneficiariesData,
    FundingMethodData,
    InvestmentPreferencesData,
    AgreementsData,
    SecuritySetupData,
]


# Aggregate draft
class RegistrationDraft(CamelCaseModel):
    account_creation: Optional[AccountCreationData] = None
    personal_info: Optional[PersonalInfoData] = None
    address: Optional[AddressData] = None
    kyc_identity: Optional[KYCIdentityData] = None
    employment_financial: Optional[EmploymentFinancialData] = None
    ira_type: Optional[IRATypeData] = None
    beneficiaries: Optional[BeneficiariesData] = None
    funding_method: Optional[FundingMethodData] = None
    investment_preferences: Optional[InvestmentPreferencesData] = None
    agreements: Optional[AgreementsData] = None
    security_setup: Optional[SecuritySetupData] = None

    def present_keys(self) -> List[str]:
        return [name for name in type(self).model_fields if getattr(self, name) is not None]


class WizardSnapshot(CamelCaseModel):
    """Local durable record: step pointer, sanitized draft, save time"""

    current_step: int = Field(default=1, ge=1, le=10)
    form_data: RegistrationDraft = Field(default_factory=RegistrationDraft)
    last_saved_at: Optional[datetime] = None


# Remote service responses
class DocumentRef(CamelCaseModel):
    name: str
    url: str = ""


class ContactInfo(CamelCaseModel):
    email: str = ""
    phone: str = ""


class RegistrationResponse(CamelCaseModel):
    success: bool = False
    message: str = ""
    application_id: Optional[str] = None
    next_steps: Optional[str] = None
    review_timeline: Optional[str] = None
    funding_timeline: Optional[str] = None
    contact_info: Optional[ContactInfo] = None


class RegistrationProgress(CamelCaseModel):
    current_step: Optional[int] = None
    registration_data: Optional[Dict[str, Any]] = None
    saved_data: Optional[Dict[str, Any]] = None
    is_complete: bool = Field(
        default=False,
        validation_alias=AliasChoices("isComplete", "IsComplete", "is_complete"),
    )

    @property
    def data(self) -> Dict[str, Any]:
        return self.registration_data or self.saved_data or {}

    @property
    def application_id(self) -> Optional[str]:
        value = self.data.get("applicationId")
        return str(value) if value else None


class RegisterResult(CamelCaseModel):
    session_id: Optional[str] = None
    error: Optional[str] = None


class LoginResult(CamelCaseModel):
    session_id: Optional[str] = None
    token: Optional[str] = Field(default=None, repr=False)
    is_registration_complete: bool = False
