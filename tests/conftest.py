"""Shared fixtures: in-memory storage, a recording fake progress service and valid step payloads."""

import json
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
import pytest
from tenacity import wait_none

from ira_registration.domain.schemas import (
    AccountCreationData,
    AddressData,
    AgreementRecord,
    AgreementsData,
    BankAccount,
    BeneficiariesData,
    Beneficiary,
    ContributionDetails,
    EmploymentFinancialData,
    FundingMethodData,
    InvestmentPreferencesData,
    IRATypeData,
    KYCIdentityData,
    NewContributionMethod,
    PersonalInfoData,
    PersonalInfoSubmission,
    RiskAcknowledgments,
    SecuritySetupData,
)
from ira_registration.infrastructure.registration_client import RegistrationClient
from ira_registration.infrastructure.storage import InMemoryStorage
from ira_registration.services.auth.session_identity import SessionIdentityStore
from ira_registration.services.registration.draft_store import RegistrationDraftStore
from ira_registration.services.registration.wizard import RegistrationWizard

TODAY = date(2026, 1, 15)
BASE_URL = "http://registration.test"
SESSION_ID = "progress-123"


class FakeProgressService:
    """
    Stand-in for the registration progress service.

    Routes are "METHOD /path" (path after /api) mapped to a response or a
    callable(request) -> response. Every request is recorded.
    """

    def __init__(self):
        self.routes: Dict[str, Any] = {
            "POST /auth/register": httpx.Response(200, json={"sessionId": SESSION_ID}),
            "GET /registration/documents": httpx.Response(
                200,
                json=[
                    {"name": "IRA Adoption Agreement", "url": "https://docs.test/adoption.pdf"},
                    {"name": "Fee Schedule", "url": "https://docs.test/fees.pdf"},
                ],
            ),
            "GET /registration/progress": httpx.Response(
                200, json={"currentStep": 1, "registrationData": {}, "isComplete": False}
            ),
            "POST /registration/security-2fa": httpx.Response(
                200,
                json={
                    "success": True,
                    "message": "Application received",
                    "applicationId": "APP-2026-0001",
                    "reviewTimeline": "1-2 business days",
                },
            ),
        }
        for endpoint in (
            "personal-info",
            "kyc-identity",
            "employment",
            "ira-type",
            "beneficiaries",
            "funding",
            "investments",
            "agreements",
        ):
            self.routes[f"POST /registration/{endpoint}"] = httpx.Response(200, json={"success": True})
        self.calls: List[Tuple[str, str, Optional[str], Any]] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path.startswith("/api"):
            path = path[len("/api"):]
        body = json.loads(request.content) if request.content else None
        self.calls.append((request.method, path, request.headers.get("X-Session-Id"), body))

        route = self.routes.get(f"{request.method} {path}")
        if route is None:
            return httpx.Response(404, json={"message": f"No route for {request.method} {path}"})
        if callable(route):
            return route(request)
        # Fresh copy per request; a response object is consumed once.
        return httpx.Response(route.status_code, headers=route.headers, content=route.content)

    @property
    def paths(self) -> List[str]:
        return [f"{method} {path}" for method, path, _, _ in self.calls]

    def calls_to(self, route: str) -> List[Tuple[str, str, Optional[str], Any]]:
        return [c for c in self.calls if f"{c[0]} {c[1]}" == route]


@pytest.fixture
def service() -> FakeProgressService:
    return FakeProgressService()


@pytest.fixture
def make_client(service) -> Callable[..., RegistrationClient]:
    def _make(**kwargs) -> RegistrationClient:
        kwargs.setdefault("base_url", BASE_URL)
        kwargs.setdefault("retry_wait", wait_none())
        return RegistrationClient(transport=httpx.MockTransport(service.handler), **kwargs)

    return _make


@pytest.fixture
def client(make_client) -> RegistrationClient:
    return make_client()


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def draft_store(storage) -> RegistrationDraftStore:
    return RegistrationDraftStore(storage, storage_key="registration_session")


@pytest.fixture
def identity(storage) -> SessionIdentityStore:
    return SessionIdentityStore(storage)


@pytest.fixture
def wizard(client, draft_store, identity) -> RegistrationWizard:
    return RegistrationWizard(client, draft_store, identity, today=TODAY)


def valid_payloads() -> Dict[int, Any]:
    """One valid payload per step, in step order."""
    return {
        1: AccountCreationData(
            email="jane@example.com",
            password="Str0ng!Pass",
            confirm_password="Str0ng!Pass",
            accept_terms=True,
        ),
        2: PersonalInfoSubmission(
            personal_info=PersonalInfoData(
                first_name="Jane",
                last_name="Doe",
                date_of_birth="1980-05-17",
                ssn="123-45-6789",
                phone="555-123-4567",
            ),
            address=AddressData(street="12 Main St", city="Austin", state="TX", zip="78701"),
        ),
        3: KYCIdentityData(
            id_number="D1234567",
            issuing_state="TX",
            expiration_date="2030-01-01",
            id_front_image_url="https://files.test/front.jpg",
            id_back_image_url="https://files.test/back.jpg",
            proof_of_address_url="https://files.test/utility.pdf",
        ),
        4: EmploymentFinancialData(
            employment_status="employed",
            employer_name="Acme Corp",
            occupation="Engineer",
            source_of_funds=["salary"],
        ),
        5: IRATypeData(ira_type="roth", purpose="retirement-savings"),
        6: BeneficiariesData(
            primary_beneficiaries=[
                Beneficiary(
                    id="b1",
                    full_name="John Doe",
                    relationship="spouse",
                    date_of_birth="1979-03-02",
                    ssn="987-65-4321",
                    allocation_percentage=100,
                )
            ]
        ),
        7: FundingMethodData(
            methods=[
                NewContributionMethod(
                    contribution_details=ContributionDetails(
                        amount=7000,
                        tax_year=2026,
                        bank_account=BankAccount(
                            account_holder_name="Jane Doe",
                            routing_number="123456789",
                            account_number="000123456",
                        ),
                    )
                )
            ]
        ),
        8: InvestmentPreferencesData(
            asset_types=["real-estate"],
            risk_acknowledgments=RiskAcknowledgments(
                understands_non_traditional_risks=True,
                accepts_responsibility_for_decisions=True,
            ),
        ),
        9: AgreementsData(
            agreements=[
                AgreementRecord(document_name="IRA Adoption Agreement", accepted=True),
                AgreementRecord(document_name="Fee Schedule", accepted=True),
            ],
            signature_name="Jane Doe",
        ),
        10: SecuritySetupData(two_fa_method="email"),
    }


@pytest.fixture
def payloads() -> Dict[int, Any]:
    return valid_payloads()
