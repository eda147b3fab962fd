"""Wizard controller: resume, step submission, expiry and navigation."""

import asyncio
import json

import httpx
import pytest

from conftest import BASE_URL, SESSION_ID, TODAY, valid_payloads
from ira_registration.core.exceptions import (
    ErrorKind,
    InvalidCredentialsError,
    RegistrationApiError,
    WizardStateError,
)
from ira_registration.domain.schemas import AccountCreationData, AddressData, AgreementRecord, AgreementsData
from ira_registration.infrastructure.registration_client import RegistrationClient
from ira_registration.infrastructure.storage import InMemoryStorage
from ira_registration.services.auth.session_identity import SessionIdentityStore
from ira_registration.services.registration.draft_store import RegistrationDraftStore
from ira_registration.services.registration.wizard import RegistrationWizard

SNAPSHOT_KEY = "registration_session"


def run(coro):
    return asyncio.run(coro)


async def complete_through(wizard, last_step, payloads=None):
    payloads = payloads or valid_payloads()
    for step in range(1, last_step + 1):
        result = await wizard.complete_step(payloads[step])
        assert result.ok, (step, result)


def test_full_registration_calls_each_endpoint_once_in_order(wizard, service, storage, identity):
    payloads = valid_payloads()

    async def scenario():
        await wizard.hydrate()
        states = []
        for step in range(1, 11):
            result = await wizard.complete_step(payloads[step])
            assert result.ok, (step, result)
            states.append(result.state)
        return states

    states = run(scenario())

    assert states == [f"step_{n}" for n in range(2, 11)] + ["complete"]
    assert service.paths == [
        "POST /auth/register",
        "GET /registration/documents",
        "POST /registration/personal-info",
        "POST /registration/kyc-identity",
        "POST /registration/employment",
        "POST /registration/ira-type",
        "POST /registration/beneficiaries",
        "POST /registration/funding",
        "POST /registration/investments",
        "POST /registration/agreements",
        "POST /registration/security-2fa",
    ]
    assert all(header == SESSION_ID for _, _, header, _ in service.calls[1:])
    assert wizard.is_complete
    assert wizard.application_id == "APP-2026-0001"
    assert identity.session_id is None
    assert storage.get(SNAPSHOT_KEY) is None
    assert identity.last_login_email == "jane@example.com"


def test_password_never_reaches_storage(wizard, storage):
    run(complete_through(wizard, 1))
    snapshot = storage.get(SNAPSHOT_KEY)
    assert "Str0ng!Pass" not in snapshot
    assert json.loads(snapshot)["formData"]["accountCreation"] == {"email": "jane@example.com", "acceptTerms": True}
    assert wizard.draft_store.form_data.account_creation.password is None


def test_invalid_step_makes_no_network_call(wizard, service):
    result = run(wizard.complete_step(AccountCreationData(email="nope")))
    assert result.ok is False
    assert result.state == "step_1"
    assert result.errors["email"] == "Invalid email format"
    assert service.calls == []


def test_payload_for_another_step_is_rejected(wizard):
    with pytest.raises(WizardStateError):
        run(wizard.complete_step(valid_payloads()[3]))


def test_register_error_shown_as_banner(wizard, service):
    service.routes["POST /auth/register"] = httpx.Response(409, json={"message": "Email already registered"})
    result = run(wizard.complete_step(valid_payloads()[1]))
    assert result.ok is False
    assert result.state == "step_1"
    assert result.message == "Email already registered"
    assert wizard.identity.session_id is None


def test_register_without_session_id(wizard, service):
    service.routes["POST /auth/register"] = httpx.Response(200, json={})
    result = run(wizard.complete_step(valid_payloads()[1]))
    assert result.message == "Failed to create account. Please try again."


class TestResume:
    def test_server_step_and_data_win(self, storage, client, service):
        store = RegistrationDraftStore(storage)
        store.update_form_data("address", AddressData(city="Old Town"))
        store.set_step(2)
        SessionIdentityStore(storage).session_id = SESSION_ID
        service.routes["GET /registration/progress"] = httpx.Response(
            200,
            json={
                "currentStep": 5,
                "registrationData": {
                    "personalInfo": {
                        "firstName": "Jane",
                        "lastName": "Doe",
                        "street": "12 Main St",
                        "city": "Austin",
                        "state": "TX",
                        "zip": "78701",
                    },
                    "employmentFinancial": {"employmentStatus": "retired", "sourceOfFunds": ["retirement-plan"]},
                    "applicationId": None,
                },
                "isComplete": False,
            },
        )
        wizard = RegistrationWizard(client, RegistrationDraftStore(storage), SessionIdentityStore(storage), today=TODAY)

        result = run(wizard.hydrate())

        assert result.state == "step_5"
        draft = wizard.draft_store.form_data
        assert draft.personal_info.first_name == "Jane"
        assert draft.address.city == "Austin"
        assert draft.address.state == "TX"
        assert draft.employment_financial.employment_status == "retired"
        assert json.loads(storage.get(SNAPSHOT_KEY))["currentStep"] == 5
        assert [d.name for d in wizard.documents] == ["IRA Adoption Agreement", "Fee Schedule"]

    def test_separate_address_record_is_kept(self, storage, client, service):
        SessionIdentityStore(storage).session_id = SESSION_ID
        service.routes["GET /registration/progress"] = httpx.Response(
            200,
            json={
                "currentStep": 3,
                "savedData": {"personalInfo": {"firstName": "Jane"}, "address": {"city": "Dallas"}},
            },
        )
        wizard = RegistrationWizard(client, RegistrationDraftStore(storage), SessionIdentityStore(storage))
        run(wizard.hydrate())
        assert wizard.draft_store.form_data.address.city == "Dallas"
        assert wizard.current_step == 3

    def test_completed_application(self, storage, client, service):
        SessionIdentityStore(storage).session_id = SESSION_ID
        service.routes["GET /registration/progress"] = httpx.Response(
            200, json={"currentStep": 10, "savedData": {"applicationId": "APP-7"}, "isComplete": True}
        )
        wizard = RegistrationWizard(client, RegistrationDraftStore(storage), SessionIdentityStore(storage))
        result = run(wizard.hydrate())
        assert result.state == "complete"
        assert wizard.application_id == "APP-7"

    def test_no_session_past_step_one_expires_without_network(self, storage, client, service):
        store = RegistrationDraftStore(storage)
        store.set_step(4)
        wizard = RegistrationWizard(client, RegistrationDraftStore(storage), SessionIdentityStore(storage))

        result = run(wizard.hydrate())

        assert result.state == "session_expired"
        assert service.calls == []
        assert storage.get(SNAPSHOT_KEY) is None

    def test_fresh_start(self, wizard, service):
        result = run(wizard.hydrate())
        assert result.ok
        assert result.state == "step_1"
        assert service.calls == []

    def test_progress_401_expires_session(self, storage, client, service):
        identity = SessionIdentityStore(storage)
        identity.session_id = SESSION_ID
        identity.auth_token = "jwt"
        service.routes["GET /registration/progress"] = httpx.Response(401, json={"message": "Unauthorized"})
        wizard = RegistrationWizard(client, RegistrationDraftStore(storage), identity)

        result = run(wizard.hydrate())

        assert result.state == "session_expired"
        assert identity.session_id is None
        assert identity.auth_token is None

    def test_transient_progress_failure_keeps_local_step(self, storage, client, service):
        store = RegistrationDraftStore(storage)
        store.update_form_data("address", AddressData(city="Austin"))
        store.set_step(6)
        SessionIdentityStore(storage).session_id = SESSION_ID
        service.routes["GET /registration/progress"] = httpx.Response(503)
        wizard = RegistrationWizard(client, RegistrationDraftStore(storage), SessionIdentityStore(storage))

        result = run(wizard.hydrate())

        assert result.state == "step_6"
        assert wizard.draft_store.form_data.address.city == "Austin"


class TestStepFailures:
    def test_session_expired_on_save(self, wizard, service, identity, storage):
        service.routes["POST /registration/kyc-identity"] = httpx.Response(401)

        async def scenario():
            await complete_through(wizard, 2)
            return await wizard.complete_step(valid_payloads()[3])

        result = run(scenario())

        assert result.state == "session_expired"
        assert result.ok is False
        assert identity.session_id is None
        assert storage.get(SNAPSHOT_KEY) is None
        with pytest.raises(WizardStateError):
            run(wizard.complete_step(valid_payloads()[3]))

    def test_transient_failure_keeps_step_and_draft(self, wizard, service, storage):
        service.routes["POST /registration/kyc-identity"] = httpx.Response(500)

        async def scenario():
            await complete_through(wizard, 2)
            return await wizard.complete_step(valid_payloads()[3])

        result = run(scenario())

        assert result.ok is False
        assert result.state == "step_3"
        assert result.message == "Failed to save step 3. Please try again."
        assert wizard.error == result.message
        assert wizard.draft_store.form_data.kyc_identity.id_number == "D1234567"
        assert json.loads(storage.get(SNAPSHOT_KEY))["formData"]["kycIdentity"]["idNumber"] == "D1234567"

        service.routes["POST /registration/kyc-identity"] = httpx.Response(200, json={})
        retried = run(wizard.complete_step(valid_payloads()[3]))
        assert retried.ok
        assert retried.state == "step_4"

    def test_server_validation_message_is_surfaced(self, wizard, service):
        service.routes["POST /registration/personal-info"] = httpx.Response(
            422, json={"errors": {"ssn": ["SSN already in use."]}}
        )

        async def scenario():
            await complete_through(wizard, 1)
            return await wizard.complete_step(valid_payloads()[2])

        result = run(scenario())
        assert result.message == "SSN already in use."
        assert result.state == "step_2"

    def test_missing_session_id_mid_flow_expires(self, wizard, service, identity):
        async def scenario():
            await complete_through(wizard, 1)
            identity.session_id = None
            return await wizard.complete_step(valid_payloads()[2])

        result = run(scenario())
        assert result.state == "session_expired"
        assert "POST /registration/personal-info" not in service.paths

    def test_final_submit_failure(self, wizard, service):
        service.routes["POST /registration/security-2fa"] = httpx.Response(500)
        payloads = valid_payloads()

        async def scenario():
            await complete_through(wizard, 9, payloads)
            return await wizard.complete_step(payloads[10])

        result = run(scenario())
        assert result.state == "step_10"
        assert result.message == "Failed to submit registration. Please try again."
        assert wizard.identity.session_id == SESSION_ID


def test_duplicate_submit_while_saving_is_rejected():
    storage = InMemoryStorage()

    async def scenario():
        gate = asyncio.Event()

        async def handler(request):
            if request.url.path.endswith("/registration/personal-info"):
                await gate.wait()
                return httpx.Response(200, json={})
            if request.url.path.endswith("/auth/register"):
                return httpx.Response(200, json={"sessionId": SESSION_ID})
            return httpx.Response(200, json=[])

        client = RegistrationClient(base_url=BASE_URL, transport=httpx.MockTransport(handler))
        wizard = RegistrationWizard(client, RegistrationDraftStore(storage), SessionIdentityStore(storage), today=TODAY)
        payloads = valid_payloads()

        await wizard.complete_step(payloads[1])
        first = asyncio.create_task(wizard.complete_step(payloads[2]))
        while 2 not in wizard._in_flight:
            await asyncio.sleep(0)

        with pytest.raises(WizardStateError):
            await wizard.complete_step(payloads[2])

        gate.set()
        return await first

    result = run(scenario())
    assert result.ok
    assert result.state == "step_3"


class TestNavigation:
    def test_previous_step_is_local(self, wizard, service):
        run(complete_through(wizard, 3))
        calls_before = len(service.calls)

        result = wizard.previous_step()

        assert result.state == "step_3"
        assert len(service.calls) == calls_before
        assert wizard.draft_store.current_step == 3

    def test_previous_step_at_first_step_is_noop(self, wizard):
        assert wizard.previous_step().state == "step_1"

    def test_save_and_exit_writes_snapshot(self, wizard, storage):
        run(complete_through(wizard, 2))
        wizard.draft_store.update_form_data("kyc_identity", {"idNumber": "X9"})

        result = wizard.save_and_exit()

        assert result.ok
        snapshot = json.loads(storage.get(SNAPSHOT_KEY))
        assert snapshot["currentStep"] == 3
        assert snapshot["formData"]["kycIdentity"]["idNumber"] == "X9"
        assert wizard.get_last_saved() is not None


@pytest.mark.parametrize(
    "error,expected",
    [
        (Exception("401 Unauthorized"), True),
        (Exception("Session expired, please log in"), True),
        (Exception("500 Internal Server Error"), False),
        ("API Error: 401 ", True),
        (RegistrationApiError("Server fell over", ErrorKind.TRANSIENT, 500), False),
        (RegistrationApiError("Forbidden", ErrorKind.UNAUTHORIZED, 401), True),
    ],
)
def test_is_session_expired(error, expected):
    assert RegistrationWizard.is_session_expired(error) is expected


def test_handle_session_expired_clears_everything(wizard, identity, storage):
    run(complete_through(wizard, 2))
    identity.auth_token = "jwt"

    result = wizard.handle_session_expired()

    assert result.state == "session_expired"
    assert identity.session_id is None
    assert identity.auth_token is None
    assert storage.get(SNAPSHOT_KEY) is None


class TestLogin:
    def test_login_stores_identity_and_resumes(self, wizard, service, identity):
        service.routes["POST /auth/login"] = httpx.Response(
            200, json={"sessionId": "s-2", "token": "jwt", "isRegistrationComplete": False}
        )
        service.routes["GET /registration/progress"] = httpx.Response(200, json={"currentStep": 7, "savedData": {}})

        result = run(wizard.login("jane@example.com", "Str0ng!Pass"))

        assert result.session_id == "s-2"
        assert identity.session_id == "s-2"
        assert identity.auth_token == "jwt"
        assert identity.last_login_email == "jane@example.com"
        assert wizard.state == "step_7"
        assert service.calls_to("GET /registration/progress")[0][2] == "s-2"

    def test_bad_credentials(self, wizard, service, identity):
        service.routes["POST /auth/login"] = httpx.Response(401, json={})
        with pytest.raises(InvalidCredentialsError):
            run(wizard.login("jane@example.com", "wrong"))
        assert identity.session_id is None

    def test_logout(self, wizard, identity, storage):
        run(complete_through(wizard, 3))
        wizard.logout()
        assert identity.session_id is None
        assert storage.get(SNAPSHOT_KEY) is None
        assert wizard.state == "step_1"


def test_agreements_merge_documents_with_prior_acceptance(wizard, service):
    run(complete_through(wizard, 1))
    wizard.draft_store.update_form_data(
        "agreements",
        AgreementsData(agreements=[AgreementRecord(document_name="Fee Schedule", accepted=True)]),
    )

    records = wizard.agreements_for_step()

    assert [(r.document_name, r.accepted) for r in records] == [
        ("IRA Adoption Agreement", False),
        ("Fee Schedule", True),
    ]
    assert records[0].document_url == "https://docs.test/adoption.pdf"


def test_refresh_documents_expiry(wizard, service):
    run(complete_through(wizard, 1))
    service.routes["GET /registration/documents"] = httpx.Response(401)
    assert run(wizard.refresh_documents()) == []
    assert wizard.state == "session_expired"


class TestMalformedServerReplies:
    def test_hydrate_survives_unreadable_progress_and_documents(self, storage, client, service):
        store = RegistrationDraftStore(storage)
        store.set_step(5)
        SessionIdentityStore(storage).session_id = SESSION_ID
        service.routes["GET /registration/progress"] = httpx.Response(200, content=b"")
        service.routes["GET /registration/documents"] = httpx.Response(200, json=[{"url": "/x.pdf"}])
        wizard = RegistrationWizard(client, RegistrationDraftStore(storage), SessionIdentityStore(storage))

        result = run(wizard.hydrate())

        assert result.ok
        assert result.state == "step_5"
        assert wizard.documents == []

    def test_account_creation_advances_despite_bad_documents(self, wizard, service, identity):
        service.routes["GET /registration/documents"] = httpx.Response(200, json=[{"url": "/x.pdf"}])

        result = run(wizard.complete_step(valid_payloads()[1]))

        assert result.ok
        assert result.state == "step_2"
        assert identity.session_id == SESSION_ID
        assert len(service.calls_to("POST /auth/register")) == 1


class TestFlowErrorInfo:
    def test_failure_recorded_on_machine_and_cleared_on_next_submit(self, wizard, service):
        service.routes["POST /registration/personal-info"] = httpx.Response(500)

        async def scenario():
            await complete_through(wizard, 1)
            return await wizard.complete_step(valid_payloads()[2])

        run(scenario())
        info = wizard.machine.get_flow_info()
        assert info["error_code"] == "save_failed"
        assert info["error_message"] == "Failed to save step 2. Please try again."
        assert wizard.error_code == "save_failed"

        service.routes["POST /registration/personal-info"] = httpx.Response(200, json={"success": True})
        result = run(wizard.complete_step(valid_payloads()[2]))

        assert result.ok
        assert wizard.machine.get_flow_info()["error_code"] is None
        assert wizard.error is None

    def test_session_expiry_recorded_on_machine(self, wizard):
        wizard.handle_session_expired()
        info = wizard.machine.get_flow_info()
        assert info["state"] == "session_expired"
        assert info["error_code"] == "session_expired"
        assert info["error_message"] == "Session expired. Please log in again."
