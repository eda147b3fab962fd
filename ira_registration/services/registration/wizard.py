"""
Registration wizard controller.

Owns the step machine and coordinates the draft store, the session
identity and the progress service client:

- hydrate(): restore local draft, reconcile with server progress
- complete_step(payload): validate -> merge into draft -> save -> advance
- previous_step() / save_and_exit(): local-only navigation and persistence
- handle_session_expired(): clear identifiers and draft, absorb

Remote copy is authoritative for the current step and committed payloads;
the local draft for anything not yet saved.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

import structlog
from pydantic import ValidationError as PydanticValidationError

from ira_registration.core.exceptions import (
    ErrorKind,
    RegistrationApiError,
    StepValidationError,
    WizardStateError,
)
from ira_registration.domain.schemas import (
    AccountCreationData,
    AddressData,
    AgreementRecord,
    DocumentRef,
    LoginResult,
    RegistrationDraft,
    RegistrationProgress,
    RegistrationResponse,
    SecuritySetupData,
    StepPayload,
    to_camel,
)
from ira_registration.domain.steps import (
    FIRST_STEP,
    LAST_STEP,
    STEPS,
    StepDefinition,
    get_step,
    progress_percentage,
    step_for_payload,
)
from ira_registration.infrastructure.registration_client import RegistrationClient
from ira_registration.services.auth.session_identity import SessionIdentityStore
from ira_registration.services.registration.agreements import build_agreements
from ira_registration.services.registration.draft_store import RegistrationDraftStore
from ira_registration.services.registration.step_validation import validate_step
from ira_registration.state_machines.registration_flow import RegistrationFlowMachine

logger = structlog.get_logger(__name__)

SESSION_LOST_MESSAGE = "Session expired. Please log in again."
ACCOUNT_CREATION_FAILED = "Failed to create account. Please try again."
ACCOUNT_CREATION_UNAVAILABLE = "Failed to create account. Please check your email and try again."
SUBMIT_FAILED = "Failed to submit registration. Please try again."

# Wire key (camelCase or snake_case) -> draft field
DRAFT_KEYS: Dict[str, str] = {}
for _name in RegistrationDraft.model_fields:
    DRAFT_KEYS[_name] = _name
    DRAFT_KEYS[to_camel(_name)] = _name

ADDRESS_WIRE_FIELDS = frozenset(
    key for name in AddressData.model_fields for key in (name, to_camel(name))
)


def split_personal_payload(personal: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    """
    Separate address fields from a combined personal-info payload.

    Step 2 is saved flattened, so the server may hand back personal and
    address fields in one record.
    """
    address = {k: v for k, v in personal.items() if k in ADDRESS_WIRE_FIELDS}
    person = {k: v for k, v in personal.items() if k not in ADDRESS_WIRE_FIELDS}
    return {"personal_info": person, "address": address}


@dataclass
class StepResult:
    """Outcome of a wizard action, for the render layer."""

    ok: bool
    state: str  # "step_<n>" | "complete" | "session_expired"
    errors: Dict[str, str] = field(default_factory=dict)
    message: Optional[str] = None


class RegistrationWizard:
    """Drives the ten-step registration for one user on one device."""

    def __init__(
        self,
        client: RegistrationClient,
        draft_store: RegistrationDraftStore,
        identity: SessionIdentityStore,
        today: Optional[date] = None,
    ):
        self.client = client
        self.draft_store = draft_store
        self.identity = identity
        self.today = today

        self.machine = RegistrationFlowMachine()
        self.documents: List[DocumentRef] = []
        self.progress: Optional[RegistrationProgress] = None
        self.completion: Optional[RegistrationResponse] = None
        self.hydrated = False
        self._in_flight: Set[int] = set()

        handlers: Dict[int, Callable[[StepDefinition, Any], Awaitable[StepResult]]] = {
            step.number: self._submit_saved_step for step in STEPS
        }
        handlers[FIRST_STEP] = self._submit_account_creation
        handlers[LAST_STEP] = self._submit_security_setup
        self._handlers = handlers

    # State

    @property
    def state(self) -> str:
        return self.machine.current_state.id

    @property
    def current_step(self) -> Optional[int]:
        return self.machine.current_step

    @property
    def error(self) -> Optional[str]:
        """Banner text for the last failed action, cleared on the next submit."""
        return self.machine.error_message

    @property
    def error_code(self) -> Optional[str]:
        return self.machine.error_code

    @property
    def is_complete(self) -> bool:
        return self.state == "complete"

    @property
    def is_session_expired_state(self) -> bool:
        return self.state == "session_expired"

    @property
    def application_id(self) -> Optional[str]:
        if self.completion and self.completion.application_id:
            return self.completion.application_id
        if self.progress:
            return self.progress.application_id
        return None

    @property
    def step_title(self) -> Optional[str]:
        return get_step(self.current_step).title if self.current_step else None

    @property
    def progress_percentage(self) -> float:
        if self.current_step is None:
            return 100.0 if self.is_complete else 0.0
        return progress_percentage(self.current_step)

    def get_last_saved(self):
        return self.draft_store.get_last_saved()

    def _result(self, ok: bool, errors: Optional[Dict[str, str]] = None, message: Optional[str] = None) -> StepResult:
        return StepResult(ok=ok, state=self.state, errors=dict(errors or {}), message=message)

    def _sync_step(self) -> None:
        if self.current_step is not None:
            self.draft_store.set_step(self.current_step)

    # Session expiry

    @staticmethod
    def is_session_expired(error: Any) -> bool:
        """
        True when an error means the server dropped the session.

        Structured errors are judged by their kind; anything else by its
        message ("401" or "session expired").
        """
        kind = getattr(error, "kind", None)
        if kind is not None:
            return kind == ErrorKind.UNAUTHORIZED
        message = str(error or "").lower()
        return "401" in message or "session expired" in message

    def handle_session_expired(self) -> StepResult:
        """Destroy identifiers and the local draft; absorb into session_expired."""
        self.identity.clear()
        self.draft_store.clear_session()
        self.documents = []
        if not self.machine.is_final:
            self.machine.expire()
        self.machine.set_error("session_expired", SESSION_LOST_MESSAGE)
        logger.warning("session_expired")
        return self._result(False, message=SESSION_LOST_MESSAGE)

    # Mount / resume

    async def hydrate(self) -> StepResult:
        """
        Restore the wizard on mount.

        Loads the local draft, then with a stored session id fetches
        documents and progress; the server's step wins. Without a session id
        any step past 1 is treated as an expired session, with no network
        call.
        """
        self.machine = RegistrationFlowMachine()
        self.progress = None
        self.completion = None
        self.draft_store.load_session()
        local_step = self.draft_store.current_step
        session_id = self.identity.session_id

        if not session_id:
            self.hydrated = True
            if local_step > FIRST_STEP:
                logger.info("resume_without_session", local_step=local_step)
                return self.handle_session_expired()
            return self._result(True)

        await self._load_documents(session_id)

        try:
            progress = await self.client.fetch_progress(session_id)
        except RegistrationApiError as e:
            if self.is_session_expired(e):
                self.hydrated = True
                return self.handle_session_expired()
            logger.warning("progress_fetch_failed", kind=e.kind.value, error=e.message)
            progress = None

        if progress is not None:
            self.progress = progress
            self._merge_server_data(progress.data)

        target = local_step
        if progress is not None and progress.current_step:
            if FIRST_STEP <= progress.current_step <= LAST_STEP:
                target = progress.current_step
            else:
                logger.warning("progress_step_out_of_range", step=progress.current_step)

        if progress is not None and progress.is_complete:
            self.machine.resume(completed=True)
            self.completion = RegistrationResponse(success=True, application_id=progress.application_id)
        elif target > FIRST_STEP:
            self.machine.resume(step=target)
            self._sync_step()
        else:
            self._sync_step()

        self.hydrated = True
        logger.info("wizard_hydrated", state=self.state)
        return self._result(True)

    def _merge_server_data(self, data: Dict[str, Any]) -> None:
        """
        Overlay server-held step records on the local draft.

        personalInfo and address go first; a combined personal payload is
        split so address fields land in the address record. Every other
        known key is overlaid as-is.
        """
        if not data:
            return

        personal = data.get("personalInfo") or data.get("personal_info")
        address = data.get("address")
        if isinstance(personal, dict):
            parts = split_personal_payload(personal)
            self._overlay("personal_info", parts["personal_info"])
            if parts["address"] and not isinstance(address, dict):
                self._overlay("address", parts["address"])
        if isinstance(address, dict):
            self._overlay("address", address)

        for key, value in data.items():
            draft_key = DRAFT_KEYS.get(key)
            if draft_key is None:
                continue
            if draft_key in ("personal_info", "address"):
                continue
            self._overlay(draft_key, value)

    def _overlay(self, draft_key: str, value: Any) -> None:
        try:
            self.draft_store.update_form_data(draft_key, value)
        except PydanticValidationError as e:
            logger.warning("server_record_rejected", key=draft_key, error_count=e.error_count())

    async def _load_documents(self, session_id: str) -> None:
        try:
            self.documents = await self.client.fetch_documents(session_id)
        except RegistrationApiError as e:
            logger.warning("documents_fetch_failed", kind=e.kind.value, error=e.message)

    async def refresh_documents(self) -> List[DocumentRef]:
        """Re-fetch the required document list; expiry absorbs the wizard."""
        session_id = self.identity.session_id
        if not session_id:
            return self.documents
        try:
            self.documents = await self.client.fetch_documents(session_id)
        except RegistrationApiError as e:
            if self.is_session_expired(e):
                self.handle_session_expired()
            else:
                logger.warning("documents_fetch_failed", kind=e.kind.value, error=e.message)
        return self.documents

    def agreements_for_step(self) -> List[AgreementRecord]:
        existing = self.draft_store.form_data.agreements
        return build_agreements(self.documents, existing.agreements if existing else None)

    # Step submission

    def ensure_valid(self, payload: StepPayload) -> None:
        """
        Raises:
            StepValidationError: With the per-field messages
        """
        step = step_for_payload(payload).number
        errors = validate_step(payload, today=self.today)
        if errors:
            raise StepValidationError(step, errors)

    async def complete_step(self, payload: StepPayload) -> StepResult:
        """
        Submit the active step.

        Raises:
            TypeError: If the payload is not a step model
            WizardStateError: On a finished flow, a payload for another step,
                or a step whose save is still in flight
        """
        definition = step_for_payload(payload)
        step = definition.number

        if self.machine.is_final:
            raise WizardStateError(f"Registration is already {self.state}", {"step": step})
        if step != self.current_step:
            raise WizardStateError(
                f"Step {step} submitted while on step {self.current_step}",
                {"step": step, "current_step": self.current_step},
            )
        if step in self._in_flight:
            raise WizardStateError(f"Step {step} is already being saved", {"step": step})

        try:
            self.ensure_valid(payload)
        except StepValidationError as e:
            logger.info("step_invalid", step=step, fields=sorted(e.errors))
            return self._result(False, errors=e.errors)

        self._in_flight.add(step)
        self.machine.clear_error()
        try:
            return await self._handlers[step](definition, payload)
        finally:
            self._in_flight.discard(step)

    async def _submit_account_creation(self, definition: StepDefinition, payload: AccountCreationData) -> StepResult:
        try:
            result = await self.client.register(payload.email, payload.password)
        except RegistrationApiError as e:
            logger.error("account_creation_failed", kind=e.kind.value)
            return self._fail("registration_failed", ACCOUNT_CREATION_UNAVAILABLE)

        if result.error:
            return self._fail("registration_rejected", result.error)
        if not result.session_id:
            return self._fail("registration_failed", ACCOUNT_CREATION_FAILED)

        self.identity.session_id = result.session_id
        self.identity.last_login_email = payload.email
        await self._load_documents(result.session_id)

        # Only what is safe to keep; the password never enters the draft.
        self.draft_store.update_form_data(
            "account_creation",
            AccountCreationData(email=payload.email, accept_terms=payload.accept_terms),
        )
        self.machine.advance()
        self._sync_step()
        logger.info("step_completed", step=definition.number)
        return self._result(True)

    async def _submit_saved_step(self, definition: StepDefinition, payload: StepPayload) -> StepResult:
        session_id = self.identity.session_id
        if not session_id:
            return self.handle_session_expired()

        self._merge_payload(definition, payload)

        try:
            await self.client.save_step(definition.number, session_id, payload)
        except RegistrationApiError as e:
            if self.is_session_expired(e):
                return self.handle_session_expired()
            self.draft_store.save_session()
            if e.kind == ErrorKind.VALIDATION:
                return self._fail("validation", e.message)
            return self._fail("save_failed", f"Failed to save step {definition.number}. Please try again.")

        self.machine.advance()
        self._sync_step()
        logger.info("step_completed", step=definition.number)
        return self._result(True)

    async def _submit_security_setup(self, definition: StepDefinition, payload: SecuritySetupData) -> StepResult:
        session_id = self.identity.session_id
        if not session_id:
            return self.handle_session_expired()

        self._merge_payload(definition, payload)

        try:
            response = await self.client.submit_final_registration(session_id, payload)
        except RegistrationApiError as e:
            if self.is_session_expired(e):
                return self.handle_session_expired()
            self.draft_store.save_session()
            return self._fail("submit_failed", SUBMIT_FAILED)

        if not response.success:
            return self._fail("submit_rejected", response.message or SUBMIT_FAILED)

        self.completion = response
        self.machine.finish()
        self.identity.clear()
        self.draft_store.clear_session()
        logger.info("registration_completed", application_id=response.application_id)
        return self._result(True, message=response.message or None)

    def _merge_payload(self, definition: StepDefinition, payload: StepPayload) -> None:
        if len(definition.draft_keys) == 1:
            self.draft_store.update_form_data(definition.draft_keys[0], payload)
            return
        for key in definition.draft_keys:
            self.draft_store.update_form_data(key, getattr(payload, key))

    def _fail(self, code: str, message: str) -> StepResult:
        self.machine.set_error(code, message)
        logger.info("step_failed", step=self.current_step, error_code=code, message=message)
        return self._result(False, message=message)

    # Navigation and persistence

    def previous_step(self) -> StepResult:
        """Back one step; no network, no validation."""
        if self.current_step is not None and self.current_step > FIRST_STEP:
            self.machine.back()
            self._sync_step()
        return self._result(True)

    def save_and_exit(self) -> StepResult:
        """Persist locally only; a failing write is logged by the store."""
        self.draft_store.save_session()
        logger.info("save_and_exit", step=self.current_step)
        return self._result(True)

    # Login / logout

    async def login(self, email: str, password: str) -> LoginResult:
        """
        Authenticate, store the identifiers and resume from server progress.

        Raises:
            InvalidCredentialsError: On rejected credentials
            RegistrationApiError: For other failures
        """
        result = await self.client.login(email, password)
        if result.session_id:
            self.identity.session_id = result.session_id
        if result.token:
            self.identity.auth_token = result.token
        self.identity.last_login_email = email

        await self.hydrate()
        return result

    def logout(self) -> None:
        """Forget the session and draft; the next user starts at step 1."""
        self.identity.clear()
        self.draft_store.clear_session()
        self.machine = RegistrationFlowMachine()
        self.documents = []
        self.progress = None
        self.completion = None
        logger.info("logged_out")
