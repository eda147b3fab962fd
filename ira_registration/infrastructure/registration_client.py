"""
HTTP client for the registration progress service.

The session id returned by register/login names the server-side progress
record (the draft); it travels in the X-Session-Id header and is not an
auth credential.

Every failure surfaces as RegistrationApiError with a kind set here:
- UNAUTHORIZED: 401, or a body that says the session expired
- VALIDATION: any other 4xx
- TRANSIENT: 5xx, timeouts, connection errors, unreadable success bodies
"""

from typing import Any, Callable, Dict, List, Optional, TypeVar

import httpx
import structlog
from pydantic import ValidationError as PydanticValidationError
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from ira_registration.core.config import normalise_api_base_url, settings
from ira_registration.core.exceptions import (
    ErrorKind,
    InvalidCredentialsError,
    RegistrationApiError,
    SessionExpiredError,
)
from ira_registration.domain.schemas import (
    AgreementsData,
    BeneficiariesData,
    CamelCaseModel,
    DocumentRef,
    EmploymentFinancialData,
    FundingMethodData,
    InvestmentPreferencesData,
    IRATypeData,
    KYCIdentityData,
    LoginResult,
    PersonalInfoSubmission,
    RegisterResult,
    RegistrationProgress,
    RegistrationResponse,
    SecuritySetupData,
)

logger = structlog.get_logger(__name__)

SESSION_HEADER = "X-Session-Id"

# Save endpoint per step; step 1 is register, step 10 is the final submit.
STEP_ENDPOINTS: Dict[int, str] = {
    2: "personal-info",
    3: "kyc-identity",
    4: "employment",
    5: "ira-type",
    6: "beneficiaries",
    7: "funding",
    8: "investments",
    9: "agreements",
}
FINAL_SUBMIT_ENDPOINT = "security-2fa"

MALFORMED_RESPONSE_MESSAGE = "The registration service sent an unexpected response. Please try again."

T = TypeVar("T")


def extract_error_message(response: httpx.Response) -> str:
    """
    Readable message for a failed response.

    Field-level validation messages joined with spaces, else the body's
    message, else "API Error: <status> <reason>".
    """
    fallback = f"API Error: {response.status_code} {response.reason_phrase}"
    try:
        body = response.json()
    except ValueError:
        return fallback
    if not isinstance(body, dict):
        return fallback

    errors = body.get("errors")
    if isinstance(errors, dict):
        messages: List[str] = []
        for value in errors.values():
            if isinstance(value, list):
                messages.extend(str(m) for m in value if m)
            elif value:
                messages.append(str(value))
        if messages:
            return " ".join(messages)

    message = body.get("message")
    if isinstance(message, str) and message:
        return message
    return fallback


def classify_status(status_code: int, message: str = "") -> ErrorKind:
    if status_code == 401 or "session expired" in (message or "").lower():
        return ErrorKind.UNAUTHORIZED
    if 400 <= status_code < 500:
        return ErrorKind.VALIDATION
    return ErrorKind.TRANSIENT


def error_from_response(response: httpx.Response) -> RegistrationApiError:
    message = extract_error_message(response)
    kind = classify_status(response.status_code, f"{message} {response.text}")
    if kind == ErrorKind.UNAUTHORIZED:
        return SessionExpiredError(message, status_code=response.status_code)
    return RegistrationApiError(message, kind, status_code=response.status_code)


def parse_body(response: httpx.Response, parse: Callable[[Any], T]) -> T:
    """
    Decode a successful response body.

    A body that is not JSON, or does not fit the expected shape, is a
    TRANSIENT failure like any other bad upstream reply.
    """
    try:
        return parse(response.json())
    except (ValueError, PydanticValidationError) as e:
        path = response.request.url.path
        logger.warning("registration_api_malformed_body", path=path, status_code=response.status_code)
        raise RegistrationApiError(
            MALFORMED_RESPONSE_MESSAGE,
            ErrorKind.TRANSIENT,
            status_code=response.status_code,
            details={"path": path},
        ) from e


def _documents_from(body: Any) -> List[DocumentRef]:
    if not isinstance(body, list):
        logger.warning("documents_unexpected_shape", type=type(body).__name__)
        return []
    return [DocumentRef.model_validate(item) for item in body]


def _is_transient(exc: BaseException) -> bool:
    return isinstance(exc, RegistrationApiError) and exc.kind == ErrorKind.TRANSIENT


class RegistrationClient:
    """Async client for the register/login and registration progress endpoints"""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        read_retry_attempts: Optional[int] = None,
        retry_wait=None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = normalise_api_base_url(base_url) if base_url else settings.api_base_url
        self.read_retry_attempts = read_retry_attempts or settings.read_retry_attempts
        self.retry_wait = retry_wait or wait_exponential(multiplier=1, min=2, max=10)

        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout or settings.request_timeout_seconds,
            transport=transport,
            headers={"Content-Type": "application/json"},
        )

    async def __aenter__(self) -> "RegistrationClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self):
        """Close the HTTP client"""
        await self.client.aclose()

    async def _send(
        self,
        method: str,
        path: str,
        session_id: Optional[str] = None,
        json: Optional[Any] = None,
    ) -> httpx.Response:
        """Issue one request; transport failures become TRANSIENT errors."""
        headers = {SESSION_HEADER: session_id} if session_id else None
        try:
            return await self.client.request(method, path, headers=headers, json=json)
        except httpx.TimeoutException as e:
            logger.warning("registration_api_timeout", method=method, path=path)
            raise RegistrationApiError(
                "The request timed out. Please try again.",
                ErrorKind.TRANSIENT,
                details={"path": path},
            ) from e
        except httpx.TransportError as e:
            logger.warning("registration_api_unreachable", method=method, path=path, error=str(e))
            raise RegistrationApiError(
                "Unable to reach the registration service. Please check your connection and try again.",
                ErrorKind.TRANSIENT,
                details={"path": path},
            ) from e

    async def _request(
        self,
        method: str,
        path: str,
        session_id: Optional[str] = None,
        json: Optional[Any] = None,
    ) -> httpx.Response:
        response = await self._send(method, path, session_id=session_id, json=json)
        if response.is_success:
            return response

        error = error_from_response(response)
        logger.warning(
            "registration_api_error",
            method=method,
            path=path,
            status_code=response.status_code,
            kind=error.kind.value,
        )
        raise error

    async def _get(self, path: str, session_id: str) -> httpx.Response:
        """GET with the configured retry policy for transient failures."""
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.read_retry_attempts),
            wait=self.retry_wait,
            retry=retry_if_exception(_is_transient),
            reraise=True,
        ):
            with attempt:
                return await self._request("GET", path, session_id=session_id)

    async def register(self, email: str, password: str) -> RegisterResult:
        """
        Create the account and its progress record.

        Rejections come back as RegisterResult.error rather than raising.
        """
        response = await self._send("POST", "/auth/register", json={"email": email, "password": password})
        if not response.is_success:
            message = extract_error_message(response)
            logger.info("registration_rejected", status_code=response.status_code)
            return RegisterResult(error=message)

        result = parse_body(response, RegisterResult.model_validate)
        logger.info("registration_created", has_session=bool(result.session_id))
        return result

    async def login(self, email: str, password: str) -> LoginResult:
        """
        Authenticate a returning user.

        Raises:
            InvalidCredentialsError: On 401/403
            RegistrationApiError: For any other failure
        """
        response = await self._send("POST", "/auth/login", json={"email": email, "password": password})
        if response.status_code in (401, 403):
            logger.info("login_rejected", status_code=response.status_code)
            raise InvalidCredentialsError(details={"status_code": response.status_code})
        if not response.is_success:
            try:
                body = response.json()
            except ValueError:
                body = {}
            server_message = body.get("message") if isinstance(body, dict) else None
            message = server_message if isinstance(server_message, str) and server_message else (
                f"Login failed: {response.status_code} {response.reason_phrase}"
            )
            raise RegistrationApiError(
                message,
                classify_status(response.status_code, message),
                status_code=response.status_code,
            )

        result = parse_body(response, LoginResult.model_validate)
        logger.info("login_succeeded", registration_complete=result.is_registration_complete)
        return result

    async def fetch_progress(self, session_id: str) -> RegistrationProgress:
        response = await self._get("/registration/progress", session_id)
        return parse_body(response, RegistrationProgress.model_validate)

    async def fetch_documents(self, session_id: str) -> List[DocumentRef]:
        response = await self._get("/registration/documents", session_id)
        return parse_body(response, _documents_from)

    async def save_step(self, step: int, session_id: str, payload: CamelCaseModel) -> None:
        """
        POST one step's payload to its endpoint.

        Saves are idempotent per step on the server, so re-sending the same
        step overwrites rather than duplicates.
        """
        if step not in STEP_ENDPOINTS:
            raise ValueError(f"Step {step} has no save endpoint")
        endpoint = STEP_ENDPOINTS[step]
        await self._request(
            "POST", f"/registration/{endpoint}", session_id=session_id, json=payload.to_wire()
        )
        logger.info("step_saved", step=step, endpoint=endpoint)

    async def save_personal_info(self, session_id: str, data: PersonalInfoSubmission) -> None:
        await self.save_step(2, session_id, data)

    async def save_kyc_identity(self, session_id: str, data: KYCIdentityData) -> None:
        await self.save_step(3, session_id, data)

    async def save_employment_financial(self, session_id: str, data: EmploymentFinancialData) -> None:
        await self.save_step(4, session_id, data)

    async def save_ira_type(self, session_id: str, data: IRATypeData) -> None:
        await self.save_step(5, session_id, data)

    async def save_beneficiaries(self, session_id: str, data: BeneficiariesData) -> None:
        await self.save_step(6, session_id, data)

    async def save_funding_method(self, session_id: str, data: FundingMethodData) -> None:
        await self.save_step(7, session_id, data)

    async def save_investment_preferences(self, session_id: str, data: InvestmentPreferencesData) -> None:
        await self.save_step(8, session_id, data)

    async def save_agreements(self, session_id: str, data: AgreementsData) -> None:
        await self.save_step(9, session_id, data)

    async def submit_final_registration(
        self, session_id: str, security: SecuritySetupData
    ) -> RegistrationResponse:
        """Terminal call; the response carries the application id."""
        response = await self._request(
            "POST",
            f"/registration/{FINAL_SUBMIT_ENDPOINT}",
            session_id=session_id,
            json=security.final_submission(),
        )
        result = parse_body(response, RegistrationResponse.model_validate)
        logger.info("registration_submitted", success=result.success, application_id=result.application_id)
        return result
