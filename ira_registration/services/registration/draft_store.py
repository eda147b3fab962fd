"""
Local draft persistence for the registration wizard.

Holds the current step and the in-progress RegistrationDraft, and mirrors
them into durable key-value storage as one JSON snapshot. Nothing here talks
to the progress service.
"""

import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import structlog
from pydantic import TypeAdapter

from ira_registration.core.config import settings
from ira_registration.core.exceptions import StorageError
from ira_registration.domain.schemas import RegistrationDraft, WizardSnapshot
from ira_registration.domain.steps import FIRST_STEP, LAST_STEP
from ira_registration.infrastructure.storage import KeyValueStorage

logger = structlog.get_logger(__name__)

SECRET_FIELDS = ("password", "confirmPassword", "confirm_password")


def sanitize_draft(draft: RegistrationDraft) -> RegistrationDraft:
    """Copy of the draft with account-creation secrets removed."""
    if draft.account_creation is None:
        return draft
    account = draft.account_creation.model_copy(update={"password": None, "confirm_password": None})
    return draft.model_copy(update={"account_creation": account})


def _carries_secrets(raw: Dict[str, Any]) -> bool:
    form_data = raw.get("formData") or raw.get("form_data") or {}
    if not isinstance(form_data, dict):
        return False
    account = form_data.get("accountCreation") or form_data.get("account_creation") or {}
    return isinstance(account, dict) and any(account.get(f) for f in SECRET_FIELDS)


class RegistrationDraftStore:
    """
    In-memory wizard state backed by a single durable snapshot.

    The snapshot layout is {currentStep, formData, lastSavedAt}; formData
    never carries a password.
    """

    def __init__(self, storage: KeyValueStorage, storage_key: Optional[str] = None):
        self.storage = storage
        self.storage_key = storage_key or settings.storage_key
        self._current_step = FIRST_STEP
        self._form_data = RegistrationDraft()
        self._last_saved_at: Optional[datetime] = None

    @property
    def current_step(self) -> int:
        return self._current_step

    @property
    def form_data(self) -> RegistrationDraft:
        return self._form_data

    @property
    def last_saved_at(self) -> Optional[datetime]:
        return self._last_saved_at

    def update_form_data(self, step_key: str, data: Any) -> None:
        """
        Replace one draft sub-record whole.

        Raises:
            KeyError: If step_key is not a draft field
        """
        if step_key not in RegistrationDraft.model_fields:
            raise KeyError(f"Unknown draft key: {step_key}")
        annotation = RegistrationDraft.model_fields[step_key].annotation
        record = TypeAdapter(annotation).validate_python(data)
        self._form_data = self._form_data.model_copy(update={step_key: record})

    def set_step(self, step: int) -> None:
        """Move the step pointer and persist right away."""
        if not FIRST_STEP <= step <= LAST_STEP:
            raise ValueError(f"Step must be between {FIRST_STEP} and {LAST_STEP}, got {step}")
        self._current_step = step
        self.save_session()

    def save_session(self) -> bool:
        """
        Write the sanitized snapshot to durable storage.

        Failures are logged, never raised; the return value says whether
        the write landed.
        """
        now = datetime.now(timezone.utc)
        snapshot = WizardSnapshot(
            current_step=self._current_step,
            form_data=sanitize_draft(self._form_data),
            last_saved_at=now,
        )
        try:
            self.storage.set(self.storage_key, json.dumps(snapshot.to_wire()))
        except (StorageError, OSError, TypeError, ValueError) as e:
            logger.error("draft_save_failed", step=self._current_step, error=str(e))
            return False

        self._last_saved_at = now
        logger.debug("draft_saved", step=self._current_step, keys=self._form_data.present_keys())
        return True

    def load_session(self) -> bool:
        """
        Restore state from durable storage.

        Returns True when a snapshot was loaded. Missing or malformed
        snapshots leave the defaults in place.
        """
        try:
            raw_text = self.storage.get(self.storage_key)
        except StorageError as e:
            logger.error("draft_load_failed", error=str(e))
            return False

        if not raw_text:
            return False

        try:
            raw = json.loads(raw_text)
            snapshot = WizardSnapshot.model_validate(raw)
        except ValueError as e:
            # pydantic's ValidationError is a ValueError too
            logger.error("draft_snapshot_malformed", error=str(e))
            return False

        self._current_step = snapshot.current_step
        self._form_data = sanitize_draft(snapshot.form_data)
        self._last_saved_at = snapshot.last_saved_at

        if _carries_secrets(raw):
            logger.info("draft_snapshot_scrubbed")
            self.save_session()

        logger.debug("draft_loaded", step=self._current_step, keys=self._form_data.present_keys())
        return True

    def clear_session(self) -> None:
        """Drop the snapshot and reset to step 1 with an empty draft."""
        try:
            self.storage.remove(self.storage_key)
        except StorageError as e:
            logger.error("draft_clear_failed", error=str(e))
        self._current_step = FIRST_STEP
        self._form_data = RegistrationDraft()
        self._last_saved_at = None

    def get_last_saved(self) -> Optional[datetime]:
        """Timestamp of the stored snapshot, or None when nothing is stored."""
        try:
            raw_text = self.storage.get(self.storage_key)
        except StorageError:
            return self._last_saved_at
        if not raw_text:
            return None
        try:
            return WizardSnapshot.model_validate_json(raw_text).last_saved_at
        except ValueError:
            return None
