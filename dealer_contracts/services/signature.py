"""Signature session manager.

State machine of one signing request:

    pending -> signed    (terminal, carries the signer audit record)
    pending -> expired   (terminal; by timeout, evaluated lazily, or by staff)

An unknown or malformed token is not a state; it is reported as NotFoundError.
The pending -> signed transition is a conditional write on the stored status,
so of two concurrent signing attempts exactly one wins.
"""

import base64
import binascii
import io
import logging
import re
import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from reportlab.lib.utils import ImageReader

from dealer_contracts.db.base import DatabaseInterface
from dealer_contracts.exceptions import (
    AlreadyCompletedError,
    ExpiredError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from dealer_contracts.models.contract import (
    ContractOptions,
    ContractType,
    GeneratedContract,
    coerce_contract_type,
)
from dealer_contracts.models.signature import (
    ExpiredState,
    PendingState,
    SignatureSession,
    SignatureStatus,
    SignedState,
    SignResult,
)
from dealer_contracts.models.vehicle import VehicleSnapshot
from dealer_contracts.services.archive import ContractArchive
from dealer_contracts.services.pricing import compute_pricing
from dealer_contracts.services.renderer import render_contract
from dealer_contracts.utils.config import get_settings

logger = logging.getLogger(__name__)

DEFAULT_VALIDITY = timedelta(days=7)
TOKEN_BYTES = 32
_TOKEN_RE = re.compile(r"^[0-9a-f]{64}$")
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def issue_token() -> str:
    """Unguessable session token: 32 random bytes as hex"""
    return secrets.token_hex(TOKEN_BYTES)


def compute_expiry(created_at: datetime, validity: timedelta = DEFAULT_VALIDITY) -> datetime:
    return created_at + validity


def is_well_formed_token(token: str) -> bool:
    return bool(token) and bool(_TOKEN_RE.match(token))


def signature_link(token: str, base_url: str = "") -> str:
    """Public signing page URL for a token"""
    return f"{base_url.rstrip('/')}/contract/sign/{token}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _check_signature_image(image: str) -> None:
    payload = image.split(",", 1)[1] if image.startswith("data:") else image
    if image.startswith("data:") and not image.startswith("data:image/"):
        raise ValidationError("Signature must be an image")
    try:
        decoded = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValidationError(f"Signature image is not valid base64: {e}") from e
    if not decoded:
        raise ValidationError("Signature image is empty")
    try:
        ImageReader(io.BytesIO(decoded)).getSize()
    except Exception as e:
        raise ValidationError(f"Signature is not a readable image: {e}") from e


class SignatureSessionManager:
    """Creates, validates and completes signature sessions."""

    def __init__(
        self,
        db: Optional[DatabaseInterface] = None,
        archive: Optional[ContractArchive] = None,
        validity: Optional[timedelta] = None,
        base_url: Optional[str] = None,
        archive_on_sign: bool = True,
    ):
        settings = get_settings()
        self._db = db
        self._archive = archive
        self.validity = validity if validity is not None else timedelta(days=settings.signature_validity_days)
        self.base_url = base_url if base_url is not None else settings.public_base_url
        self.archive_on_sign = archive_on_sign

    @property
    def db(self) -> DatabaseInterface:
        """Lazy-load database client."""
        if self._db is None:
            from dealer_contracts.db.supabase import get_database
            self._db = get_database()
        return self._db

    @property
    def archive(self) -> ContractArchive:
        if self._archive is None:
            self._archive = ContractArchive(db=self.db)
        return self._archive

    def signature_url(self, token: str) -> str:
        return signature_link(token, self.base_url)

    # ---- Creation ----

    def create_session(
        self,
        vehicle: VehicleSnapshot,
        contract_type: ContractType | str,
        options: ContractOptions,
        now: Optional[datetime] = None,
    ) -> SignatureSession:
        """Open a new pending session with frozen copies of vehicle and options.

        Existing sessions for the same vehicle are left untouched.
        """
        now = now or _utcnow()
        options = options.model_copy(update={"contract_type": coerce_contract_type(contract_type)})
        # Refuse options the signer could never see priced
        compute_pricing(vehicle, options)

        session = SignatureSession(
            id=str(uuid.uuid4()),
            token=issue_token(),
            vehicle_id=vehicle.id,
            contract_type=options.contract_type,
            contract_options=options,
            vehicle=vehicle,
            created_at=now,
            expires_at=compute_expiry(now, self.validity),
            state=PendingState(),
        )
        try:
            self.db.insert_session(self._to_row(session))
        except Exception as e:
            raise StorageError(f"Failed to create signature session: {e}") from e

        logger.info(f"Created signature session {session.id} for vehicle {vehicle.id}")
        return session

    # ---- Reads ----

    def get_session(self, token: str) -> SignatureSession:
        """Load a session regardless of its state. Raises NotFoundError."""
        if not is_well_formed_token(token):
            raise NotFoundError("Signature session not found")
        try:
            row = self.db.get_session(token)
        except Exception as e:
            raise StorageError(f"Failed to read signature session: {e}") from e
        if row is None:
            raise NotFoundError("Signature session not found")
        return self._from_row(row)

    def validate_session(self, token: str, now: Optional[datetime] = None) -> SignatureSession:
        """Return the session if it can still be signed.

        Pure read. Raises NotFoundError, AlreadyCompletedError or ExpiredError.
        """
        session = self.get_session(token)
        now = now or _utcnow()
        if session.status == SignatureStatus.SIGNED:
            raise AlreadyCompletedError("Contract is al ondertekend")
        if session.status == SignatureStatus.EXPIRED or session.is_expired_at(now):
            raise ExpiredError("Ondertekeningssessie is verlopen")
        return session

    def list_sessions(self, vehicle_id: str) -> List[SignatureSession]:
        try:
            rows = self.db.list_sessions(vehicle_id)
        except Exception as e:
            raise StorageError(f"Failed to list sessions for vehicle {vehicle_id}: {e}") from e
        return [self._from_row(row) for row in rows]

    def render_for_signer(self, token: str, now: Optional[datetime] = None) -> GeneratedContract:
        """The contract the signer reviews, rendered from the frozen snapshot."""
        session = self.validate_session(token, now)
        pricing = compute_pricing(session.vehicle, session.contract_options)
        return render_contract(
            session.vehicle, session.contract_options, pricing, self.archive.company,
            signature_url=self.signature_url(token), today=now or _utcnow(),
        )

    # ---- Transitions ----

    def sign_session(
        self,
        token: str,
        signer_name: str,
        signer_email: str,
        signature_image: str,
        source_address: str,
        now: Optional[datetime] = None,
    ) -> SignResult:
        """Record a signature and archive the signed contract.

        The session is marked signed before archiving. If archiving fails the
        signature stands and the failure is returned on SignResult.archive_error.
        """
        signer_name = (signer_name or "").strip()
        signer_email = (signer_email or "").strip()
        if not signer_name:
            raise ValidationError("Signer name is required")
        if not _EMAIL_RE.match(signer_email):
            raise ValidationError("A valid signer email is required")
        if not signature_image:
            raise ValidationError("Signature image is required")
        _check_signature_image(signature_image)

        now = now or _utcnow()
        # Re-validate right before writing
        session = self.validate_session(token, now)

        signed = SignedState(
            signer_name=signer_name,
            signer_email=signer_email,
            signature_image=signature_image,
            source_address=(source_address or "").strip() or "unknown",
            signed_at=now,
        )
        changes = {
            "status": SignatureStatus.SIGNED.value,
            "signer_name": signed.signer_name,
            "signer_email": signed.signer_email,
            "signature_image": signed.signature_image,
            "source_address": signed.source_address,
            "signed_at": signed.signed_at.isoformat(),
        }
        try:
            updated = self.db.update_session_if_status(token, SignatureStatus.PENDING.value, changes)
        except Exception as e:
            raise StorageError(f"Failed to record signature: {e}") from e
        if not updated:
            current = self.get_session(token)
            if current.status == SignatureStatus.EXPIRED:
                raise ExpiredError("Ondertekeningssessie is verlopen")
            raise AlreadyCompletedError("Contract is al ondertekend")

        session = session.model_copy(update={"state": signed})
        logger.info(f"Session {session.id} signed by {signer_name} for vehicle {session.vehicle_id}")

        result = SignResult(session=session)
        if not self.archive_on_sign:
            return result
        try:
            handle = self.archive.save_signed(session, signature_url=None)
            result.contract_id = handle.id
            result.artifact_url = handle.artifact_url
        except Exception as e:
            logger.error(f"Signed contract for session {session.id} could not be archived: {e}")
            result.archive_error = str(e)
        return result

    def invalidate_session(self, token: str, now: Optional[datetime] = None) -> SignatureSession:
        """Staff-side cancel of a pending session, e.g. before reissuing a link."""
        session = self.get_session(token)
        if session.status == SignatureStatus.SIGNED:
            raise AlreadyCompletedError("Contract is al ondertekend")
        if session.status == SignatureStatus.EXPIRED:
            return session
        now = now or _utcnow()
        state = ExpiredState(expired_at=now, reason="invalidated")
        changes = {
            "status": SignatureStatus.EXPIRED.value,
            "expired_at": now.isoformat(),
            "expired_reason": state.reason,
        }
        try:
            updated = self.db.update_session_if_status(token, SignatureStatus.PENDING.value, changes)
        except Exception as e:
            raise StorageError(f"Failed to invalidate session: {e}") from e
        if not updated:
            # Lost against a concurrent signature or invalidation
            current = self.get_session(token)
            if current.status == SignatureStatus.SIGNED:
                raise AlreadyCompletedError("Contract is al ondertekend")
            return current
        logger.info(f"Session {session.id} invalidated")
        return session.model_copy(update={"state": state})

    # ---- Row mapping ----

    @staticmethod
    def _to_row(session: SignatureSession) -> dict:
        return {
            "id": session.id,
            "token": session.token,
            "vehicle_id": session.vehicle_id,
            "contract_type": session.contract_type.value,
            "options_json": session.contract_options.model_dump_json(),
            "vehicle_json": session.vehicle.model_dump_json(),
            "created_at": session.created_at.isoformat(),
            "expires_at": session.expires_at.isoformat(),
            "status": session.status.value,
        }

    @staticmethod
    def _from_row(row: dict) -> SignatureSession:
        status = row.get("status") or SignatureStatus.PENDING.value
        try:
            if status == SignatureStatus.SIGNED.value:
                state = SignedState(
                    signer_name=row.get("signer_name") or "",
                    signer_email=row.get("signer_email") or "",
                    signature_image=row.get("signature_image") or "",
                    source_address=row.get("source_address") or "",
                    signed_at=row.get("signed_at"),
                )
            elif status == SignatureStatus.EXPIRED.value:
                state = ExpiredState(
                    expired_at=row.get("expired_at") or row["expires_at"],
                    reason=row.get("expired_reason") or "timeout",
                )
            else:
                state = PendingState()
            return SignatureSession(
                id=row["id"],
                token=row["token"],
                vehicle_id=row["vehicle_id"],
                contract_type=row["contract_type"],
                contract_options=ContractOptions.model_validate_json(row["options_json"]),
                vehicle=VehicleSnapshot.model_validate_json(row["vehicle_json"]),
                created_at=row["created_at"],
                expires_at=row["expires_at"],
                state=state,
            )
        except Exception as e:
            raise StorageError(f"Corrupt signature session record {row.get('id')}: {e}") from e
