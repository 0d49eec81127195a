"""Tests for signature sessions: lifecycle, expiry and single completion"""

import threading
from datetime import timedelta

import pytest

from dealer_contracts.db.sqlite import upsert_vehicle
from dealer_contracts.exceptions import (
    AlreadyCompletedError,
    ExpiredError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from dealer_contracts.models import ContractOptions, ContractType, SignatureStatus
from dealer_contracts.services.signature import (
    SignatureSessionManager,
    compute_expiry,
    issue_token,
    signature_link,
)


def sign(manager, token, now=None, **overrides):
    kwargs = dict(
        signer_name="Jan de Vries",
        signer_email="jan@example.nl",
        signature_image=overrides.pop("signature_image"),
        source_address="198.51.100.20",
        now=now,
    )
    kwargs.update(overrides)
    return manager.sign_session(token, **kwargs)


@pytest.fixture
def options():
    return ContractOptions(delivery_package="12_maanden_autocity", payment_terms="aanbetaling_10")


@pytest.fixture
def session(manager, vehicle, options, fixed_now):
    return manager.create_session(vehicle, "b2c", options, now=fixed_now)


class TestTokens:

    def test_token_format(self):
        token = issue_token()
        assert len(token) == 64
        int(token, 16)

    def test_tokens_are_unique(self):
        assert len({issue_token() for _ in range(200)}) == 200

    def test_compute_expiry(self, fixed_now):
        assert compute_expiry(fixed_now) == fixed_now + timedelta(days=7)
        assert compute_expiry(fixed_now, timedelta(hours=1)) == fixed_now + timedelta(hours=1)

    def test_signature_link(self):
        assert signature_link("abc", "https://dealer.test/") == "https://dealer.test/contract/sign/abc"


class TestCreate:

    def test_new_session_is_pending(self, manager, session, fixed_now):
        stored = manager.get_session(session.token)
        assert stored.status == SignatureStatus.PENDING
        assert stored.created_at == fixed_now
        assert stored.expires_at == fixed_now + timedelta(days=7)
        assert stored.vehicle_id == "vehicle-1"

    def test_contract_type_argument_wins(self, manager, vehicle, options, fixed_now):
        created = manager.create_session(vehicle, ContractType.B2B, options, now=fixed_now)
        stored = manager.get_session(created.token)
        assert stored.contract_type == ContractType.B2B
        assert stored.contract_options.contract_type == ContractType.B2B

    def test_signature_url(self, manager, session):
        assert manager.signature_url(session.token) == f"https://dealer.test/contract/sign/{session.token}"

    def test_invalid_options_create_nothing(self, manager, vehicle):
        with pytest.raises(ValidationError):
            manager.create_session(vehicle, "b2c", ContractOptions(delivery_package="onbekend"))
        assert manager.list_sessions("vehicle-1") == []

    def test_zero_validity_is_honoured(self, db, vehicle, options, fixed_now):
        manager = SignatureSessionManager(db=db, validity=timedelta(0))
        assert manager.validity == timedelta(0)
        session = manager.create_session(vehicle, "b2c", options, now=fixed_now)
        assert session.expires_at == fixed_now
        with pytest.raises(ExpiredError):
            manager.validate_session(session.token, now=fixed_now + timedelta(seconds=1))

    def test_several_sessions_per_vehicle(self, manager, vehicle, options, fixed_now):
        first = manager.create_session(vehicle, "b2c", options, now=fixed_now)
        second = manager.create_session(vehicle, "b2c", options, now=fixed_now + timedelta(minutes=5))
        tokens = [s.token for s in manager.list_sessions("vehicle-1")]
        assert tokens == [second.token, first.token]

    def test_snapshot_is_frozen(self, manager, session, fixed_now):
        upsert_vehicle({"id": "vehicle-1", "license_number": "AB-123-C", "selling_price": 99999})
        contract = manager.render_for_signer(session.token, now=fixed_now)
        assert "Verkoopprijs: € 20.000" in contract.text
        assert "99.999" not in contract.text


class TestValidate:

    def test_unknown_token(self, manager):
        with pytest.raises(NotFoundError):
            manager.validate_session(issue_token())

    @pytest.mark.parametrize("token", ["", "abc", "Z" * 64, "../../etc/passwd"])
    def test_malformed_token(self, manager, token):
        with pytest.raises(NotFoundError):
            manager.validate_session(token)

    def test_expiry_boundary(self, manager, session):
        manager.validate_session(session.token, now=session.expires_at - timedelta(seconds=1))
        manager.validate_session(session.token, now=session.expires_at)
        with pytest.raises(ExpiredError):
            manager.validate_session(session.token, now=session.expires_at + timedelta(seconds=1))

    def test_validate_does_not_write(self, manager, session):
        with pytest.raises(ExpiredError):
            manager.validate_session(session.token, now=session.expires_at + timedelta(days=1))
        assert manager.get_session(session.token).status == SignatureStatus.PENDING

    def test_render_for_signer_has_link(self, manager, session, fixed_now):
        contract = manager.render_for_signer(session.token, now=fixed_now)
        assert manager.signature_url(session.token) in contract.text


class TestSign:

    def test_sign_records_audit_and_archives(self, manager, archive, session, fixed_now, signature_png):
        now = fixed_now + timedelta(hours=2)
        result = sign(manager, session.token, now=now, signature_image=signature_png)

        assert result.archived
        assert result.archive_error is None
        state = manager.get_session(session.token).state
        assert state.status == "signed"
        assert state.signer_name == "Jan de Vries"
        assert state.signer_email == "jan@example.nl"
        assert state.source_address == "198.51.100.20"
        assert state.signed_at == now

        latest = archive.get_latest("vehicle-1")
        assert latest.id == result.contract_id
        assert latest.metadata.session_token == session.token
        assert archive.download(latest.id).startswith(b"%PDF")

    def test_second_sign_is_rejected(self, manager, session, fixed_now, signature_png):
        sign(manager, session.token, now=fixed_now, signature_image=signature_png)
        with pytest.raises(AlreadyCompletedError):
            sign(manager, session.token, now=fixed_now, signature_image=signature_png)

    def test_sign_after_expiry(self, manager, session, signature_png):
        with pytest.raises(ExpiredError):
            sign(manager, session.token, now=session.expires_at + timedelta(seconds=1),
                 signature_image=signature_png)
        assert manager.get_session(session.token).status == SignatureStatus.PENDING

    def test_missing_source_address_is_recorded_as_unknown(self, manager, session, fixed_now, signature_png):
        sign(manager, session.token, now=fixed_now, source_address="", signature_image=signature_png)
        assert manager.get_session(session.token).state.source_address == "unknown"

    @pytest.mark.parametrize("overrides", [
        {"signer_name": "  "},
        {"signer_email": "geen-email"},
        {"signature_image": ""},
        {"signature_image": "data:text/plain;base64,aGFsbG8="},
        {"signature_image": "data:image/png;base64,@@@"},
        {"signature_image": "data:image/png;base64,aGFsbG8="},
    ])
    def test_bad_input_is_rejected(self, manager, session, fixed_now, signature_png, overrides):
        overrides.setdefault("signature_image", signature_png)
        with pytest.raises(ValidationError):
            sign(manager, session.token, now=fixed_now, **overrides)
        assert manager.get_session(session.token).status == SignatureStatus.PENDING

    def test_concurrent_sign_has_one_winner(self, db, vehicle, options, signature_png):
        manager = SignatureSessionManager(db=db, archive_on_sign=False)
        session = manager.create_session(vehicle, "b2c", options)
        barrier = threading.Barrier(2)
        outcomes = []

        def attempt(name):
            barrier.wait()
            try:
                manager.sign_session(session.token, name, f"{name}@example.nl", signature_png, "192.0.2.1")
                outcomes.append("signed")
            except AlreadyCompletedError:
                outcomes.append("already")

        threads = [threading.Thread(target=attempt, args=(n,)) for n in ("anna", "bram")]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sorted(outcomes) == ["already", "signed"]
        state = manager.get_session(session.token).state
        assert state.signer_name in ("anna", "bram")

    def test_archive_failure_keeps_signature(self, db, vehicle, options, fixed_now, signature_png):
        class BrokenArchive:
            def save_signed(self, session, signature_url=None):
                raise StorageError("bucket unavailable")

        manager = SignatureSessionManager(db=db, archive=BrokenArchive())
        session = manager.create_session(vehicle, "b2c", options, now=fixed_now)
        result = sign(manager, session.token, now=fixed_now, signature_image=signature_png)

        assert not result.archived
        assert "bucket unavailable" in result.archive_error
        assert manager.get_session(session.token).status == SignatureStatus.SIGNED


class TestInvalidate:

    def test_invalidate_pending(self, manager, session, fixed_now, signature_png):
        closed = manager.invalidate_session(session.token, now=fixed_now)
        assert closed.status == SignatureStatus.EXPIRED

        stored = manager.get_session(session.token)
        assert stored.state.reason == "invalidated"
        with pytest.raises(ExpiredError):
            manager.validate_session(session.token, now=fixed_now)
        with pytest.raises(ExpiredError):
            sign(manager, session.token, now=fixed_now, signature_image=signature_png)

    def test_invalidate_twice_is_harmless(self, manager, session, fixed_now):
        manager.invalidate_session(session.token, now=fixed_now)
        assert manager.invalidate_session(session.token, now=fixed_now).status == SignatureStatus.EXPIRED

    def test_signed_session_cannot_be_invalidated(self, manager, session, fixed_now, signature_png):
        sign(manager, session.token, now=fixed_now, signature_image=signature_png)
        with pytest.raises(AlreadyCompletedError):
            manager.invalidate_session(session.token)
