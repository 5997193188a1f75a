"""Tests for cardsign.ui.workflows: listing, signing and verification workflows."""

from __future__ import annotations

from unittest.mock import Mock, patch

from cardsign.core.signing import SigningSession
from cardsign.errors import (
    AuthenticationRequired,
    FailureKind,
    IncorrectSecret,
    NoCredentialFound,
    SigningFailed,
)
from cardsign.ui.workflows import (
    _classify_error,
    list_credentials,
    sign_one_detached,
    verify_one_detached,
)

# ── _classify_error ──────────────────────────────────────────────


def test_classify_cardsign_error():
    kind, message = _classify_error(IncorrectSecret("CKR_PIN_INCORRECT"))
    assert kind is FailureKind.INCORRECT_SECRET
    assert message == "CKR_PIN_INCORRECT"


def test_classify_value_error():
    kind, message = _classify_error(ValueError("bad input"))
    assert kind is FailureKind.SIGNING_FAILED
    assert message == "bad input"


def test_classify_unexpected_error():
    kind, message = _classify_error(RuntimeError("boom"))
    assert kind is None
    assert "unexpected" in message.lower()


# ── list_credentials ─────────────────────────────────────────────


def test_list_needs_secret(fake_store_factory):
    make, _ = fake_store_factory
    result = list_credentials(SigningSession(make))
    assert not result.ok
    assert result.failure is FailureKind.AUTHENTICATION_REQUIRED
    assert result.needs_secret


def test_list_success(fake_store_factory):
    make, _ = fake_store_factory
    result = list_credentials(SigningSession(make), "1234")
    assert result.ok
    assert result.failure is None
    assert [c.alias for c in result.credentials] == ["maria"]


def test_list_no_credential(fake_store_factory):
    make, _ = fake_store_factory
    session = SigningSession(lambda: make(load_error=NoCredentialFound("PKCS11 not found")))
    result = list_credentials(session, "1234")
    assert result.failure is FailureKind.NO_CREDENTIAL_FOUND
    assert not result.needs_secret


# ── sign_one_detached ────────────────────────────────────────────


def test_sign_writes_signature(tmp_path, fake_store_factory):
    make, _ = fake_store_factory
    out = tmp_path / "doc.txt.p7s"
    result = sign_one_detached(SigningSession(make), b"hello", out, secret="1234")
    assert result.ok
    assert result.alias == "maria"
    assert result.output_path == out
    assert out.read_bytes()[:1] == b"\x30"
    assert result.output_size == out.stat().st_size
    assert verify_one_detached(out.read_bytes(), b"hello")["valid"]


def test_sign_with_explicit_alias(tmp_path, fake_store_factory):
    make, _ = fake_store_factory
    result = sign_one_detached(
        SigningSession(make), b"hello", tmp_path / "o.p7s", alias="maria", secret="1234"
    )
    assert result.ok


def test_sign_wrong_pin(tmp_path, fake_store_factory):
    make, _ = fake_store_factory
    out = tmp_path / "o.p7s"
    result = sign_one_detached(SigningSession(make), b"hello", out, secret="9999")
    assert not result.ok
    assert result.failure is FailureKind.INCORRECT_SECRET
    assert result.needs_secret
    assert not out.exists()


def test_sign_unknown_alias(tmp_path, fake_store_factory):
    make, _ = fake_store_factory
    result = sign_one_detached(
        SigningSession(make), b"hello", tmp_path / "o.p7s", alias="ghost", secret="1234"
    )
    assert result.failure is FailureKind.SIGNING_FAILED
    assert result.alias == "ghost"


def test_sign_empty_store(tmp_path):
    session = Mock(spec=SigningSession)
    session.list_credentials.return_value = []
    result = sign_one_detached(session, b"hello", tmp_path / "o.p7s")
    assert result.failure is FailureKind.NO_CREDENTIAL_FOUND


def test_sign_write_failure(tmp_path):
    session = Mock(spec=SigningSession)
    session.sign.return_value = b"\x30\x00"
    with patch("cardsign.ui.workflows.atomic_write", side_effect=PermissionError("denied")):
        result = sign_one_detached(session, b"hello", tmp_path / "o.p7s", alias="a")
    assert not result.ok
    assert result.failure is FailureKind.SIGNING_FAILED
    assert "denied" in (result.error_message or "")


def test_sign_propagates_kind_from_session(tmp_path):
    session = Mock(spec=SigningSession)
    session.sign.side_effect = SigningFailed("token pulled")
    result = sign_one_detached(session, b"hello", tmp_path / "o.p7s", alias="a")
    assert result.failure is FailureKind.SIGNING_FAILED
    assert result.error_message == "token pulled"


def test_auth_required_is_retryable(tmp_path):
    session = Mock(spec=SigningSession)
    session.list_credentials.side_effect = AuthenticationRequired("PIN please")
    result = sign_one_detached(session, b"hello", tmp_path / "o.p7s")
    assert result.needs_secret
