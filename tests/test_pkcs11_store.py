"""Tests for cardsign.stores.pkcs11: token backend against a fake module."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
from pkcs11 import Attribute, Mechanism, ObjectClass
from pkcs11 import exceptions as p11_exc

from cardsign.errors import (
    AuthenticationRequired,
    IncorrectSecret,
    NoCredentialFound,
    SigningFailed,
    StoreReadError,
)
from cardsign.stores import StoreKind
from cardsign.stores.pkcs11 import Pkcs11Store, classify_provider_error

LIB = "/usr/lib/libeToken.so.10"


class FakeObject(dict):
    """Token object exposing attributes by key, like python-pkcs11 objects."""


def _cert_object(cert, label, cert_id):
    return FakeObject(
        {Attribute.VALUE: cert.dump(), Attribute.LABEL: label, Attribute.ID: cert_id}
    )


@pytest.fixture
def token(pki):
    """Patch pkcs11.lib with a one-slot module holding the test chain."""
    key = MagicMock(name="private_key")
    key.sign.return_value = b"\x01" * 256

    session = MagicMock(name="session")
    session.get_objects.return_value = [
        _cert_object(pki.leaf, "maria", b"\x01"),
        _cert_object(pki.intermediate, "intermediate", b"\x02"),
        _cert_object(pki.root, "root", b"\x03"),
    ]

    def get_key(object_class, id=None):
        assert object_class is ObjectClass.PRIVATE_KEY
        if id == b"\x01":
            return key
        raise p11_exc.NoSuchKey()

    session.get_key.side_effect = get_key

    tok = MagicMock(name="token")
    tok.label = "eToken"
    tok.open.return_value = session
    slot = MagicMock(name="slot")
    slot.get_token.return_value = tok
    lib = MagicMock(name="lib")
    lib.get_slots.return_value = [slot]

    with patch("cardsign.stores.pkcs11.pkcs11.lib", return_value=lib) as lib_ctor:
        yield {"lib_ctor": lib_ctor, "lib": lib, "token": tok, "session": session, "key": key}


def test_always_requires_pin():
    store = Pkcs11Store(LIB)
    assert store.kind is StoreKind.PKCS11
    assert store.requires_secret()


def test_load_without_pin():
    with pytest.raises(AuthenticationRequired):
        Pkcs11Store(LIB).load(None)


def test_load_indexes_credentials(token, pki):
    store = Pkcs11Store(LIB, slot=0)
    store.load("1234")

    token["lib_ctor"].assert_called_once_with(LIB)
    token["token"].open.assert_called_once_with(user_pin="1234")
    assert store.aliases() == ["maria"]
    assert store.certificate("maria").dump() == pki.leaf.dump()
    chain = store.chain("maria")
    assert [c.serial_number for c in chain] == [c.serial_number for c in pki.chain]


def test_unknown_alias(token):
    store = Pkcs11Store(LIB)
    store.load("1234")
    assert store.certificate("ghost") is None
    assert store.chain("ghost") is None
    assert store.private_key("ghost") is None


def test_sign_uses_sha1_rsa_mechanism(token):
    store = Pkcs11Store(LIB)
    store.load("1234")
    signature = store.private_key("maria").sign(b"attrs", "sha1")
    assert signature == b"\x01" * 256
    token["key"].sign.assert_called_once_with(b"attrs", mechanism=Mechanism.SHA1_RSA_PKCS)


def test_sign_failure_maps_to_signing_failed(token):
    token["key"].sign.side_effect = p11_exc.DeviceRemoved()
    store = Pkcs11Store(LIB)
    store.load("1234")
    with pytest.raises(SigningFailed):
        store.private_key("maria").sign(b"attrs", "sha1")


def test_incorrect_pin(token):
    token["token"].open.side_effect = p11_exc.PinIncorrect()
    with pytest.raises(IncorrectSecret):
        Pkcs11Store(LIB).load("0000")


def test_token_absent(token):
    token["lib"].get_slots.return_value = []
    with pytest.raises(NoCredentialFound):
        Pkcs11Store(LIB).load("1234")


def test_slot_out_of_range(token):
    with pytest.raises(NoCredentialFound, match="Slot index 3"):
        Pkcs11Store(LIB, slot=3).load("1234")


def test_library_missing():
    with (
        patch("cardsign.stores.pkcs11.pkcs11.lib", side_effect=RuntimeError("Cannot open library")),
        pytest.raises(NoCredentialFound),
    ):
        Pkcs11Store("/nonexistent.so").load("1234")


def test_close_closes_session(token):
    store = Pkcs11Store(LIB)
    store.load("1234")
    store.close()
    token["session"].close.assert_called_once()
    assert store.aliases() == []
    store.close()
    token["session"].close.assert_called_once()


def test_load_failure_after_open_closes_session(token):
    token["session"].get_objects.side_effect = p11_exc.GeneralError()
    with pytest.raises(StoreReadError):
        Pkcs11Store(LIB).load("1234")
    token["session"].close.assert_called_once()


def test_unreadable_certificate_object_skipped(token, pki):
    broken = FakeObject({Attribute.VALUE: b"\x00\x01not a certificate", Attribute.ID: b"\x01"})
    token["session"].get_objects.return_value = [broken, _cert_object(pki.leaf, "maria", b"\x01")]
    store = Pkcs11Store(LIB)
    store.load("1234")
    assert store.aliases() == ["maria"]


# ── classify_provider_error ──────────────────────────────────────


@pytest.mark.parametrize(
    ("exc", "expected"),
    [
        (p11_exc.PinIncorrect(), IncorrectSecret),
        (p11_exc.PinLenRange(), IncorrectSecret),
        (p11_exc.UserNotLoggedIn(), AuthenticationRequired),
        (p11_exc.TokenNotPresent(), NoCredentialFound),
        (p11_exc.NoSuchToken(), NoCredentialFound),
        (p11_exc.GeneralError(), StoreReadError),
        (RuntimeError("CKR_PIN_INCORRECT"), IncorrectSecret),
        (RuntimeError("PKCS11 not found"), NoCredentialFound),
        (RuntimeError("Cannot open library at /x.so"), NoCredentialFound),
        (OSError("disk on fire"), StoreReadError),
    ],
)
def test_classify_provider_error(exc, expected):
    assert type(classify_provider_error(exc)) is expected
