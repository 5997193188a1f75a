"""Listing and signing command handlers for cardsign CLI."""

from __future__ import annotations

import os
import sys
from dataclasses import replace
from pathlib import Path
from typing import TYPE_CHECKING, TypeVar

from ...config import get_store_settings
from ...constants import ENV_PIN, MAX_SECRET_ATTEMPTS
from ...core.signing import SigningSession
from ...stores import create_store
from ..helpers import default_signature_path, format_size_kb, prompt_secret, safe_read_file
from ..workflows import ListingResult, SigningResult, list_credentials, sign_one_detached

if TYPE_CHECKING:
    import argparse
    from collections.abc import Callable

    from ...config import StoreSettings

_R = TypeVar("_R", ListingResult, SigningResult)


def _settings_from_args(args: argparse.Namespace) -> StoreSettings:
    settings = get_store_settings()
    pkcs12 = getattr(args, "pkcs12", None)
    if pkcs12:
        settings = replace(settings, pkcs12_path=pkcs12)
    return settings


def _build_session(settings: StoreSettings) -> SigningSession:
    return SigningSession(lambda: create_store(settings=settings))


def _with_secret(
    operation: Callable[[str | None], _R],
    label: str,
) -> _R:
    """Run *operation*, prompting for the secret while the store asks for one.

    The first attempt uses the secret from the environment (if any); up to
    MAX_SECRET_ATTEMPTS interactive prompts follow.
    """
    secret = os.environ.get(ENV_PIN) or None
    result = operation(secret)
    attempts = 0
    while result.needs_secret and attempts < MAX_SECRET_ATTEMPTS:
        if secret is not None:
            print(f"  {result.error_message}", file=sys.stderr)
        secret = prompt_secret(label)
        if secret is None:
            break
        attempts += 1
        result = operation(secret)
    return result


def _secret_label(settings: StoreSettings) -> str:
    return "Keystore password" if settings.pkcs12_path else "Token PIN"


def cmd_list(args: argparse.Namespace) -> None:
    """List the credentials available for signing."""
    settings = _settings_from_args(args)

    with _build_session(settings) as session:
        result = _with_secret(lambda secret: list_credentials(session, secret), _secret_label(settings))

    if not result.ok:
        print(f"Error: {result.error_message}", file=sys.stderr)
        sys.exit(1)

    if not result.credentials:
        print("No credentials found.")
        return

    for index, meta in enumerate(result.credentials):
        if index:
            print()
        print(f"Alias:     {meta.alias}")
        print(f"Signer:    {meta.signer_name or '(no common name)'}")
        if meta.tax_id:
            print(f"Tax ID:    {meta.tax_id}")
        if meta.email:
            print(f"Email:     {meta.email}")
        print(f"Valid:     {meta.not_before:%Y-%m-%d} - {meta.not_after:%Y-%m-%d}")
        print("Subject:")
        for part in meta.chain:
            print(f"  {part}")


def cmd_sign(args: argparse.Namespace) -> None:
    """Write a detached .p7s signature for each input file."""
    files = [Path(f) for f in args.files]
    if args.output and len(files) > 1:
        print("Error: --output can only be used with a single input file.", file=sys.stderr)
        sys.exit(1)

    settings = _settings_from_args(args)
    failures = 0

    with _build_session(settings) as session:
        for path in files:
            document = safe_read_file(path, "document")
            if document is None:
                failures += 1
                continue

            output = Path(args.output) if args.output else default_signature_path(path)
            print(f"Signing {path.name} ({format_size_kb(len(document))})...")

            result = _with_secret(
                lambda secret, data=document, out=output: sign_one_detached(
                    session, data, out, args.alias, secret
                ),
                _secret_label(settings),
            )
            if result.ok:
                print(
                    f"  Signed with '{result.alias}' -> {result.output_path}"
                    f" ({format_size_kb(result.output_size)})"
                )
            else:
                print(f"  FAILED: {result.error_message}", file=sys.stderr)
                failures += 1

    if failures:
        print(f"\n{failures} of {len(files)} file(s) failed.", file=sys.stderr)
        sys.exit(1)
