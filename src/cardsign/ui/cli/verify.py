"""
Signature verification and inspection.

Both commands work offline with asn1crypto and cryptography; no trust
store is consulted.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import TYPE_CHECKING

from ...core.verify import describe_signature
from ...errors import CertificateError
from ..helpers import default_signature_path, safe_read_file
from ..workflows import verify_one_detached

if TYPE_CHECKING:
    import argparse


def cmd_verify(args: argparse.Namespace) -> None:
    """Check a detached signature against its document."""
    doc_path = Path(args.file)
    sig_path = Path(args.signature) if args.signature else default_signature_path(doc_path)

    document = safe_read_file(doc_path, "document")
    if document is None:
        sys.exit(1)
    signature = safe_read_file(sig_path, "signature")
    if signature is None:
        sys.exit(1)

    print(f"Verifying {doc_path.name} against {sig_path.name}...")
    result = verify_one_detached(signature, document)
    for line in result["details"]:
        print(f"  {line}")

    if result["valid"]:
        print("  VALID: digest and signature match (certificate trust not checked).")
    else:
        print("  INVALID")
        sys.exit(1)


def cmd_info(args: argparse.Namespace) -> None:
    """Show info about a CMS signature file."""
    sig_path = Path(args.signature)
    signature = safe_read_file(sig_path, "signature")
    if signature is None:
        sys.exit(1)
    print(f"Signature: {sig_path.name} ({len(signature)} bytes)")

    try:
        description = describe_signature(signature)
    except CertificateError as e:
        print(f"  Error parsing signature: {e}", file=sys.stderr)
        sys.exit(1)

    for line in description["details"]:
        print(f"  {line}")

    signer = description["signer"]
    if signer:
        print("\nSigner:")
        for key, label in (("name", "Name"), ("tax_id", "Tax ID"), ("email", "Email"), ("dn", "DN")):
            if signer.get(key):
                print(f"  {label + ':':8} {signer[key]}")

    certificates = description["certificates"]
    if certificates:
        print(f"\nCertificates ({len(certificates)}):")
        for i, subject in enumerate(certificates, 1):
            print(f"  [{i}] {subject}")
