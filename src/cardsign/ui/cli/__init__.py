"""
Command-line interface for cardsign.

Argument parsing, dispatch, and the config subcommand.
Listing and signing live in ``sign``, verification in ``verify``.
"""

from __future__ import annotations

import argparse
import logging
import sys

from ...config import CONFIG_FILE, get_store_settings, reset_config, save_store_settings
from ...config._storage import BACKEND_CHOICES
from ...constants import ENV_BACKEND, ENV_PIN, ENV_PKCS11_LIB, ENV_PKCS11_SLOT, __version__
from ...errors import ConfigError
from .sign import cmd_list, cmd_sign
from .verify import cmd_info, cmd_verify


def _cmd_config(args: argparse.Namespace) -> None:
    """Show or update the credential store settings."""
    if args.reset:
        reset_config()
        print("All configuration cleared.")
        return

    if args.backend is not None or args.library is not None or args.slot is not None:
        try:
            save_store_settings(args.backend, args.library, args.slot)
        except (ConfigError, OSError) as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
        print(f"Saved to {CONFIG_FILE}")

    settings = get_store_settings()
    print(f"Backend:        {settings.backend}")
    print(f"PKCS#11 module: {settings.pkcs11_library}")
    print(f"PKCS#11 slot:   {settings.pkcs11_slot}")


def _add_pkcs12_option(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--pkcs12",
        metavar="FILE",
        default=None,
        help="Use a PKCS#12 keystore file instead of the token or OS store",
    )


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="cardsign",
        description="Detached CMS signatures with smart cards, tokens and keystores.",
        epilog=(
            "Environment variables:\n"
            f"  {ENV_PIN:<22}Token PIN or keystore password\n"
            f"  {ENV_BACKEND:<22}Store backend: {', '.join(BACKEND_CHOICES)}\n"
            f"  {ENV_PKCS11_LIB:<22}PKCS#11 module path\n"
            f"  {ENV_PKCS11_SLOT:<22}PKCS#11 slot index\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-V", "--version", action="version", version=f"cardsign {__version__}")
    parser.add_argument(
        "-v", "--verbose", action="store_true", default=False, help="Enable debug logging"
    )

    sub = parser.add_subparsers(dest="command", help="Available commands")

    # list
    p_list = sub.add_parser("list", help="List signing credentials")
    _add_pkcs12_option(p_list)

    # sign
    p_sign = sub.add_parser("sign", help="Sign file(s) with a detached .p7s signature")
    p_sign.add_argument("files", nargs="+", help="File(s) to sign")
    p_sign.add_argument("-o", "--output", help="Output file path (single file only)")
    p_sign.add_argument("-a", "--alias", default=None, help="Credential alias (default: first)")
    _add_pkcs12_option(p_sign)

    # verify
    p_verify = sub.add_parser("verify", help="Verify a detached CMS signature")
    p_verify.add_argument("file", help="Signed file")
    p_verify.add_argument("-s", "--signature", help="Signature file (default: <file>.p7s)")

    # info
    p_info = sub.add_parser("info", help="Show signature file details")
    p_info.add_argument("signature", help="CMS signature file (.p7s)")

    # config
    p_config = sub.add_parser("config", help="Show or change credential store settings")
    p_config.add_argument("--backend", choices=BACKEND_CHOICES, default=None)
    p_config.add_argument("--library", default=None, help="PKCS#11 module path")
    p_config.add_argument("--slot", type=int, default=None, help="PKCS#11 slot index")
    p_config.add_argument(
        "--reset", action="store_true", default=False, help="Clear all saved settings"
    )

    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    if args.command == "list":
        cmd_list(args)
    elif args.command == "sign":
        cmd_sign(args)
    elif args.command == "verify":
        cmd_verify(args)
    elif args.command == "info":
        cmd_info(args)
    elif args.command == "config":
        _cmd_config(args)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
