# Account Vault - Command Line Entry Point
#
# Operator tool around the encryption core: encrypt/decrypt single values and
# encode/decode JSON records on stdin/stdout, plus "forget passphrase" and
# export/import of the key salt for use on another device.
# Secrets are read from stdin or an interactive prompt, never from argv.

import argparse
import getpass
import json
import logging
import sys
from dataclasses import replace
from typing import List, Optional

from . import __version__
from .config import get_settings
from .crypto import KeyContext, KeyPolicyKind, VaultCryptoError, user_message
from .crypto.exceptions import InvalidInput
from .records import RecordKind

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="account-vault",
        description="Account Vault - client-side field encryption tool",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"Account Vault v{__version__}",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging on stderr",
    )

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--owner", required=True, help="Owner id issued by the authentication provider")
    common.add_argument(
        "--policy",
        choices=[k.value for k in KeyPolicyKind],
        default=None,
        help="Key policy (default: ACCOUNT_VAULT_KEY_POLICY or silent)",
    )
    common.add_argument(
        "--remember",
        action="store_true",
        help="Remember the passphrase on this device (passphrase policy)",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    enc = sub.add_parser("encrypt", parents=[common], help="Encrypt one value (read from stdin if --value is omitted)")
    enc.add_argument("--value", default=None)

    dec = sub.add_parser("decrypt", parents=[common], help="Decrypt one cipher token")
    dec.add_argument("--token", default=None)

    for name, help_text in (
        ("encode-record", "Encrypt the sensitive fields of a JSON record on stdin"),
        ("decode-record", "Decrypt the sensitive fields of a JSON record on stdin"),
    ):
        p = sub.add_parser(name, parents=[common], help=help_text)
        group = p.add_mutually_exclusive_group(required=True)
        group.add_argument("--fields", help="Comma-separated sensitive field names")
        group.add_argument("--kind", choices=[k.value for k in RecordKind], help="Vault collection")

    sub.add_parser("forget-passphrase", parents=[common], help="Forget the passphrase remembered on this device")
    sub.add_parser(
        "export-key-params", parents=[common],
        help="Print the account's key salt and verifier as JSON (passphrase policy)",
    )
    sub.add_parser(
        "import-key-params", parents=[common],
        help="Store key salt and verifier JSON from stdin on this device (passphrase policy)",
    )

    return parser


# Commands that never touch the key, so never prompt for a passphrase
_KEYLESS_COMMANDS = ("forget-passphrase", "export-key-params", "import-key-params")


def _open_context(args) -> KeyContext:
    settings = get_settings()
    if args.policy:
        settings = replace(settings, key_policy=args.policy)

    ctx = KeyContext.from_settings(settings)
    ctx.sign_in(args.owner)

    if ctx.policy_kind is KeyPolicyKind.PASSPHRASE and args.command not in _KEYLESS_COMMANDS:
        if not ctx.has_remembered_passphrase():
            ctx.set_passphrase(getpass.getpass("Passphrase: "), remember=args.remember)
    return ctx


def _read_stdin_value() -> str:
    return sys.stdin.readline().rstrip("\n")


def _read_record() -> dict:
    try:
        record = json.load(sys.stdin)
    except json.JSONDecodeError as e:
        raise InvalidInput(f"stdin is not valid JSON: {e}")
    if not isinstance(record, dict):
        raise InvalidInput("stdin must hold a JSON object")
    return record


def _field_spec(args):
    if args.kind:
        return RecordKind(args.kind)
    return [f.strip() for f in args.fields.split(",") if f.strip()]


def run(args) -> int:
    ctx = _open_context(args)
    try:
        if args.command == "encrypt":
            value = args.value if args.value is not None else _read_stdin_value()
            print(ctx.encrypt_value(value))
        elif args.command == "decrypt":
            token = args.token if args.token is not None else _read_stdin_value()
            print(ctx.decrypt_value(token))
        elif args.command == "encode-record":
            print(json.dumps(ctx.encode_record(_read_record(), _field_spec(args))))
        elif args.command == "decode-record":
            print(json.dumps(ctx.decode_record(_read_record(), _field_spec(args))))
        elif args.command == "forget-passphrase":
            if ctx.forget_passphrase():
                print("Passphrase forgotten on this device.")
            else:
                print("No passphrase was remembered on this device.")
        elif args.command == "export-key-params":
            params = ctx.export_key_params()
            if params is None:
                raise InvalidInput("No key salt exists for this account yet")
            print(json.dumps(params))
        elif args.command == "import-key-params":
            if ctx.import_key_params(_read_record()):
                print("Key salt imported.")
            else:
                print("Key salt already present on this device.")
    finally:
        ctx.sign_out()
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the account-vault command."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        stream=sys.stderr,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        return run(args)
    except VaultCryptoError as e:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {user_message(e)}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
