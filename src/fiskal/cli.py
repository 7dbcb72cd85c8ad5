from __future__ import annotations

import argparse
import logging
import sys
from datetime import datetime
from decimal import Decimal, InvalidOperation

from fiskal.exceptions import FiskalError


def _load_credential():
    from fiskal.config import get_cert_password, get_cert_path
    from fiskal.utils.certificate import load_pkcs12

    return load_pkcs12(get_cert_path(), get_cert_password())


def _cmd_cert(_args: argparse.Namespace) -> int:
    from fiskal.utils.certificate import certificate_info

    info = certificate_info(_load_credential())
    print(f"Subjekt:    {info['subject']}")
    print(f"Izdavatelj: {info['issuer']}")
    print(f"Serijski:   {info['serial']}")
    print(f"Vrijedi do: {info['not_after']}")
    print("Certifikat je valjan" if info["valid"] else "UPOZORENJE: certifikat je istekao")
    return 0


def _cmd_zki(args: argparse.Namespace) -> int:
    from fiskal.config import load_config
    from fiskal.services.protection_code import protection_code_buffer, sign_buffer

    try:
        sequential, location, register = args.number.split("/")
        total = Decimal(args.total)
        issued = datetime.fromisoformat(args.issued)
    except (ValueError, InvalidOperation) as e:
        print(f"Neispravan unos: {e}", file=sys.stderr)
        return 2

    buffer = protection_code_buffer(
        issuer_pin=args.pin,
        issue_date=issued,
        sequential_number=sequential,
        business_location_identifier=location,
        register_identifier=register,
        total=total,
        tz=load_config().timezone,
    )
    print(sign_buffer(buffer, _load_credential()))
    return 0


def _cmd_echo(args: argparse.Namespace) -> int:
    from fiskal.config import load_config
    from fiskal.services.fiscalization import echo

    result = echo(args.message, load_config())
    if not result.success:
        for error in result.errors:
            print(f"{error.code}: {error.message}", file=sys.stderr)
        return 1
    print(result.data)
    return 0


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="fiskal-hr", description="Fiskalizacija računa (CIS)")
    parser.add_argument("-v", "--verbose", action="store_true")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("cert", help="prikaži podatke certifikata").set_defaults(func=_cmd_cert)

    zki = sub.add_parser("zki", help="izračunaj zaštitni kod izdavatelja")
    zki.add_argument("--pin", required=True, help="OIB izdavatelja")
    zki.add_argument("--issued", required=True, help="datum i vrijeme izdavanja (ISO 8601)")
    zki.add_argument("--number", required=True, help="broj računa, npr. 1/POSL1/1")
    zki.add_argument("--total", required=True, help="ukupni iznos, npr. 25.00")
    zki.set_defaults(func=_cmd_zki)

    echo = sub.add_parser("echo", help="provjeri dostupnost CIS-a")
    echo.add_argument("message", nargs="?", default="test")
    echo.set_defaults(func=_cmd_echo)
    return parser


def main(argv: list[str] | None = None) -> None:
    """Entry point for the fiskal-hr command."""
    args = _parser().parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        code = args.func(args)
    except KeyError as e:
        print(f"Nedostaje postavka: {e.args[0]}", file=sys.stderr)
        code = 1
    except FiskalError as e:
        print(f"Greška: {e}", file=sys.stderr)
        code = 1
    sys.exit(code)


if __name__ == "__main__":
    main()
