from __future__ import annotations

import hashlib
from datetime import datetime
from decimal import Decimal
from zoneinfo import ZoneInfo

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding

from fiskal.config import TIMEZONE_NAME
from fiskal.exceptions import ValidationError
from fiskal.models.invoice import Invoice
from fiskal.utils.certificate import Credential
from fiskal.utils.money import format_amount

ZKI_TIMESTAMP_FORMAT = "%d.%m.%Y %H:%M:%S"


def to_local(moment: datetime, tz: ZoneInfo) -> datetime:
    """Convert an instant to wall-clock time in *tz*.

    Naive datetimes are taken to already be wall-clock time in *tz*.
    """
    if moment.tzinfo is None:
        return moment.replace(tzinfo=tz)
    return moment.astimezone(tz)


def protection_code_buffer(
    issuer_pin: str,
    issue_date: datetime,
    sequential_number: str,
    business_location_identifier: str,
    register_identifier: str,
    total: Decimal,
    tz: ZoneInfo | None = None,
) -> bytes:
    """Concatenate the ZKI input fields, no separators, as UTF-8."""
    local = to_local(issue_date, tz or ZoneInfo(TIMEZONE_NAME))
    parts = [
        issuer_pin,
        local.strftime(ZKI_TIMESTAMP_FORMAT),
        sequential_number,
        business_location_identifier,
        register_identifier,
        format_amount(total),
    ]
    return "".join(parts).encode("utf-8")


def protection_code(invoice: Invoice, credential: Credential, tz: ZoneInfo | None = None) -> str:
    """Compute the issuer protection code (ZKI) for *invoice*.

    RSA-SHA1 signature over the field buffer, then MD5 of the signature
    bytes, lowercase hex. Both algorithms are fixed by the CIS protocol.
    """
    if invoice.issuer is None or not invoice.issuer.pin:
        raise ValidationError("Invoice issuer PIN is required for the protection code")
    if invoice.issue_date is None:
        raise ValidationError("Invoice issue date is required for the protection code")

    buffer = protection_code_buffer(
        issuer_pin=invoice.issuer.pin,
        issue_date=invoice.issue_date,
        sequential_number=invoice.sequential_number,
        business_location_identifier=invoice.business_location_identifier,
        register_identifier=invoice.register_identifier,
        total=invoice.total,
        tz=tz,
    )
    return sign_buffer(buffer, credential)


def sign_buffer(buffer: bytes, credential: Credential) -> str:
    signature = credential.private_key.sign(buffer, padding.PKCS1v15(), hashes.SHA1())
    return hashlib.md5(signature, usedforsecurity=False).hexdigest()
