"""Payload strings for the verification QR code and the HUB-3 payment barcode.

Only the encoded text is produced here; rendering it as a QR or PDF417 image
is left to an imaging library.
"""

from __future__ import annotations

import re
from urllib.parse import urlencode
from zoneinfo import ZoneInfo

from fiskal.config import TIMEZONE_NAME, VERIFICATION_URL
from fiskal.exceptions import ValidationError
from fiskal.models.invoice import Invoice
from fiskal.services.protection_code import protection_code, to_local
from fiskal.utils.certificate import Credential

HUB3_HEADER = "HRVHUB30"

# field -> (max length, exact)
_HUB3_FIELDS = {
    "header": (8, True),
    "currency": (3, True),
    "total_cents": (15, True),
    "buyer_name": (30, False),
    "buyer_address": (27, False),
    "buyer_postal_code_and_city": (27, False),
    "seller_name": (25, False),
    "seller_address": (25, False),
    "seller_postal_code_and_city": (27, False),
    "seller_iban": (21, False),
    "model": (4, True),
    "reference_number": (22, False),
    "payment_purpose_code": (4, True),
    "description": (35, False),
}

_IBAN_RE = re.compile(r"[A-Za-z]{2}\d{19}")
_ACCOUNT_RE = re.compile(r"\d{7}-\d{10}")


def verification_url(
    invoice: Invoice,
    credential: Credential | None = None,
    tz: ZoneInfo | None = None,
) -> str:
    """URL encoded in the receipt QR code for checking an invoice with the tax authority.

    Uses the invoice's JIR when known, otherwise its ZKI (which needs *credential*).
    """
    if invoice.issue_date is None:
        raise ValidationError("Invoice issue date is required")

    cents = str(invoice.total_cents)
    if len(cents) > 10:
        raise ValidationError(f"Total amount exceeds 10 digits: {cents}")

    if invoice.unique_invoice_identifier:
        code = ("jir", invoice.unique_invoice_identifier)
    elif credential is not None:
        code = ("zki", protection_code(invoice, credential, tz))
    else:
        raise ValidationError("Either the invoice's unique identifier or a credential is required")

    local = to_local(invoice.issue_date, tz or ZoneInfo(TIMEZONE_NAME))
    params = [("datv", local.strftime("%Y%m%d_%H%M")), ("izn", cents), code]
    return f"{VERIFICATION_URL}?{urlencode(params)}"


def _join_postal(postal_code: str | None, city: str | None) -> str:
    return f"{postal_code or ''} {city or ''}".strip()


def payment_barcode_data(
    invoice: Invoice,
    description: str | None = None,
    model: str | None = None,
    reference_number: str | None = None,
    payment_purpose_code: str | None = None,
) -> str:
    """HUB-3 (HRVHUB30) payment slip payload: one field per line."""
    if invoice.buyer is None or invoice.seller is None:
        raise ValidationError("Both buyer and seller must be set for a payment barcode")
    buyer, seller = invoice.buyer, invoice.seller
    if invoice.total_cents < 0:
        raise ValidationError("Payment barcode amount cannot be negative")

    fields = {
        "header": HUB3_HEADER,
        "currency": invoice.currency,
        "total_cents": str(invoice.total_cents).rjust(15, "0"),
        "buyer_name": buyer.name,
        "buyer_address": buyer.address,
        "buyer_postal_code_and_city": _join_postal(buyer.postal_code, buyer.city),
        "seller_name": seller.name,
        "seller_address": seller.address,
        "seller_postal_code_and_city": _join_postal(seller.postal_code, seller.city),
        "seller_iban": seller.iban,
        "model": model,
        "reference_number": reference_number,
        "payment_purpose_code": payment_purpose_code,
        "description": description if description is not None else f"Račun {invoice.number}",
    }

    for key, value in fields.items():
        if value is None:
            continue
        max_length, exact = _HUB3_FIELDS[key]
        if exact and len(value) != max_length:
            raise ValidationError(f"Field {key!r} must be exactly {max_length} characters: {value!r}")
        if len(value) > max_length:
            raise ValidationError(f"Field {key!r} exceeds {max_length} characters: {value!r}")

    iban = fields["seller_iban"]
    if iban and not (_IBAN_RE.fullmatch(iban) or _ACCOUNT_RE.fullmatch(iban)):
        raise ValidationError(f"Invalid IBAN or account number: {iban!r}")

    return "\n".join("" if v is None else v for v in fields.values())
