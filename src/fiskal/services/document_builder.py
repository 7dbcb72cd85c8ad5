from __future__ import annotations

import copy
import uuid
from datetime import datetime
from zoneinfo import ZoneInfo

from lxml import etree

from fiskal.config import SOAP_NS, TIMEZONE_NAME, TNS, XSI_NS, FiscalConfig
from fiskal.exceptions import ValidationError
from fiskal.models.enums import PaymentMethod, TaxCategory, TaxType
from fiskal.models.invoice import Invoice, merge_tax_entries
from fiskal.models.tax import TaxBreakdown
from fiskal.services.protection_code import protection_code as compute_protection_code
from fiskal.services.protection_code import to_local
from fiskal.utils.certificate import Credential
from fiskal.utils.money import format_amount

NSMAP = {"tns": TNS, "xsi": XSI_NS}

INVOICE_REQUEST = "RacunZahtjev"
SUPPORTING_DOCUMENT_REQUEST = "RacunPDZahtjev"
PAYMENT_METHOD_CHANGE_REQUEST = "PromijeniNacPlacZahtjev"
VERIFICATION_REQUEST = "ProvjeraZahtjev"
ECHO_REQUEST = "EchoRequest"

DATETIME_FORMAT = "%d.%m.%YT%H:%M:%S"

MAX_PARAGON_NUMBER_LENGTH = 100
MAX_SPECIFIC_PURPOSE_LENGTH = 1000

# Declared through IznosOslobPdv / IznosNePodlOpor instead of a Pdv entry.
_SEPARATELY_DECLARED = frozenset({TaxCategory.EXEMPT, TaxCategory.OUTSIDE_SCOPE})

_TAX_BUCKETS = (
    (TaxType.VALUE_ADDED, "Pdv", False),
    (TaxType.CONSUMPTION, "Pnp", False),
    (TaxType.OTHER, "OstaliPor", True),
)


def _tns(tag: str) -> str:
    return f"{{{TNS}}}{tag}"


def _sub(parent: etree._Element, tag: str, text: str | None = None) -> etree._Element:
    el = etree.SubElement(parent, _tns(tag))
    if text is not None:
        el.text = text
    return el


def _bool(value: bool) -> str:
    return "true" if value else "false"


def validate_message_id(message_id: str | None) -> str:
    """Require a 36-character UUID string."""
    if message_id is None or len(message_id) != 36:
        raise ValidationError("Message ID must be a UUID string of exactly 36 characters")
    try:
        uuid.UUID(message_id)
    except ValueError:
        raise ValidationError(f"Message ID is not a UUID: {message_id!r}") from None
    return message_id


def _validate_options(paragon_number: str | None, specific_purpose: str | None) -> None:
    if paragon_number is not None and len(str(paragon_number)) > MAX_PARAGON_NUMBER_LENGTH:
        raise ValidationError(f"Paragon number must not exceed {MAX_PARAGON_NUMBER_LENGTH} characters")
    if specific_purpose is not None and len(specific_purpose) > MAX_SPECIFIC_PURPOSE_LENGTH:
        raise ValidationError(f"Specific purpose must not exceed {MAX_SPECIFIC_PURPOSE_LENGTH} characters")


def _resolve_protection_code(invoice: Invoice, protection_code: str | None, credential: Credential | None, tz: ZoneInfo) -> str:
    if protection_code:
        return protection_code
    if credential is not None:
        return compute_protection_code(invoice, credential, tz)
    raise ValidationError("Either a protection code or a credential to compute it is required")


def _root(envelope: str, message_id: str, now: datetime, tz: ZoneInfo) -> etree._Element:
    root = etree.Element(_tns(envelope), nsmap=NSMAP)
    root.set("Id", message_id)
    header = _sub(root, "Zaglavlje")
    _sub(header, "IdPoruke", message_id)
    _sub(header, "DatumVrijemeSlanja", to_local(now, tz).strftime(DATETIME_FORMAT))
    return root


def _add_taxes(parent: etree._Element, tag: str, entries: list[TaxBreakdown], with_name: bool) -> None:
    taxes = _sub(parent, tag)
    for entry in entries:
        tax = _sub(taxes, "Porez")
        if with_name:
            _sub(tax, "Naziv", entry.name)
        _sub(tax, "Stopa", format_amount(entry.rate * 100))
        _sub(tax, "Osnovica", format_amount(entry.base))
        _sub(tax, "Iznos", format_amount(entry.tax))


def _add_invoice(
    root: etree._Element,
    invoice: Invoice,
    zki: str,
    tz: ZoneInfo,
    subsequent_delivery: bool,
    paragon_number: str | None,
    specific_purpose: str | None,
) -> etree._Element:
    if invoice.seller is None or not invoice.seller.pin:
        raise ValidationError("Invoice seller PIN is required")
    if invoice.issuer is None or not invoice.issuer.pin:
        raise ValidationError("Invoice issuer (operator) PIN is required")
    if invoice.issue_date is None:
        raise ValidationError("Invoice issue date is required")

    racun = _sub(root, "Racun")
    _sub(racun, "Oib", invoice.seller.pin)
    _sub(racun, "USustPdv", _bool(invoice.seller.pays_vat))
    _sub(racun, "DatVrijeme", to_local(invoice.issue_date, tz).strftime(DATETIME_FORMAT))
    _sub(racun, "OznSlijed", invoice.sequential_by.code)

    number = _sub(racun, "BrRac")
    _sub(number, "BrOznRac", invoice.sequential_number)
    _sub(number, "OznPosPr", invoice.business_location_identifier)
    _sub(number, "OznNapUr", invoice.register_identifier)

    breakdown = invoice.tax_breakdown()
    for tax_type, tag, with_name in _TAX_BUCKETS:
        entries = breakdown.get(tax_type, [])
        if tax_type is TaxType.VALUE_ADDED:
            entries = [e for e in entries if e.category not in _SEPARATELY_DECLARED]
        entries = merge_tax_entries(entries, by_name=with_name)
        if entries:
            _add_taxes(racun, tag, entries, with_name)

    if invoice.vat_exempt_amount:
        _sub(racun, "IznosOslobPdv", format_amount(invoice.vat_exempt_amount))
    if invoice.margin:
        _sub(racun, "IznosMarza", format_amount(invoice.margin))
    if invoice.amount_outside_vat_scope:
        _sub(racun, "IznosNePodlOpor", format_amount(invoice.amount_outside_vat_scope))

    surcharges = invoice.surcharges()
    if surcharges:
        group = _sub(racun, "Naknade")
        for surcharge in surcharges:
            item = _sub(group, "Naknada")
            _sub(item, "NazivN", surcharge.name)
            _sub(item, "IznosN", format_amount(surcharge.amount))

    _sub(racun, "IznosUkupno", format_amount(invoice.total))
    _sub(racun, "NacinPlac", invoice.payment_method.code)
    _sub(racun, "OibOper", invoice.issuer.pin)
    _sub(racun, "ZastKod", zki)
    _sub(racun, "NakDost", _bool(subsequent_delivery))
    if paragon_number is not None:
        _sub(racun, "ParagonBrRac", str(paragon_number))
    if specific_purpose is not None:
        _sub(racun, "SpecNamj", specific_purpose)
    return racun


def _build(
    envelope: str,
    invoice: Invoice,
    message_id: str,
    *,
    protection_code: str | None = None,
    credential: Credential | None = None,
    config: FiscalConfig | None = None,
    now: datetime | None = None,
    subsequent_delivery: bool = False,
    paragon_number: str | None = None,
    specific_purpose: str | None = None,
) -> tuple[etree._Element, etree._Element]:
    validate_message_id(message_id)
    _validate_options(paragon_number, specific_purpose)
    tz = config.timezone if config is not None else ZoneInfo(TIMEZONE_NAME)
    zki = _resolve_protection_code(invoice, protection_code, credential, tz)

    root = _root(envelope, message_id, now or datetime.now(tz), tz)
    racun = _add_invoice(root, invoice, zki, tz, subsequent_delivery, paragon_number, specific_purpose)
    return root, racun


def build_invoice_request(invoice: Invoice, message_id: str, **options) -> etree._Element:
    """Build a <tns:RacunZahtjev> ready for signing.

    Options: protection_code or credential (one is required), config, now,
    subsequent_delivery, paragon_number, specific_purpose.
    """
    root, _ = _build(INVOICE_REQUEST, invoice, message_id, **options)
    return root


def build_supporting_document_request(
    invoice: Invoice,
    message_id: str,
    *,
    document_unique_identifier: str | None = None,
    document_protection_code: str | None = None,
    **options,
) -> etree._Element:
    """Build a <tns:RacunPDZahtjev> referencing one supporting document.

    Exactly one of *document_unique_identifier* (JIR) or
    *document_protection_code* (ZKI) of the supporting document is required.
    """
    if document_unique_identifier is None and document_protection_code is None:
        raise ValidationError("Either the supporting document's unique identifier or protection code is required")
    if document_unique_identifier is not None and document_protection_code is not None:
        raise ValidationError("Supply the supporting document's unique identifier or protection code, not both")

    root, racun = _build(SUPPORTING_DOCUMENT_REQUEST, invoice, message_id, **options)
    document = _sub(racun, "PrateciDokument")
    if document_unique_identifier is not None:
        _sub(document, "JirPD", document_unique_identifier)
    else:
        _sub(document, "ZastKodPD", document_protection_code)
    return root


def build_payment_method_change_request(
    invoice: Invoice,
    message_id: str,
    *,
    new_payment_method: PaymentMethod | str,
    **options,
) -> etree._Element:
    """Build a <tns:PromijeniNacPlacZahtjev>; the invoice keeps its original payment method."""
    method = PaymentMethod.parse(new_payment_method)
    root, racun = _build(PAYMENT_METHOD_CHANGE_REQUEST, invoice, message_id, **options)
    _sub(racun, "PromijenjeniNacinPlac", method.code)
    return root


def build_verification_request(invoice: Invoice, message_id: str, **options) -> etree._Element:
    """Build a <tns:ProvjeraZahtjev> asking CIS to check the invoice data without registering it."""
    root, _ = _build(VERIFICATION_REQUEST, invoice, message_id, **options)
    return root


def build_echo_request(message: str) -> etree._Element:
    """Build a <tns:EchoRequest>; it carries no Id and is never signed."""
    root = etree.Element(_tns(ECHO_REQUEST), nsmap={"tns": TNS})
    root.text = message
    return root


def soap_envelope(document: etree._Element) -> bytes:
    """Nest a copy of *document* in a SOAP 1.1 Envelope/Body and serialize it with an XML declaration."""
    envelope = etree.Element(f"{{{SOAP_NS}}}Envelope", nsmap={"soapenv": SOAP_NS})
    body = etree.SubElement(envelope, f"{{{SOAP_NS}}}Body")
    body.append(copy.deepcopy(document))
    return etree.tostring(envelope, xml_declaration=True, encoding="UTF-8")
