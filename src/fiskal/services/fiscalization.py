from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from lxml import etree

from fiskal.config import FiscalConfig
from fiskal.models.enums import PaymentMethod
from fiskal.models.invoice import Invoice
from fiskal.services.cis_client import send
from fiskal.services.document_builder import (
    build_echo_request,
    build_invoice_request,
    build_payment_method_change_request,
    build_supporting_document_request,
    build_verification_request,
    soap_envelope,
)
from fiskal.services.protection_code import protection_code
from fiskal.services.response_parser import FiscalizationResult, parse_response
from fiskal.services.xml_signer import sign
from fiskal.utils.certificate import Credential

logger = logging.getLogger(__name__)

Builder = Callable[..., etree._Element]


@dataclass
class PreparedRequest:
    """A signed request, ready to send. Build a new one for every attempt."""

    message_id: str
    protection_code: str
    document: etree._Element
    payload: bytes


def prepare(
    builder: Builder,
    invoice: Invoice,
    credential: Credential,
    config: FiscalConfig | None = None,
    *,
    message_id: str | None = None,
    now: datetime | None = None,
    **options,
) -> PreparedRequest:
    """Compute the ZKI, build the document with *builder*, sign it and wrap it in SOAP."""
    config = config or FiscalConfig()
    message_id = message_id or str(uuid.uuid4())
    zki = protection_code(invoice, credential, config.timezone)

    document = builder(
        invoice,
        message_id,
        protection_code=zki,
        config=config,
        now=now,
        **options,
    )
    sign(document, credential)

    return PreparedRequest(
        message_id=message_id,
        protection_code=zki,
        document=document,
        payload=soap_envelope(document),
    )


def submit(prepared: PreparedRequest, config: FiscalConfig | None = None, credential: Credential | None = None) -> FiscalizationResult:
    """Send a prepared request to CIS and parse the reply."""
    config = config or FiscalConfig()
    logger.info("Sending request %s to %s", prepared.message_id, config.url)
    body = send(prepared.payload, config.url, credential=credential, timeout=config.timeout)
    result = parse_response(body)
    if result.success:
        logger.info("Request %s accepted (JIR %s)", prepared.message_id, result.unique_identifier)
    else:
        logger.warning("Request %s rejected: %s", prepared.message_id, result.errors)
    return result


def _run(builder: Builder, invoice: Invoice, credential: Credential, config: FiscalConfig | None, **options) -> FiscalizationResult:
    prepared = prepare(builder, invoice, credential, config, **options)
    return submit(prepared, config, credential)


def fiscalize(invoice: Invoice, credential: Credential, config: FiscalConfig | None = None, **options) -> FiscalizationResult:
    """Register *invoice* with CIS; on success its JIR is stored on the invoice."""
    result = _run(build_invoice_request, invoice, credential, config, **options)
    if result.success and result.unique_identifier:
        invoice.unique_invoice_identifier = result.unique_identifier
    return result


def reverse(invoice: Invoice, credential: Credential, config: FiscalConfig | None = None, **options) -> FiscalizationResult:
    """Reverse every line of *invoice* in place, then fiscalize the storno."""
    invoice.reverse()
    return fiscalize(invoice, credential, config, **options)


def send_supporting_document(
    invoice: Invoice,
    credential: Credential,
    config: FiscalConfig | None = None,
    **options,
) -> FiscalizationResult:
    """Fiscalize an invoice that references a supporting document (JIR or ZKI of it)."""
    return _run(build_supporting_document_request, invoice, credential, config, **options)


def change_payment_method(
    invoice: Invoice,
    credential: Credential,
    new_payment_method: PaymentMethod | str,
    config: FiscalConfig | None = None,
    **options,
) -> FiscalizationResult:
    result = _run(
        build_payment_method_change_request,
        invoice,
        credential,
        config,
        new_payment_method=new_payment_method,
        **options,
    )
    if result.success:
        invoice.payment_method = new_payment_method
    return result


def verify(invoice: Invoice, credential: Credential, config: FiscalConfig | None = None, **options) -> FiscalizationResult:
    """Ask CIS to check the invoice data without registering it."""
    return _run(build_verification_request, invoice, credential, config, **options)


def echo(message: str, config: FiscalConfig | None = None) -> FiscalizationResult:
    """Round-trip *message* through the CIS echo service; the reply text is in ``data``."""
    config = config or FiscalConfig()
    body = send(soap_envelope(build_echo_request(message)), config.url, timeout=config.timeout)
    return parse_response(body)
