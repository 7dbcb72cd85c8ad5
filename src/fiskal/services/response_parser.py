from __future__ import annotations

from dataclasses import dataclass, field

from lxml import etree

from fiskal.config import SOAP_NS, TNS
from fiskal.exceptions import CisFaultError

NAMESPACES = {"soap": SOAP_NS, "tns": TNS}


@dataclass(frozen=True)
class CisError:
    code: str | None
    message: str | None


@dataclass
class FiscalizationResult:
    """Outcome of one CIS request."""

    message_id: str | None = None
    timestamp: str | None = None
    unique_identifier: str | None = None  # JIR
    data: str | None = None
    errors: list[CisError] = field(default_factory=list)
    raw: bytes | None = None

    @property
    def success(self) -> bool:
        return not self.errors

    def raise_for_errors(self) -> FiscalizationResult:
        if self.errors:
            summary = "; ".join(f"{e.code}: {e.message}" for e in self.errors)
            raise CisFaultError(summary, errors=self.errors, response=self.raw)
        return self


def _text(el: etree._Element, xpath: str) -> str | None:
    found = el.xpath(xpath, namespaces=NAMESPACES)
    if not found:
        return None
    value = found[0].text if isinstance(found[0], etree._Element) else str(found[0])
    return value.strip() if value else value


def parse_response(body: bytes) -> FiscalizationResult:
    """Parse any CIS SOAP response (invoice, supporting document, check, echo).

    Business errors (``Greske``) and SOAP faults both end up in ``errors``.
    A body that is not a SOAP envelope with content (e.g. a proxy error page) raises
    :class:`CisFaultError`.
    """
    parser = etree.XMLParser(resolve_entities=False, no_network=True)
    try:
        doc = etree.fromstring(body, parser=parser)
    except etree.XMLSyntaxError as e:
        raise CisFaultError(f"Unparseable response from CIS: {e}", response=body) from e
    if doc.tag != f"{{{SOAP_NS}}}Envelope":
        raise CisFaultError(f"Unexpected response from CIS: <{etree.QName(doc).localname}>", response=body)

    result = FiscalizationResult(raw=body)
    body_el = doc.find(f"{{{SOAP_NS}}}Body")
    payload = body_el[0] if body_el is not None and len(body_el) else None
    if payload is None:
        raise CisFaultError("CIS response has an empty SOAP body", response=body)

    result.message_id = _text(payload, "tns:Zaglavlje/tns:IdPoruke")
    result.timestamp = _text(payload, "tns:Zaglavlje/tns:DatumVrijeme")
    result.unique_identifier = _text(payload, "tns:Jir")
    if etree.QName(payload).localname == "EchoResponse":
        result.data = payload.text

    for error in payload.xpath("tns:Greske/tns:Greska", namespaces=NAMESPACES):
        result.errors.append(
            CisError(code=_text(error, "tns:SifraGreske"), message=_text(error, "tns:PorukaGreske"))
        )

    fault = doc.find(f".//{{{SOAP_NS}}}Fault")
    if fault is not None:
        code = _text(fault, "detail/errorCode") or _text(fault, "faultcode")
        message = _text(fault, "detail/errorMessage") or _text(fault, "faultstring")
        result.errors.append(CisError(code=code, message=message))

    return result
