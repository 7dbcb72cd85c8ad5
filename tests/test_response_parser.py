from __future__ import annotations

import pytest

from fiskal.exceptions import CisFaultError
from fiskal.services.response_parser import CisError, parse_response

ENVELOPE = (
    '<soap:Envelope xmlns:soap="http://schemas.xmlsoap.org/soap/envelope/">'
    "<soap:Body>{}</soap:Body></soap:Envelope>"
)
TNS_ATTR = 'xmlns:tns="http://www.apis-it.hr/fin/2012/types/f73"'

INVOICE_OK = ENVELOPE.format(
    f'<tns:RacunOdgovor {TNS_ATTR} Id="resp-1">'
    "<tns:Zaglavlje>"
    "<tns:IdPoruke>c2bb23ad-7044-4b06-b259-04475acecc1e</tns:IdPoruke>"
    "<tns:DatumVrijeme>04.06.2025T07:44:32</tns:DatumVrijeme>"
    "</tns:Zaglavlje>"
    "<tns:Jir>9b0b4f8c-1f1e-4d5a-8f0e-0c1d2e3f4a5b</tns:Jir>"
    "</tns:RacunOdgovor>"
).encode()

INVOICE_ERRORS = ENVELOPE.format(
    f"<tns:RacunOdgovor {TNS_ATTR}>"
    "<tns:Zaglavlje><tns:IdPoruke>c2bb23ad-7044-4b06-b259-04475acecc1e</tns:IdPoruke></tns:Zaglavlje>"
    "<tns:Greske>"
    "<tns:Greska><tns:SifraGreske>s004</tns:SifraGreske><tns:PorukaGreske>Neispravan digitalni potpis.</tns:PorukaGreske></tns:Greska>"
    "<tns:Greska><tns:SifraGreske>s005</tns:SifraGreske><tns:PorukaGreske>OIB iz poruke zahtjeva nije jednak OIB-u iz certifikata.</tns:PorukaGreske></tns:Greska>"
    "</tns:Greske>"
    "</tns:RacunOdgovor>"
).encode()

FAULT = ENVELOPE.format(
    "<soap:Fault>"
    "<faultcode>soap:Server</faultcode>"
    "<faultstring>Internal Error</faultstring>"
    "<detail><errorCode>s001</errorCode><errorMessage>Poruka nije u skladu s XML shemom.</errorMessage></detail>"
    "</soap:Fault>"
).encode()

FAULT_NO_DETAIL = ENVELOPE.format(
    "<soap:Fault><faultcode>soap:Client</faultcode><faultstring>Bad request</faultstring></soap:Fault>"
).encode()

ECHO = ENVELOPE.format(f"<tns:EchoResponse {TNS_ATTR}>proba</tns:EchoResponse>").encode()


class TestParseResponse:
    def test_success(self):
        result = parse_response(INVOICE_OK)
        assert result.success
        assert result.message_id == "c2bb23ad-7044-4b06-b259-04475acecc1e"
        assert result.timestamp == "04.06.2025T07:44:32"
        assert result.unique_identifier == "9b0b4f8c-1f1e-4d5a-8f0e-0c1d2e3f4a5b"
        assert result.raw == INVOICE_OK
        assert result.raise_for_errors() is result

    def test_business_errors(self):
        result = parse_response(INVOICE_ERRORS)
        assert not result.success
        assert result.unique_identifier is None
        assert [e.code for e in result.errors] == ["s004", "s005"]
        assert result.errors[0] == CisError(code="s004", message="Neispravan digitalni potpis.")

    def test_raise_for_errors(self):
        result = parse_response(INVOICE_ERRORS)
        with pytest.raises(CisFaultError, match="s004: Neispravan digitalni potpis") as exc_info:
            result.raise_for_errors()
        assert len(exc_info.value.errors) == 2
        assert exc_info.value.response == INVOICE_ERRORS

    def test_fault_detail(self):
        result = parse_response(FAULT)
        assert result.errors == [CisError(code="s001", message="Poruka nije u skladu s XML shemom.")]

    def test_fault_without_detail(self):
        result = parse_response(FAULT_NO_DETAIL)
        assert result.errors == [CisError(code="soap:Client", message="Bad request")]

    def test_echo(self):
        result = parse_response(ECHO)
        assert result.success
        assert result.data == "proba"

    def test_entities_not_resolved(self):
        body = (
            b'<?xml version="1.0"?><!DOCTYPE x [<!ENTITY e SYSTEM "file:///etc/passwd">]>'
            + ENVELOPE.format(f"<tns:EchoResponse {TNS_ATTR}>&e;</tns:EchoResponse>").encode()
        )
        result = parse_response(body)
        assert not result.data

    def test_non_xml_body_raises_fault(self):
        body = b"<html><body><h1>502 Bad Gateway</h1></body>"
        with pytest.raises(CisFaultError, match="Unparseable") as exc_info:
            parse_response(body)
        assert exc_info.value.response == body

    def test_empty_body_raises_fault(self):
        with pytest.raises(CisFaultError):
            parse_response(b"")

    def test_well_formed_html_raises_fault(self):
        body = b"<html><body><h1>502 Bad Gateway</h1></body></html>"
        with pytest.raises(CisFaultError, match="Unexpected") as exc_info:
            parse_response(body)
        assert exc_info.value.response == body

    def test_empty_soap_body_raises_fault(self):
        with pytest.raises(CisFaultError, match="empty"):
            parse_response(ENVELOPE.format("").encode())
