from __future__ import annotations

from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import pkcs12
from cryptography.x509.oid import NameOID
from lxml import etree

from fiskal.config import TNS
from fiskal.models.enums import TaxCategory, TaxType
from fiskal.models.invoice import Invoice
from fiskal.models.line_item import LineItem
from fiskal.models.party import Party
from fiskal.utils.certificate import Credential, load_pem

FIXTURES = Path(__file__).parent / "fixtures"

MESSAGE_ID = "c2bb23ad-7044-4b06-b259-04475acecc1e"

# 07:44:26 in Zagreb (CEST, UTC+2)
ISSUE_DATE = datetime(2025, 6, 4, 5, 44, 26, tzinfo=UTC)
SENT_AT = datetime(2025, 6, 4, 5, 44, 31, tzinfo=UTC)


def xml_text(el: etree._Element, path: str) -> str | None:
    """Extract text by a slash path of unprefixed protocol tags, e.g. ``Racun/BrRac/OznPosPr``."""
    xpath = "/".join(f"{{{TNS}}}{part}" for part in path.split("/"))
    found = el.find(xpath)
    return found.text if found is not None else None


# --- Invoice fixtures ---


@pytest.fixture
def issuer() -> Party:
    return Party(name="Operater", pin="01234567890")


@pytest.fixture
def seller() -> Party:
    return Party(
        name="Pseći Servis d.o.o.",
        pin="98765432198",
        address="Ilica 1",
        city="Zagreb",
        postal_code="10000",
        iban="HR1210010051863000160",
        pays_vat=True,
    )


@pytest.fixture
def buyer() -> Party:
    return Party(name="Ivana Horvat", address="Riva 2", city="Split", postal_code="21000")


@pytest.fixture
def simple_invoice(issuer, seller, buyer) -> Invoice:
    """One line: 2 x 10.00 at 25% VAT -> 20.00 + 5.00 = 25.00."""
    invoice = Invoice(
        sequential_number=123456789,
        business_location_identifier="POSL1",
        register_identifier="12",
        issue_date=ISSUE_DATE,
        issuer=issuer,
        seller=seller,
        buyer=buyer,
        payment_method="card",
        sequential_by="register",
    )
    item = LineItem(quantity=2, unit_price=10.0, description="Šetnja psa", unit="HRS")
    item.add_tax(type=TaxType.VALUE_ADDED, category=TaxCategory.STANDARD)
    invoice.add_line_item(item)
    return invoice


@pytest.fixture
def mixed_invoice(issuer, seller) -> Invoice:
    """Three lines covering VAT rates, consumption tax, an 'other' tax and a surcharge."""
    invoice = Invoice(
        sequential_number="7",
        business_location_identifier="POSL1",
        register_identifier="1",
        issue_date=ISSUE_DATE,
        issuer=issuer,
        seller=seller,
        payment_method="cash",
    )

    walking = LineItem(quantity=2, unit_price=10.0, description="Dog walking")
    walking.add_tax(type="value_added_tax", category="standard")
    invoice.add_line_item(walking)

    treats = LineItem(quantity=6, unit_price=2.0, description="Dog treats")
    treats.add_tax(type="value_added_tax", category="lower_rate")
    treats.add_tax(type="consumption_tax", category="standard", rate=0.05)
    treats.add_surcharge(name="Povratna naknada", amount="0.10")
    invoice.add_line_item(treats)

    drink = LineItem(quantity=1, unit_price=45.0, description="Dog vitamin drink")
    drink.add_tax(type="value_added_tax", category="exempt")
    drink.add_tax(type="consumption_tax", category="standard", rate=0.05)
    drink.add_tax(type="other", category="standard", rate=0.01, name="Turistička pristojba")
    invoice.add_line_item(drink)
    return invoice


# --- Certificate fixtures ---


@pytest.fixture(scope="session")
def fixed_credential() -> Credential:
    """Fixed key/certificate committed under tests/fixtures (serial 1234567)."""
    return load_pem(FIXTURES / "fiskal_test_key.pem", FIXTURES / "fiskal_test_cert.pem")


@pytest.fixture(scope="session")
def test_key_and_cert():
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    subject = issuer = x509.Name(
        [
            x509.NameAttribute(NameOID.COMMON_NAME, "Test Certificate"),
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, "Test Org"),
        ]
    )
    cert = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(datetime.now(UTC) - timedelta(days=1))
        .not_valid_after(datetime.now(UTC) + timedelta(days=365))
        .sign(key, hashes.SHA256())
    )
    return key, cert


@pytest.fixture(scope="session")
def credential(test_key_and_cert) -> Credential:
    key, cert = test_key_and_cert
    return Credential(private_key=key, certificate=cert)


@pytest.fixture(scope="session")
def self_signed_pem(test_key_and_cert):
    key, cert = test_key_and_cert
    key_pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    )
    cert_pem = cert.public_bytes(serialization.Encoding.PEM)
    return key_pem, cert_pem


@pytest.fixture
def test_p12(tmp_path, test_key_and_cert):
    key, cert = test_key_and_cert
    password = b"testpass"
    data = pkcs12.serialize_key_and_certificates(
        name=b"test",
        key=key,
        cert=cert,
        cas=None,
        encryption_algorithm=serialization.BestAvailableEncryption(password),
    )
    path = tmp_path / "test.p12"
    path.write_bytes(data)
    return str(path), "testpass"
