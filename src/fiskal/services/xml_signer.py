from __future__ import annotations

import base64
import hashlib
import textwrap

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding
from cryptography.hazmat.primitives.serialization import Encoding
from lxml import etree

from fiskal.config import DS_NS
from fiskal.exceptions import ValidationError
from fiskal.utils.certificate import Credential

EXC_C14N = "http://www.w3.org/2001/10/xml-exc-c14n#"
RSA_SHA1 = "http://www.w3.org/2000/09/xmldsig#rsa-sha1"
SHA1 = "http://www.w3.org/2000/09/xmldsig#sha1"
ENVELOPED = "http://www.w3.org/2000/09/xmldsig#enveloped-signature"


def _ds(parent: etree._Element, tag: str, text: str | None = None, **attrs: str) -> etree._Element:
    el = etree.SubElement(parent, f"{{{DS_NS}}}{tag}", attrs)
    if text is not None:
        el.text = text
    return el


def canonicalize(element: etree._Element) -> bytes:
    """Exclusive XML Canonicalization 1.0, without comments."""
    return etree.tostring(element, method="c14n", exclusive=True, with_comments=False)


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _wrapped_certificate(credential: Credential) -> str:
    der = credential.certificate.public_bytes(Encoding.DER)
    return "\n".join(textwrap.wrap(_b64(der), 64))


def sign(document: etree._Element, credential: Credential) -> etree._Element:
    """Append an enveloped RSA-SHA1 <Signature> to *document* in place.

    The document root must carry a non-empty ``Id``; the single reference
    points at ``#<Id>``. Returns the same element for chaining. Signing an
    already-signed document adds a second sibling signature.
    """
    doc_id = document.get("Id")
    if not doc_id:
        raise ValidationError("Document root is missing a non-empty Id attribute")

    # The enveloped-signature transform excludes the Signature, so digest before appending it.
    digest = _b64(hashlib.sha1(canonicalize(document)).digest())

    signature = etree.SubElement(document, f"{{{DS_NS}}}Signature", nsmap={None: DS_NS})  # type: ignore[dict-item]  # lxml stubs don't model None key for default ns
    signed_info = _ds(signature, "SignedInfo")
    _ds(signed_info, "CanonicalizationMethod", Algorithm=EXC_C14N)
    _ds(signed_info, "SignatureMethod", Algorithm=RSA_SHA1)
    reference = _ds(signed_info, "Reference", URI=f"#{doc_id}")
    transforms = _ds(reference, "Transforms")
    _ds(transforms, "Transform", Algorithm=EXC_C14N)
    _ds(transforms, "Transform", Algorithm=ENVELOPED)
    _ds(reference, "DigestMethod", Algorithm=SHA1)
    _ds(reference, "DigestValue", digest)

    signature_value = credential.private_key.sign(
        canonicalize(signed_info), padding.PKCS1v15(), hashes.SHA1()
    )
    _ds(signature, "SignatureValue", _b64(signature_value))

    cert = credential.certificate
    key_info = _ds(signature, "KeyInfo")
    x509_data = _ds(key_info, "X509Data")
    _ds(x509_data, "X509Certificate", _wrapped_certificate(credential))
    issuer_serial = _ds(x509_data, "X509IssuerSerial")
    _ds(issuer_serial, "X509IssuerName", cert.issuer.rfc4514_string())
    _ds(issuer_serial, "X509SerialNumber", str(cert.serial_number))

    return document
