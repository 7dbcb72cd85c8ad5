from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    load_pem_private_key,
    pkcs12,
)

from fiskal.exceptions import CredentialError


@dataclass(frozen=True)
class Credential:
    """Issuer private key with its certificate (and optional CA chain)."""

    private_key: RSAPrivateKey
    certificate: x509.Certificate
    ca_chain: list[x509.Certificate] = field(default_factory=list)

    @property
    def fingerprint(self) -> str:
        """SHA-256 of the DER certificate, hex; identifies the credential in connection pools."""
        return hashlib.sha256(self.certificate.public_bytes(Encoding.DER)).hexdigest()


def _is_file(path: Path) -> bool:
    # PEM text passed as a str is not a path; long names make stat() raise.
    try:
        return path.is_file()
    except (OSError, ValueError):
        return False


def _read(source: bytes | str | Path) -> bytes:
    """Return *source* as bytes, reading it from disk when it names a file."""
    if isinstance(source, bytes):
        return source
    path = Path(source)
    if isinstance(source, Path) or _is_file(path):
        try:
            return path.read_bytes()
        except OSError as e:
            raise CredentialError(f"Cannot read {path}: {e}") from e
    return source.encode()


def _check_rsa(key: object) -> RSAPrivateKey:
    if not isinstance(key, RSAPrivateKey):
        raise CredentialError(f"Expected an RSA private key, got {type(key).__name__}")
    return key


def load_pkcs12(source: bytes | str | Path, password: str | None) -> Credential:
    """Load a .p12/.pfx bundle (path or raw bytes).

    Raises CredentialError when the file is unreadable, the password is wrong
    or the bundle lacks a key or certificate.
    """
    data = _read(source)
    try:
        key, certificate, chain = pkcs12.load_key_and_certificates(
            data, password.encode() if password is not None else None
        )
    except ValueError as e:
        raise CredentialError(f"Invalid PKCS#12 bundle or password: {e}") from e

    if key is None or certificate is None:
        raise CredentialError("Certificate or private key not found in PKCS#12 bundle")

    return Credential(private_key=_check_rsa(key), certificate=certificate, ca_chain=list(chain or []))


def load_pem(
    private_key: bytes | str | Path,
    certificate: bytes | str | Path,
    ca_chain: bytes | str | Path | None = None,
    password: str | None = None,
) -> Credential:
    """Load a credential from separate PEM key, certificate and optional CA chain."""
    try:
        key = load_pem_private_key(_read(private_key), password.encode() if password else None)
    except (ValueError, TypeError) as e:
        raise CredentialError(f"Invalid private key: {e}") from e
    try:
        cert = x509.load_pem_x509_certificate(_read(certificate))
        chain = x509.load_pem_x509_certificates(_read(ca_chain)) if ca_chain is not None else []
    except ValueError as e:
        raise CredentialError(f"Invalid certificate: {e}") from e

    return Credential(private_key=_check_rsa(key), certificate=cert, ca_chain=list(chain))


def certificate_info(credential: Credential) -> dict:
    """Summarize the credential's certificate for display."""
    cert = credential.certificate
    now = datetime.now(UTC)
    return {
        "subject": cert.subject.rfc4514_string(),
        "issuer": cert.issuer.rfc4514_string(),
        "not_before": cert.not_valid_before_utc,
        "not_after": cert.not_valid_after_utc,
        "valid": cert.not_valid_before_utc <= now <= cert.not_valid_after_utc,
        "serial": cert.serial_number,
    }
