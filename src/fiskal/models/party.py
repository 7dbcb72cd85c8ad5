from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Party:
    """Issuer, seller or buyer of an invoice."""

    name: str | None = None
    pin: str | None = None  # OIB, 11 digits
    address: str | None = None
    city: str | None = None
    postal_code: str | None = None
    country_code: str | None = None
    iban: str | None = None
    pays_vat: bool = False

    @classmethod
    def from_dict(cls, d: dict) -> Party:
        """Create a Party from a YAML-loaded dict."""
        return cls(
            name=d.get("name"),
            pin=str(d["pin"]) if d.get("pin") is not None else None,
            address=d.get("address"),
            city=d.get("city"),
            postal_code=str(d["postal_code"]) if d.get("postal_code") is not None else None,
            country_code=d.get("country_code"),
            iban=d.get("iban"),
            pays_vat=bool(d.get("pays_vat", False)),
        )
