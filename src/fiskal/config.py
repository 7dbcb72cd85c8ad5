from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from zoneinfo import ZoneInfo

import platformdirs
import yaml
from dotenv import load_dotenv

from fiskal.models.enums import TaxCategory, TaxType

KEYRING_SERVICE = "fiskal-hr"
KEYRING_USERNAME = "cert-p12-password"


def _resolve_config_dir_for_dotenv() -> Path | None:
    """Resolve the config dir for .env loading before .env itself is read.

    Returns None if only platformdirs would resolve and that dir does not exist.
    """
    from_env = os.environ.get("FISKAL_CONFIG_DIR")
    if from_env:
        return Path(from_env)
    project_root = Path(__file__).resolve().parent.parent.parent
    candidate = project_root / "config"
    if candidate.is_dir():
        return candidate
    pd = Path(platformdirs.user_config_dir("fiskal-hr"))
    if pd.is_dir():
        return pd
    return None


# Load .env: cwd first (highest priority), then config dir (won't override)
load_dotenv()
_cfg_dir = _resolve_config_dir_for_dotenv()
if _cfg_dir is not None:
    load_dotenv(_cfg_dir / ".env")


def get_config_dir() -> Path:
    """Resolve the config directory: env var, dev repo layout, then platformdirs.

    Re-evaluated on each call to pick up env changes.
    """
    from_env = os.environ.get("FISKAL_CONFIG_DIR")
    if from_env:
        return Path(from_env)
    # Development layout: src/fiskal/config.py -> ../../.. = project root
    project_root = Path(__file__).resolve().parent.parent.parent
    candidate = project_root / "config"
    if candidate.is_dir():
        return candidate
    return Path(platformdirs.user_config_dir("fiskal-hr"))


TNS = "http://www.apis-it.hr/fin/2012/types/f73"
XSI_NS = "http://www.w3.org/2001/XMLSchema-instance"
DS_NS = "http://www.w3.org/2000/09/xmldsig#"
SOAP_NS = "http://schemas.xmlsoap.org/soap/envelope/"

TIMEZONE_NAME = "Europe/Zagreb"

ENDPOINTS = {
    "test": "https://cistest.apis-it.hr:8449/FiskalizacijaServiceTest",
    "production": "https://cis.porezna-uprava.hr:8449/FiskalizacijaService",
}

VERIFICATION_URL = "https://porezna.gov.hr/rn"

CIS_TIMEOUT = 10

DEFAULT_TAX_RATES: dict[TaxType, dict[TaxCategory, Decimal]] = {
    TaxType.VALUE_ADDED: {
        TaxCategory.STANDARD: Decimal("0.25"),
        TaxCategory.LOWER_RATE: Decimal("0.13"),
        TaxCategory.EXEMPT: Decimal("0.00"),
        TaxCategory.ZERO_RATED: Decimal("0.00"),
        TaxCategory.OUTSIDE_SCOPE: Decimal("0.00"),
        TaxCategory.REVERSE_CHARGE: Decimal("0.00"),
    },
    TaxType.CONSUMPTION: {},
    TaxType.OTHER: {},
}


def default_rate(
    tax_type: TaxType,
    category: TaxCategory,
    tax_rates: Mapping[TaxType, Mapping[TaxCategory, Decimal]] = DEFAULT_TAX_RATES,
) -> Decimal:
    """Look up the rate for a type/category pair; unknown pairs are 0.00."""
    return Decimal(tax_rates.get(tax_type, {}).get(category, Decimal("0.00")))


def _parse_tax_rates(raw: Mapping) -> dict[TaxType, dict[TaxCategory, Decimal]]:
    rates = {t: dict(cats) for t, cats in DEFAULT_TAX_RATES.items()}
    for type_key, categories in raw.items():
        tax_type = TaxType.parse(type_key)
        for category_key, rate in (categories or {}).items():
            rates[tax_type][TaxCategory.parse(category_key)] = Decimal(str(rate))
    return rates


@dataclass(frozen=True)
class FiscalConfig:
    """Explicit configuration handed to tax construction, builders and transport."""

    env: str = "test"
    tax_rates: Mapping[TaxType, Mapping[TaxCategory, Decimal]] = field(
        default_factory=lambda: DEFAULT_TAX_RATES
    )
    timezone: ZoneInfo = field(default_factory=lambda: ZoneInfo(TIMEZONE_NAME))
    endpoint: str | None = None
    timeout: float = CIS_TIMEOUT

    @property
    def url(self) -> str:
        return self.endpoint or ENDPOINTS[self.env]

    @classmethod
    def from_dict(cls, d: dict) -> FiscalConfig:
        """Create a FiscalConfig from a YAML-loaded dict, applying defaults for missing keys."""
        env = str(d.get("env", "test"))
        if env not in ENDPOINTS:
            raise ValueError(f"Unknown environment: {env!r}")
        return cls(
            env=env,
            tax_rates=_parse_tax_rates(d.get("tax_rates") or {}),
            timezone=ZoneInfo(d.get("timezone", TIMEZONE_NAME)),
            endpoint=d.get("endpoint"),
            timeout=float(d.get("timeout", CIS_TIMEOUT)),
        )


def load_yaml(path: Path) -> dict:
    """Load and parse a YAML file, returning the top-level dict."""
    return yaml.safe_load(path.read_text()) or {}


def load_config() -> FiscalConfig:
    """Load config/fiskal.yaml if present, otherwise return the defaults."""
    path = get_config_dir() / "fiskal.yaml"
    if not path.is_file():
        return FiscalConfig()
    return FiscalConfig.from_dict(load_yaml(path))


# --- Keyring helpers ---


def _get_keyring_password() -> str | None:
    """Try to get the certificate password from the OS keyring.

    Returns None on any failure (no backend, not stored, dbus errors, etc.).
    """
    try:
        import keyring

        return keyring.get_password(KEYRING_SERVICE, KEYRING_USERNAME)
    except Exception:
        return None


# --- Certificate access ---


def get_cert_path() -> str:
    """Return the path to the .p12 certificate from FISKAL_CERT_PATH.

    Raises KeyError if the variable is not set.
    """
    return os.environ["FISKAL_CERT_PATH"]


def get_cert_password() -> str:
    """Return the certificate password.

    Priority: 1) FISKAL_CERT_PASSWORD env var, 2) OS keyring.
    Raises KeyError if neither source has the password.
    """
    pwd = os.environ.get("FISKAL_CERT_PASSWORD")
    if pwd is not None:
        return pwd
    pwd = _get_keyring_password()
    if pwd is not None:
        return pwd
    raise KeyError("FISKAL_CERT_PASSWORD")
