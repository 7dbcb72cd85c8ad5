from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal

from fiskal.config import DEFAULT_TAX_RATES, default_rate
from fiskal.exceptions import ValidationError
from fiskal.models.enums import TaxCategory, TaxType
from fiskal.utils.money import to_decimal

MAX_NAME_LENGTH = 100


@dataclass(frozen=True)
class Tax:
    """One tax charge applied to a line item.

    ``rate`` is a fraction in [0, 1]. When omitted it is taken from the
    type x category table in *tax_rates* (see :meth:`create`).
    """

    rate: Decimal
    type: TaxType = TaxType.VALUE_ADDED
    category: TaxCategory = TaxCategory.STANDARD
    name: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "type", TaxType.parse(self.type))
        object.__setattr__(self, "category", TaxCategory.parse(self.category))

        try:
            rate = to_decimal(self.rate)
        except TypeError:
            raise ValidationError("Tax rate must be a number between 0 and 1") from None
        if rate < 0 or rate > 1:
            raise ValidationError("Tax rate must be a number between 0 and 1")
        object.__setattr__(self, "rate", rate)

        if self.name is not None:
            name = str(self.name).strip()
            if len(name) > MAX_NAME_LENGTH:
                raise ValidationError(f"Tax name must not exceed {MAX_NAME_LENGTH} characters")
            object.__setattr__(self, "name", name or None)

        if self.type is TaxType.OTHER and not self.name:
            raise ValidationError("Taxes of type 'other' require an explicit name")

    @classmethod
    def create(
        cls,
        type: TaxType | str = TaxType.VALUE_ADDED,
        category: TaxCategory | str = TaxCategory.STANDARD,
        rate: Decimal | float | int | None = None,
        name: str | None = None,
        tax_rates: Mapping[TaxType, Mapping[TaxCategory, Decimal]] = DEFAULT_TAX_RATES,
    ) -> Tax:
        """Build a Tax, defaulting the rate from the *tax_rates* table."""
        tax_type = TaxType.parse(type)
        tax_category = TaxCategory.parse(category)
        if rate is None:
            rate = default_rate(tax_type, tax_category, tax_rates)
        return cls(rate=rate, type=tax_type, category=tax_category, name=name)

    @property
    def display_name(self) -> str | None:
        return self.name or self.type.default_name

    @property
    def taxable(self) -> bool:
        return self.category is not TaxCategory.EXEMPT


@dataclass(frozen=True)
class TaxBreakdown:
    """Tax computed for one line (or merged across lines sharing a rate)."""

    rate: Decimal
    base: Decimal
    tax: Decimal
    taxable: bool
    name: str | None
    type: TaxType
    category: TaxCategory
