from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal

from fiskal.exceptions import ValidationError
from fiskal.models.enums import TaxType
from fiskal.models.surcharge import Surcharge
from fiskal.models.tax import Tax, TaxBreakdown
from fiskal.utils.money import ZERO, mul, round2, to_decimal, total


def _number(value: object, label: str) -> Decimal:
    try:
        return to_decimal(value)
    except TypeError:
        raise ValidationError(f"{label} must be a number, got {value!r}") from None


class LineItem:
    """One billable row of an invoice.

    Inputs are validated when assigned; every monetary figure is derived on
    read and rounded half-up to 2 decimals at the point it is computed:

        gross         = round(quantity * unit_price)
        discount      = explicit discount, else round(gross * discount_rate), else 0
        subtotal      = gross - discount
        taxable_base  = margin if set, else subtotal
        tax (per tax) = round(taxable_base * rate)
        total         = subtotal + tax + surcharge
    """

    def __init__(
        self,
        quantity: Decimal | float | int = 1,
        unit_price: Decimal | float | int = 0,
        *,
        description: str | None = None,
        unit: str | None = None,
        discount: Decimal | float | int | None = None,
        discount_rate: Decimal | float | int | None = None,
        margin: Decimal | float | int | None = None,
        taxes: Iterable[Tax] = (),
        surcharges: Iterable[Surcharge] = (),
    ) -> None:
        self.description = description
        self.unit = unit
        self.quantity = quantity
        self.unit_price = unit_price
        self.discount = discount
        self.discount_rate = discount_rate
        self.margin = margin
        self._taxes: dict[TaxType, Tax] = {}
        self._surcharges: dict[str, Surcharge] = {}
        for tax in taxes:
            self.add_tax(tax)
        for surcharge in surcharges:
            self.add_surcharge(surcharge)

    # --- validated inputs ---

    @property
    def quantity(self) -> Decimal:
        return self._quantity

    @quantity.setter
    def quantity(self, value: Decimal | float | int) -> None:
        self._quantity = _number(value, "Quantity")

    @property
    def unit_price(self) -> Decimal:
        return self._unit_price

    @unit_price.setter
    def unit_price(self, value: Decimal | float | int) -> None:
        price = _number(value, "Unit price")
        if price < 0:
            raise ValidationError("Unit price must be a non-negative number")
        self._unit_price = price

    @property
    def discount(self) -> Decimal:
        # A fixed discount follows the sign of the quantity, so a reversed line stays consistent.
        if self._discount is not None:
            return -self._discount if self.quantity < 0 else self._discount
        if self._discount_rate is not None:
            return round2(mul(self.gross, self._discount_rate))
        return ZERO

    @discount.setter
    def discount(self, value: Decimal | float | int | None) -> None:
        if value is None:
            self._discount = None
            return
        amount = _number(value, "Discount")
        if amount < 0:
            raise ValidationError("Discount must be a non-negative number")
        self._discount = round2(amount)

    @property
    def discount_rate(self) -> Decimal | None:
        return self._discount_rate

    @discount_rate.setter
    def discount_rate(self, value: Decimal | float | int | None) -> None:
        if value is None:
            self._discount_rate = None
            return
        rate = _number(value, "Discount rate")
        if rate < 0 or rate > 1:
            raise ValidationError("Discount rate must be a number between 0 and 1")
        self._discount_rate = rate

    @property
    def margin(self) -> Decimal | None:
        return self._margin

    @margin.setter
    def margin(self, value: Decimal | float | int | None) -> None:
        self._margin = None if value is None else round2(_number(value, "Margin"))

    @property
    def taxes(self) -> dict[TaxType, Tax]:
        return dict(self._taxes)

    @property
    def surcharges(self) -> list[Surcharge]:
        return list(self._surcharges.values())

    def add_tax(self, tax: Tax | None = None, **options) -> Tax:
        """Attach a tax, replacing any existing tax of the same type.

        Either pass a :class:`Tax` or the keyword arguments of :meth:`Tax.create`.
        """
        if tax is None:
            tax = Tax.create(**options)
        elif options:
            raise TypeError("Pass either a Tax instance or keyword options, not both")
        if not isinstance(tax, Tax):
            raise ValidationError(f"Expected a Tax, got {type(tax).__name__}")
        self._taxes[tax.type] = tax
        return tax

    def add_surcharge(self, surcharge: Surcharge | None = None, *, name: str | None = None, amount=None) -> Surcharge:
        """Attach a surcharge, replacing any existing surcharge with the same name."""
        if surcharge is None:
            surcharge = Surcharge(name=name, amount=amount)
        if not isinstance(surcharge, Surcharge):
            raise ValidationError(f"Expected a Surcharge, got {type(surcharge).__name__}")
        self._surcharges[surcharge.name] = surcharge
        return surcharge

    def reverse(self) -> None:
        """Negate the line in place (storno). Surcharges keep their configured sign."""
        self._quantity = -self._quantity
        if self._margin is not None:
            self._margin = -self._margin

    # --- derived figures ---

    @property
    def gross(self) -> Decimal:
        return round2(mul(self.quantity, self.unit_price))

    @property
    def subtotal(self) -> Decimal:
        return round2(self.gross - self.discount)

    @property
    def taxable_base(self) -> Decimal:
        return self.margin if self.margin is not None else self.subtotal

    def tax_breakdown(self) -> list[TaxBreakdown]:
        base = self.taxable_base
        return [
            TaxBreakdown(
                rate=tax.rate,
                base=base,
                tax=round2(mul(base, tax.rate)),
                taxable=tax.taxable,
                name=tax.display_name,
                type=tax.type,
                category=tax.category,
            )
            for tax in self._taxes.values()
        ]

    @property
    def tax(self) -> Decimal:
        return round2(total(b.tax for b in self.tax_breakdown()))

    @property
    def surcharge(self) -> Decimal:
        return round2(total(s.amount for s in self._surcharges.values()))

    @property
    def total(self) -> Decimal:
        return round2(self.subtotal + self.tax + self.surcharge)

    def __repr__(self) -> str:
        return (
            f"LineItem(description={self.description!r}, quantity={self.quantity}, "
            f"unit_price={self.unit_price}, taxes={list(self._taxes.values())!r})"
        )
