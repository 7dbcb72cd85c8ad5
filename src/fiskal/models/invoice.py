from __future__ import annotations

import re
from collections.abc import Iterable
from datetime import date, datetime
from decimal import Decimal

from fiskal.exceptions import ValidationError
from fiskal.models.enums import PaymentMethod, SequenceMark, TaxCategory, TaxType
from fiskal.models.line_item import LineItem
from fiskal.models.party import Party
from fiskal.models.surcharge import Surcharge
from fiskal.models.tax import TaxBreakdown
from fiskal.utils.money import ZERO, round2, total

_BUSINESS_LOCATION_RE = re.compile(r"[A-Za-z0-9]{1,20}")
_INTEGER_IDENTIFIER_RE = re.compile(r"[1-9][0-9]{0,19}")


def _parse_datetime(value: datetime | date | str | None) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        raise ValidationError(f"Invalid date: {value!r}") from None


def merge_tax_entries(entries: Iterable[TaxBreakdown], *, by_name: bool = False) -> list[TaxBreakdown]:
    """Merge entries sharing a rate (and name, when *by_name*).

    Bases and amounts are summed exactly; order is first-seen. A merged
    entry keeps the category of its first line.
    """
    merged: dict[tuple, TaxBreakdown] = {}
    for entry in entries:
        key = (entry.rate, entry.name) if by_name else (entry.rate,)
        seen = merged.get(key)
        if seen is None:
            merged[key] = entry
        else:
            merged[key] = TaxBreakdown(
                rate=seen.rate,
                base=seen.base + entry.base,
                tax=seen.tax + entry.tax,
                taxable=seen.taxable,
                name=seen.name,
                type=seen.type,
                category=seen.category,
            )
    return list(merged.values())


def valid_business_location_identifier(value: str) -> bool:
    return _BUSINESS_LOCATION_RE.fullmatch(value) is not None


def valid_integer_identifier(value: str) -> bool:
    """Digits only, 1-20 long, no leading zero."""
    return _INTEGER_IDENTIFIER_RE.fullmatch(value) is not None


class Invoice:
    """An invoice held in memory until it is fiscalized.

    Totals are never cached: every read re-sums the current line items.
    """

    def __init__(
        self,
        *,
        sequential_number: str | int,
        business_location_identifier: str,
        register_identifier: str | int,
        issue_date: datetime | date | str | None = None,
        due_date: datetime | date | str | None = None,
        issuer: Party | None = None,
        seller: Party | None = None,
        buyer: Party | None = None,
        line_items: Iterable[LineItem] = (),
        payment_method: PaymentMethod | str = PaymentMethod.CARD,
        sequential_by: SequenceMark | str = SequenceMark.REGISTER,
        currency: str = "EUR",
        unique_invoice_identifier: str | None = None,
    ) -> None:
        self.sequential_number = sequential_number
        self.business_location_identifier = business_location_identifier
        self.register_identifier = register_identifier
        self.issue_date = issue_date
        self.due_date = due_date
        self.issuer = issuer
        self.seller = seller
        self.buyer = buyer
        self.payment_method = payment_method
        self.sequential_by = sequential_by
        self.currency = currency
        self.unique_invoice_identifier = unique_invoice_identifier
        self.line_items: list[LineItem] = []
        for item in line_items:
            self.add_line_item(item)

    # --- identity ---

    @property
    def sequential_number(self) -> str:
        return self._sequential_number

    @sequential_number.setter
    def sequential_number(self, value: str | int) -> None:
        self._sequential_number = self._integer_identifier(value, "Sequential number")

    @property
    def register_identifier(self) -> str:
        return self._register_identifier

    @register_identifier.setter
    def register_identifier(self, value: str | int) -> None:
        self._register_identifier = self._integer_identifier(value, "Register identifier")

    @property
    def business_location_identifier(self) -> str:
        return self._business_location_identifier

    @business_location_identifier.setter
    def business_location_identifier(self, value: str) -> None:
        if value is None:
            raise ValidationError("Business location identifier cannot be None")
        value = str(value).strip()
        if not valid_business_location_identifier(value):
            raise ValidationError(
                "Business location identifier must be 1-20 characters, letters and digits only"
            )
        self._business_location_identifier = value

    @staticmethod
    def _integer_identifier(value: str | int, label: str) -> str:
        if value is None or isinstance(value, bool):
            raise ValidationError(f"{label} cannot be {value!r}")
        value = str(value).strip()
        if not valid_integer_identifier(value):
            raise ValidationError(f"{label} must be a number of at most 20 digits without leading zeros")
        return value

    @property
    def number(self) -> str:
        return f"{self.sequential_number}/{self.business_location_identifier}/{self.register_identifier}"

    @property
    def issue_date(self) -> datetime | None:
        return self._issue_date

    @issue_date.setter
    def issue_date(self, value: datetime | date | str | None) -> None:
        self._issue_date = _parse_datetime(value)

    @property
    def due_date(self) -> datetime | None:
        return self._due_date

    @due_date.setter
    def due_date(self, value: datetime | date | str | None) -> None:
        self._due_date = _parse_datetime(value)

    @property
    def payment_method(self) -> PaymentMethod:
        return self._payment_method

    @payment_method.setter
    def payment_method(self, value: PaymentMethod | str) -> None:
        self._payment_method = PaymentMethod.parse(value)

    @property
    def sequential_by(self) -> SequenceMark:
        return self._sequential_by

    @sequential_by.setter
    def sequential_by(self, value: SequenceMark | str) -> None:
        self._sequential_by = SequenceMark.parse(value)

    def add_line_item(self, line_item: LineItem) -> LineItem:
        if not isinstance(line_item, LineItem):
            raise ValidationError(f"Expected a LineItem, got {type(line_item).__name__}")
        self.line_items.append(line_item)
        return line_item

    def reverse(self) -> None:
        """Reverse every line in place (storno of the whole invoice)."""
        for item in self.line_items:
            item.reverse()

    # --- aggregates ---

    @property
    def subtotal(self) -> Decimal:
        return total(item.subtotal for item in self.line_items)

    @property
    def tax(self) -> Decimal:
        return total(item.tax for item in self.line_items)

    @property
    def surcharge(self) -> Decimal:
        return total(item.surcharge for item in self.line_items)

    @property
    def margin(self) -> Decimal:
        return total(item.margin for item in self.line_items if item.margin is not None)

    @property
    def total(self) -> Decimal:
        return total(item.total for item in self.line_items)

    @property
    def total_cents(self) -> int:
        return int(round2(self.total) * 100)

    def tax_breakdown(self) -> dict[TaxType, list[TaxBreakdown]]:
        """Per-line breakdown entries grouped by tax type, in line order.

        Types without any entry are absent from the result.
        """
        grouped: dict[TaxType, list[TaxBreakdown]] = {}
        for item in self.line_items:
            for entry in item.tax_breakdown():
                grouped.setdefault(entry.type, []).append(entry)
        return {t: grouped[t] for t in TaxType if t in grouped}

    def tax_summary(self) -> dict[TaxType, list[TaxBreakdown]]:
        """Like :meth:`tax_breakdown`, with one entry per distinct rate.

        Taxes of type ``other`` are also kept apart by name.
        """
        return {
            tax_type: merge_tax_entries(entries, by_name=tax_type is TaxType.OTHER)
            for tax_type, entries in self.tax_breakdown().items()
        }

    def surcharges(self) -> list[Surcharge]:
        """Surcharges of all lines, same-named entries merged by summing amounts."""
        merged: dict[str, Decimal] = {}
        for item in self.line_items:
            for surcharge in item.surcharges:
                merged[surcharge.name] = merged.get(surcharge.name, ZERO) + surcharge.amount
        return [Surcharge(name=name, amount=amount) for name, amount in merged.items()]

    def _subtotal_where_vat(self, category: TaxCategory) -> Decimal:
        return total(
            item.subtotal
            for item in self.line_items
            if (vat := item.taxes.get(TaxType.VALUE_ADDED)) is not None and vat.category is category
        )

    @property
    def vat_exempt_amount(self) -> Decimal:
        return self._subtotal_where_vat(TaxCategory.EXEMPT)

    @property
    def amount_outside_vat_scope(self) -> Decimal:
        return self._subtotal_where_vat(TaxCategory.OUTSIDE_SCOPE)
