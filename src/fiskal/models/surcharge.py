from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from fiskal.exceptions import ValidationError
from fiskal.utils.money import round2, to_decimal

MAX_NAME_LENGTH = 100


@dataclass(frozen=True)
class Surcharge:
    """A named additive fee (naknada) on a line, e.g. a bottle deposit."""

    name: str
    amount: Decimal

    def __post_init__(self) -> None:
        if self.name is None:
            raise ValidationError("Surcharge name cannot be None")
        name = str(self.name).strip()
        if not name:
            raise ValidationError("Surcharge name cannot be empty")
        if len(name) > MAX_NAME_LENGTH:
            raise ValidationError(f"Surcharge name must not exceed {MAX_NAME_LENGTH} characters")
        object.__setattr__(self, "name", name)

        if self.amount is None:
            raise ValidationError("Surcharge amount cannot be None")
        try:
            amount = to_decimal(self.amount, allow_str=True)
        except TypeError:
            raise ValidationError(f"Surcharge amount must be numeric: {self.amount!r}") from None
        object.__setattr__(self, "amount", round2(amount))
