from __future__ import annotations

from enum import Enum

from fiskal.exceptions import ValidationError


class _CodedEnum(Enum):
    """Enum whose members can be looked up by member, name, value or protocol code."""

    @classmethod
    def parse(cls, value: object):
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            key = value.strip()
            for member in cls:
                if key in (member.name, member.name.lower(), member.value, member.code):
                    return member
        raise ValidationError(f"Invalid {cls.__name__}: {value!r}")

    @property
    def code(self) -> str:
        return self.value


class TaxType(_CodedEnum):
    VALUE_ADDED = "value_added_tax"
    CONSUMPTION = "consumption_tax"
    OTHER = "other"

    @property
    def default_name(self) -> str | None:
        return _TAX_NAMES.get(self)


_TAX_NAMES = {
    TaxType.VALUE_ADDED: "Porez na dodanu vrijednost",
    TaxType.CONSUMPTION: "Porez na potrošnju",
}


class TaxCategory(_CodedEnum):
    STANDARD = "standard"
    LOWER_RATE = "lower_rate"
    EXEMPT = "exempt"
    ZERO_RATED = "zero_rated"
    OUTSIDE_SCOPE = "outside_scope"
    REVERSE_CHARGE = "reverse_charge"


class PaymentMethod(_CodedEnum):
    CASH = "cash"
    CARD = "card"
    CHECK = "check"
    TRANSFER = "transfer"
    OTHER = "other"

    @property
    def code(self) -> str:
        return _PAYMENT_CODES[self]


# G gotovina, K kartica, C ček, T transakcijski račun, O ostalo
_PAYMENT_CODES = {
    PaymentMethod.CASH: "G",
    PaymentMethod.CARD: "K",
    PaymentMethod.CHECK: "C",
    PaymentMethod.TRANSFER: "T",
    PaymentMethod.OTHER: "O",
}


class SequenceMark(_CodedEnum):
    """How sequential numbers are allocated: per register (N) or per business location (P)."""

    REGISTER = "register"
    BUSINESS_LOCATION = "business_location"

    @property
    def code(self) -> str:
        return "N" if self is SequenceMark.REGISTER else "P"
