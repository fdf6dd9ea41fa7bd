from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

# ISO 4217 minor units, for currencies that do not use two.
CURRENCY_MINOR_UNITS = {
    "BIF": 0,
    "CLP": 0,
    "DJF": 0,
    "GNF": 0,
    "ISK": 0,
    "JPY": 0,
    "KMF": 0,
    "KRW": 0,
    "PYG": 0,
    "RWF": 0,
    "UGX": 0,
    "VND": 0,
    "VUV": 0,
    "XAF": 0,
    "XOF": 0,
    "XPF": 0,
    "BHD": 3,
    "IQD": 3,
    "JOD": 3,
    "KWD": 3,
    "LYD": 3,
    "OMR": 3,
    "TND": 3,
}


def minor_units(currency_code: str) -> int:
    return CURRENCY_MINOR_UNITS.get(currency_code.upper(), 2)


@dataclass(frozen=True)
class Price:
    number: Decimal
    currency_code: str

    def __post_init__(self):
        if not isinstance(self.number, Decimal):
            object.__setattr__(self, "number", Decimal(str(self.number)))
        object.__setattr__(self, "currency_code", self.currency_code.upper())

    def _check_currency(self, other: "Price") -> None:
        if other.currency_code != self.currency_code:
            raise ValueError(
                f"Cannot combine {self.currency_code} and {other.currency_code} amounts"
            )

    def add(self, other: "Price") -> "Price":
        self._check_currency(other)
        return Price(self.number + other.number, self.currency_code)

    def subtract(self, other: "Price") -> "Price":
        self._check_currency(other)
        return Price(self.number - other.number, self.currency_code)

    def less_than(self, other: "Price") -> bool:
        self._check_currency(other)
        return self.number < other.number

    def greater_than(self, other: "Price") -> bool:
        self._check_currency(other)
        return self.number > other.number

    def is_zero(self) -> bool:
        return self.number == 0

    def __str__(self):
        return f"{self.number} {self.currency_code}"


def round_price(price: Price) -> Price:
    """Round half-up to the currency's minor-unit precision."""
    exponent = Decimal(1).scaleb(-minor_units(price.currency_code))
    return Price(price.number.quantize(exponent, rounding=ROUND_HALF_UP), price.currency_code)
