"""Fee and rounding policy for payable costs."""

from decimal import ROUND_HALF_UP, Decimal

# ISO 4217 minor units that differ from the default of 2.
CURRENCY_MINOR_UNITS: dict[str, int] = {
    "BIF": 0, "CLP": 0, "DJF": 0, "GNF": 0, "ISK": 0, "JPY": 0, "KMF": 0,
    "KRW": 0, "PYG": 0, "RWF": 0, "UGX": 0, "VND": 0, "VUV": 0, "XAF": 0,
    "XOF": 0, "XPF": 0,
    "BHD": 3, "IQD": 3, "JOD": 3, "KWD": 3, "LYD": 3, "OMR": 3, "TND": 3,
}


def currency_exponent(currency: str) -> int:
    return CURRENCY_MINOR_UNITS.get(currency.upper(), 2)


def round_cost(amount: Decimal, currency: str, surcharge: Decimal = Decimal("0")) -> Decimal:
    """Apply a percent surcharge and round half-up to the currency's minor unit."""

    total = Decimal(amount) * (Decimal(100) + Decimal(surcharge)) / Decimal(100)
    quantum = Decimal(1).scaleb(-currency_exponent(currency))
    return total.quantize(quantum, rounding=ROUND_HALF_UP)
