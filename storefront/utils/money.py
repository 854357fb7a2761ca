# storefront/utils/money.py
#
# Amounts are whole currency units held in plain ints. Fractional results
# (percentages) are rounded half-up back to an int.

from decimal import Decimal, ROUND_HALF_UP

def D(x) -> Decimal:
    return x if isinstance(x, Decimal) else Decimal(str(x or "0"))

def round_units(x) -> int:
    return int(D(x).quantize(Decimal("1"), rounding=ROUND_HALF_UP))

def percent_of(amount: int, percent) -> int:
    return round_units(D(amount) * D(percent) / Decimal("100"))
