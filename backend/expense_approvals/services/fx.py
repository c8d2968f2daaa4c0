"""Static-rate currency annotation for submitted expenses.

The engine treats converted amounts as opaque numbers; this only fills
``amount_in_company_currency`` so approvers see a figure in their own currency.
"""
from decimal import Decimal

# USD value of one unit of each currency (mid-market, refreshed manually).
USD_RATES: dict[str, Decimal] = {
    "USD": Decimal("1.0"),
    "EUR": Decimal("1.08"),
    "GBP": Decimal("1.27"),
    "CAD": Decimal("0.74"),
    "AUD": Decimal("0.65"),
    "JPY": Decimal("0.0067"),
    "CNY": Decimal("0.14"),
    "INR": Decimal("0.012"),
    "MXN": Decimal("0.058"),
    "CHF": Decimal("1.13"),
}

_QUANT = Decimal("0.0001")


def convert(amount: Decimal, from_currency: str, to_currency: str) -> Decimal:
    """Convert ``amount`` between two currencies through USD.

    Unknown currencies are treated as USD-equivalent (rate 1.0).
    """
    amount = Decimal(str(amount))
    if from_currency.upper() == to_currency.upper():
        return amount.quantize(_QUANT)
    usd = amount * USD_RATES.get(from_currency.upper(), Decimal("1.0"))
    target_rate = USD_RATES.get(to_currency.upper(), Decimal("1.0"))
    return (usd / target_rate).quantize(_QUANT)
