"""
services/money.py — Amount parsing and currency display helpers.

Amounts are Decimal from the moment they are parsed. Floats are only ever
converted through str() so that 0.1 stays Decimal("0.1").

Layer rules:
  - No Flask imports. Pure functions only.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, localcontext

DEFAULT_CURRENCY_SYMBOL = "€"

# Largest bill or payment the ledger accepts. Persisted blobs store amounts
# as JSON numbers (doubles), which hold 15 significant digits exactly.
MAX_AMOUNT = Decimal("999999999999.99")

_CENT = Decimal("0.01")
_ZERO = Decimal("0")


def parse_amount(value) -> Decimal | None:
    """
    Parses user-supplied input into a finite Decimal.

    Accepts str, int, float and Decimal. Returns None for anything that is
    not a finite number (blank strings, "abc", NaN, Infinity, booleans).
    Sign is not checked here; callers decide what range is valid.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, float)):
        amount = _to_decimal(str(value))
    elif isinstance(value, str):
        amount = _to_decimal(value.strip())
    else:
        return None

    if amount is None or not amount.is_finite():
        return None
    return amount


def format_currency(amount, symbol: str = DEFAULT_CURRENCY_SYMBOL) -> str:
    """
    Formats an amount for display: symbol + value rounded half-up to 2 dp.

    Example: Decimal("40") → "€40.00". Non-numeric input formats as 0.
    """
    value = parse_amount(amount)
    if value is None:
        value = _ZERO
    return f"{symbol}{_to_cents(value)}"


def is_within_limit(amount: Decimal) -> bool:
    """True if `amount` is no larger in magnitude than MAX_AMOUNT."""
    return abs(amount) <= MAX_AMOUNT


def parse_currency(text, symbol: str = DEFAULT_CURRENCY_SYMBOL) -> Decimal:
    """
    Reads back a string produced by format_currency().

    Persisted transactions carry their amount as "€12.34". Anything that
    does not parse yields Decimal("0").
    """
    raw = str(text if text is not None else "").replace(symbol, "").strip()
    value = parse_amount(raw)
    return value if value is not None else _ZERO


def _to_cents(value: Decimal) -> Decimal:
    # The default context (28 digits) cannot quantize values above ~1e26.
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, value.adjusted() + 3)
        ctx.Emax = max(ctx.Emax, value.adjusted())
        return value.quantize(_CENT, rounding=ROUND_HALF_UP)


def _to_decimal(raw: str) -> Decimal | None:
    if not raw:
        return None
    try:
        return Decimal(raw)
    except InvalidOperation:
        return None
