import re
from decimal import Decimal, InvalidOperation

_NON_NUMERIC = re.compile(r"[^0-9.\-]")
_LEADING_NUMBER = re.compile(r"-?(?:\d+(?:\.\d*)?|\.\d+)")

CENT = Decimal("0.01")


def parse_price(value) -> Decimal:
    """
    Parse a price that may arrive as a number or as a formatted display string.

    Every character other than digits, "." and "-" is stripped first, so
    "$12.50", "12.50" and "1,200.00" all parse. The longest leading number of
    what remains is used; anything unparseable counts as zero.
    """
    if value is None or isinstance(value, bool):
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float)):
        return Decimal(str(value))

    cleaned = _NON_NUMERIC.sub("", str(value))
    match = _LEADING_NUMBER.match(cleaned)
    if not match:
        return Decimal("0")
    try:
        return Decimal(match.group(0))
    except InvalidOperation:
        return Decimal("0")


def format_price(amount: Decimal) -> str:
    return f"${amount.quantize(CENT):,}"
