"""
Display formatting for market data.

Formats prices, large numbers and percentages, and maps Fear & Greed
values to their classification and colour.
"""

CURRENCY_SYMBOLS = {
    "usd": "$",
    "eur": "€",
    "gbp": "£",
    "jpy": "¥",
    "btc": "₿",
    "eth": "Ξ",
}

NOT_AVAILABLE = "N/A"

# (upper bound inclusive, label), checked in order
FEAR_GREED_LEVELS = [
    (24, "Extreme Fear"),
    (44, "Fear"),
    (55, "Neutral"),
    (75, "Greed"),
    (100, "Extreme Greed"),
]

FEAR_GREED_COLORS = {
    "Extreme Fear": "#C0392B",  # Dark red
    "Fear": "#E67E22",  # Orange
    "Neutral": "#F1C40F",  # Yellow
    "Greed": "#7DCEA0",  # Light green
    "Extreme Greed": "#1E8449",  # Dark green
}

DEFAULT_COLOR = "#95A5A6"  # Grey


def format_price(value: float | None, currency: str = "usd") -> str:
    """
    Format a price with its currency symbol.

    Prices of 1 or more get two decimals and thousands separators; smaller
    prices keep up to six significant digits so sub-cent tokens stay readable.

    Examples:
        format_price(64321.5) -> "$64,321.50"
        format_price(0.000012345) -> "$0.000012345"
    """
    if value is None:
        return NOT_AVAILABLE

    symbol = CURRENCY_SYMBOLS.get(currency.lower(), "")
    suffix = "" if symbol else f" {currency.upper()}"
    sign = "-" if value < 0 else ""
    value = abs(value)

    if value >= 1 or value == 0:
        text = f"{value:,.2f}"
    else:
        text = f"{value:.6g}"
        # .6g switches to exponent notation below 1e-4
        if "e" in text:
            text = f"{value:.12f}".rstrip("0")

    return f"{sign}{symbol}{text}{suffix}"


def format_large_number(value: float | None, decimals: int = 2) -> str:
    """
    Abbreviate a large number with K/M/B/T suffixes.

    Examples:
        format_large_number(1_234_567_890) -> "1.23B"
        format_large_number(950) -> "950.00"
    """
    if value is None:
        return NOT_AVAILABLE

    sign = "-" if value < 0 else ""
    value = abs(value)

    for threshold, suffix in ((1e12, "T"), (1e9, "B"), (1e6, "M"), (1e3, "K")):
        if value >= threshold:
            return f"{sign}{value / threshold:.{decimals}f}{suffix}"
    return f"{sign}{value:.{decimals}f}"


def format_percent(value: float | None, decimals: int = 2) -> str:
    """Format a percentage change with an explicit sign ("+1.23%", "-0.50%")."""
    if value is None:
        return NOT_AVAILABLE
    return f"{value:+.{decimals}f}%"


def classify_fear_greed(value: int) -> str:
    """
    Get the classification label of an index value.

    Raises:
        ValueError: If value is outside 0-100
    """
    if not 0 <= value <= 100:
        raise ValueError(f"Fear & Greed value must be between 0 and 100, got {value}")

    for upper, label in FEAR_GREED_LEVELS:
        if value <= upper:
            return label
    return FEAR_GREED_LEVELS[-1][1]


def fear_greed_color(value: int | str) -> str:
    """
    Get the display colour for an index value or classification label.

    Unknown labels get a neutral grey.
    """
    if isinstance(value, int):
        value = classify_fear_greed(value)
    return FEAR_GREED_COLORS.get(value.strip().title(), DEFAULT_COLOR)
