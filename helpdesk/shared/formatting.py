"""
Locale Formatting
=================

Display formatting for money, hours and percentages in the locales the
helpdesk ships with. Angola (``pt-AO``, kwanza) is the default market.

Formatted currency strings can be parsed back with ``parse_currency``; the
round trip is exact to two decimal places.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Union

from helpdesk.config import SUPPORTED_LOCALES

Number = Union[int, float, Decimal]


@dataclass(frozen=True)
class LocaleFormat:
    currency_code: str
    currency_symbol: str
    symbol_after: bool
    group_separator: str
    decimal_separator: str


LOCALE_FORMATS = {
    "pt-AO": LocaleFormat("AOA", "Kz", True, ".", ","),
    "pt-BR": LocaleFormat("BRL", "R$", False, ".", ","),
    "en-US": LocaleFormat("USD", "$", False, ",", "."),
}


def get_locale_format(locale: str) -> LocaleFormat:
    if locale not in LOCALE_FORMATS:
        raise ValueError(f"Unsupported locale '{locale}', expected one of {SUPPORTED_LOCALES}")
    return LOCALE_FORMATS[locale]


def format_number(
    value: Number,
    locale: str = "pt-AO",
    min_fraction_digits: int = 0,
    max_fraction_digits: int = 2,
) -> str:
    """Format ``value`` with the locale's grouping and decimal separators."""
    fmt = get_locale_format(locale)
    quantum = Decimal(1).scaleb(-max_fraction_digits)
    amount = Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP)

    text = format(abs(amount), f",.{max_fraction_digits}f")
    if max_fraction_digits > min_fraction_digits:
        integer, _, fraction = text.partition(".")
        fraction = fraction.rstrip("0")
        fraction = fraction.ljust(min_fraction_digits, "0")
        text = f"{integer}.{fraction}" if fraction else integer

    text = text.translate(str.maketrans({",": fmt.group_separator, ".": fmt.decimal_separator}))
    return f"-{text}" if amount < 0 else text


def format_currency(
    amount: Number,
    locale: str = "pt-AO",
    show_symbol: bool = True,
) -> str:
    """
    Format a monetary amount, e.g. ``1.234,50 Kz`` (pt-AO), ``R$ 1.234,50``
    (pt-BR) or ``$ 1,234.50`` (en-US).
    """
    fmt = get_locale_format(locale)
    number = format_number(amount, locale, min_fraction_digits=2, max_fraction_digits=2)
    if not show_symbol:
        return number
    if fmt.symbol_after:
        return f"{number} {fmt.currency_symbol}"
    return f"{fmt.currency_symbol} {number}"


def parse_currency(text: str, locale: str = "pt-AO") -> Decimal:
    """
    Parse a string produced by ``format_currency`` back into a Decimal.

    Raises:
        ValueError: If no number can be read from ``text``
    """
    fmt = get_locale_format(locale)
    cleaned = text.replace(fmt.currency_symbol, "")
    cleaned = "".join(cleaned.split())
    cleaned = cleaned.replace(fmt.group_separator, "").replace(fmt.decimal_separator, ".")
    try:
        return Decimal(cleaned)
    except InvalidOperation:
        raise ValueError(f"Not a {locale} currency value: {text!r}")


def format_hours(hours: Number, locale: str = "pt-AO", show_label: bool = True) -> str:
    """One decimal place, e.g. ``12,5h``."""
    number = format_number(hours, locale, min_fraction_digits=1, max_fraction_digits=1)
    return f"{number}h" if show_label else number


def format_percentage(
    value: Number,
    locale: str = "pt-AO",
    min_fraction_digits: int = 0,
    max_fraction_digits: int = 1,
) -> str:
    number = format_number(value, locale, min_fraction_digits, max_fraction_digits)
    return f"{number}%"
