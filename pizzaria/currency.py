"""
Formatação de valores monetários em reais (BRL)
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

PREFIX = "R$ "
DECIMAL_SEPARATOR = ","
THOUSAND_SEPARATOR = "."


def _is_valid_number(value) -> bool:
    if value is None or isinstance(value, bool):
        return False
    try:
        return float(value) == float(value)  # NaN != NaN
    except (TypeError, ValueError):
        return False


def _format_number(value: float) -> str:
    quantized = Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    inteiro, centavos = f"{abs(quantized):.2f}".split(".")
    inteiro = f"{int(inteiro):,}".replace(",", THOUSAND_SEPARATOR)
    sinal = "-" if quantized < 0 else ""
    return f"{sinal}{inteiro}{DECIMAL_SEPARATOR}{centavos}"


def format_currency(value: Optional[float]) -> str:
    """
    Formata um número no padrão brasileiro.

    >>> format_currency(1234.56)
    'R$ 1.234,56'
    >>> format_currency(None)
    'R$ 0,00'
    """
    if not _is_valid_number(value):
        return f"{PREFIX}0{DECIMAL_SEPARATOR}00"
    return f"{PREFIX}{_format_number(float(value))}"
