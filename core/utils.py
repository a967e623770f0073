# partnerbot/core/utils.py
"""
Formatting and parsing helpers shared by notifications and admin commands.
"""
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
# SAFEDICT
# ═══════════════════════════════════════════════════════════════════════════

class SafeDict(dict):
    """
    Dictionary for str.format_map() that tolerates missing keys.

    Examples:
        >>> "{name} reached {rank}".format_map(SafeDict(name="Ann"))
        'Ann reached {rank}'
        >>> "{rate:.1f}%".format_map(SafeDict(rate=Decimal("40")))
        '40.0%'
    """

    def __missing__(self, key):
        return '{' + key + '}'


def safe_format(template: str, **values) -> str:
    """
    Format a message template without raising on missing keys or bad specs.

    None values are rendered as '-'.
    """
    data = SafeDict({k: ('-' if v is None else v) for k, v in values.items()})
    try:
        return template.format_map(data)
    except (ValueError, TypeError) as e:
        logger.warning(f"Error formatting template {template!r}: {e}")
        return template


# ═══════════════════════════════════════════════════════════════════════════
# PARSING
# ═══════════════════════════════════════════════════════════════════════════

def parse_int(value: Any) -> Optional[int]:
    """
    Parse integer value safely.

    Returns:
        int or None if parsing fails
    """
    if value is None or value == '':
        return None

    try:
        return int(value)
    except (ValueError, TypeError):
        return None


def parse_decimal(value: Any) -> Optional[Decimal]:
    """
    Parse a decimal value, accepting a trailing '%' and comma separators.

    Returns:
        Decimal or None if parsing fails
    """
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value

    text = str(value).strip().rstrip('%').replace(',', '.')
    if not text:
        return None

    try:
        result = Decimal(text)
    except (InvalidOperation, ValueError):
        return None
    return result if result.is_finite() else None


def format_rate(rate: Optional[Decimal]) -> str:
    """Decimal('40.00') -> '40%', Decimal('32.50') -> '32.5%'."""
    if rate is None:
        return '-'
    normalized = Decimal(rate).normalize()
    if normalized == normalized.to_integral():
        normalized = normalized.quantize(Decimal(1))
    return f"{normalized}%"
