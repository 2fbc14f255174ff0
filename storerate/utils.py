import re
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional
import bleach


def sanitize_input(value: Optional[str]) -> str:
    """Sanitize a user-supplied string for safe display and search.

    - Strips HTML tags using bleach.clean(..., strip=True)
    - Removes obvious SQL metacharacters like '--' and ';'
    - Trims whitespace
    """
    if value is None:
        return ""
    # remove NULL bytes
    val = value.replace("\x00", "")
    # strip tags
    val = bleach.clean(val, strip=True)
    # remove common SQL comment and statement separators
    val = re.sub(r"(--|;)", "", val)
    return val.strip()


def clean_text(value: Optional[str]) -> Optional[str]:
    """Strip markup from free text kept as-is otherwise (rating comments)."""
    if value is None:
        return None
    val = bleach.clean(value.replace("\x00", ""), tags=[], strip=True).strip()
    return val or None


# Ratings are reported rounded to 2 decimals, half up

def round_rating(value) -> Optional[Decimal]:
    if value is None:
        return None
    if not isinstance(value, Decimal):
        # floats from AVG() go through str to avoid binary noise
        value = Decimal(str(value))
    return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
