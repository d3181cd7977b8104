"""
Human-facing identifiers: ticket numbers, tracking codes, SKUs, payment numbers.

Uniqueness is checked by the caller against the database; these helpers
only produce candidates.
"""
import re
import secrets
import string
from datetime import datetime
from typing import Optional

TRACKING_CODE_ALPHABET = string.ascii_uppercase + string.digits
TRACKING_CODE_LENGTH = 8
SKU_MAX_ATTEMPTS = 10


def generate_ticket_number(prefix: str = "T", now: Optional[datetime] = None) -> str:
    """`{prefix}{YYYYMMDD}-{6 random digits}`, e.g. T20240115-042917"""
    now = now or datetime.utcnow()
    return f"{prefix}{now.strftime('%Y%m%d')}-{secrets.randbelow(1_000_000):06d}"


def generate_tracking_code() -> str:
    return "".join(secrets.choice(TRACKING_CODE_ALPHABET) for _ in range(TRACKING_CODE_LENGTH))


def mask_tracking_code(code: str) -> str:
    """Only the last four characters are shown on the public page"""
    return f"XXXX-{code[-4:]}" if code else ""


def sku_base(name: str) -> str:
    """First three letters of each word, uppercased: 'iPhone 12 Screen' -> 'IPH-12-SCR'"""
    words = [re.sub(r"[^A-Za-z0-9]", "", word) for word in name.split()]
    return "-".join(word[:3].upper() for word in words if word) or "PART"


def generate_sku(name: str) -> str:
    return f"{sku_base(name)}-{secrets.randbelow(1_000_000):06d}"


def payment_number_prefix(now: Optional[datetime] = None) -> str:
    now = now or datetime.utcnow()
    return f"PAY-{now.strftime('%Y%m%d')}-"


def format_payment_number(sequence: int, now: Optional[datetime] = None) -> str:
    """PAY-YYYYMMDD-NNNN where NNNN is the day's running sequence"""
    return f"{payment_number_prefix(now)}{sequence:04d}"


def next_sequence(last_number: Optional[str]) -> int:
    """Sequence following the last issued number of the day (1 when none)"""
    if not last_number:
        return 1
    try:
        return int(last_number.rsplit("-", 1)[-1]) + 1
    except ValueError:
        return 1
