"""Format check for pool values (email-shaped payloads)"""

import re
from typing import Iterable, Iterator, Optional

# local-part@domain-with-dot; no whitespace, exactly one "@"
_EMAIL_RE = re.compile(
    r"^[A-Za-z0-9!#$%&'*+/=?^_`{|}~-]+(?:\.[A-Za-z0-9!#$%&'*+/=?^_`{|}~-]+)*"
    r"@"
    r"(?:[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?\.)+"
    r"[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?$"
)

MAX_VALUE_LENGTH = 254


def normalize(value: object) -> Optional[str]:
    """Strip surrounding whitespace; non-strings normalize to None"""
    if not isinstance(value, str):
        return None
    return value.strip()


def is_valid(value: object) -> bool:
    """True when value is an email-shaped string"""
    v = normalize(value)
    if not v or len(v) > MAX_VALUE_LENGTH:
        return False
    local, _, _ = v.partition("@")
    if len(local) > 64:
        return False
    return _EMAIL_RE.match(v) is not None


def filter_valid(values: Iterable[object]) -> Iterator[str]:
    """Yield normalized valid values, silently dropping the rest"""
    for value in values:
        if is_valid(value):
            yield normalize(value)
