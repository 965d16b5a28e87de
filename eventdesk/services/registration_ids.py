"""Human-readable registration ids: REG-YYYYMMDD-XXXXX."""

from __future__ import annotations

import re
import secrets
from datetime import datetime

from eventdesk.models import utcnow

# No I, O, 0 or 1
ID_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
ID_SUFFIX_LENGTH = 5
ID_PREFIX = "REG"

REGISTRATION_ID_PATTERN = re.compile(
    rf"^{ID_PREFIX}-\d{{8}}-[{ID_ALPHABET}]{{{ID_SUFFIX_LENGTH}}}$"
)


def generate_registration_id(now: datetime | None = None) -> str:
    now = now or utcnow()
    suffix = ''.join(secrets.choice(ID_ALPHABET) for _ in range(ID_SUFFIX_LENGTH))
    return f"{ID_PREFIX}-{now:%Y%m%d}-{suffix}"


def is_registration_id(value: str | None) -> bool:
    return bool(value) and REGISTRATION_ID_PATTERN.match(value) is not None


__all__ = ["ID_ALPHABET", "generate_registration_id", "is_registration_id"]
