from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime

from storefront.core.domain.model.order import UserId

EMAIL_PATTERN = re.compile(r"^\S+@\S+\.\S+$")


@dataclass(frozen=True)
class User:
    user_id: UserId
    email: str
    username: str
    created_at: datetime


def default_username(email: str) -> str:
    return email.split("@", 1)[0]
