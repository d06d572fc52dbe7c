from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import jwt

CLOSER_TOKEN_ROLE = "closer"


def create_closer_token(
    closer_id: str,
    *,
    secret: str,
    ttl_minutes: int,
    email: str | None = None,
) -> str:
    now = datetime.now(tz=timezone.utc)
    payload: Dict[str, Any] = {
        "sub": closer_id,
        "role": CLOSER_TOKEN_ROLE,
        "exp": now + timedelta(minutes=ttl_minutes),
        "iat": now,
    }
    if email:
        payload["email"] = email
    return jwt.encode(payload, secret, algorithm="HS256")


def decode_access_token(token: str, secret: str) -> dict[str, Any]:
    return jwt.decode(token, secret, algorithms=["HS256"])
