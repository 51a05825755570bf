"""FastAPI dependencies for the NOSH API.

Provides:
- Operator resolution from the X-Operator-Key header
"""

import hashlib
import hmac
from typing import Optional

from fastapi import Header

from .exceptions import AuthorizationError
from .settings import settings


def operator_id(key: str) -> str:
    """Stable, non-secret identifier for an operator key (stored as uploaded_by)."""
    return "operator:" + hashlib.sha256(key.encode("utf-8")).hexdigest()[:12]


def require_operator(
    x_operator_key: Optional[str] = Header(None, alias="X-Operator-Key"),
) -> str:
    """Resolve the calling operator.

    Raises:
        AuthorizationError (403) if the header is missing or not a configured key
    """
    if not x_operator_key:
        raise AuthorizationError("Operator access required")

    for key in settings.operator_api_keys:
        if key and hmac.compare_digest(x_operator_key.encode("utf-8"), key.encode("utf-8")):
            return operator_id(key)

    raise AuthorizationError("Operator access required")
