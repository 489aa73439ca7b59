from __future__ import annotations

from typing import Any

from amen_messaging.application.dto.principal import Principal
from amen_messaging.application.exceptions import NotAuthenticatedError


def principal_from_claims(payload: dict[str, Any]) -> Principal:
    subject = payload.get("sub")
    if not subject:
        raise NotAuthenticatedError("Token has no subject")
    return Principal(
        account_id=str(subject),
        display_name=payload.get("name") or payload.get("display_name"),
    )
