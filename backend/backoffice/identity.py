# Overview: Current-user identity supplied by the hosting environment.

from __future__ import annotations

from flask import current_app, request


def get_current_user() -> str | None:
    """
    Opaque id of the authenticated user, or None.

    Authentication happens upstream. An app may install its own callable as
    IDENTITY_PROVIDER; otherwise the id is read from the header the gateway
    sets after verifying the session (AUTH_USER_HEADER).
    """
    provider = current_app.config.get("IDENTITY_PROVIDER")
    if provider is not None:
        user_id = provider()
    else:
        user_id = request.headers.get(current_app.config.get("AUTH_USER_HEADER", "X-Authenticated-User"))
    if user_id is None:
        return None
    user_id = str(user_id).strip()
    return user_id or None
