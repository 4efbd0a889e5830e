from __future__ import annotations

import base64
from enum import Enum

from rt_rest_client.domain.errors import InvalidCredentialFormat


class AuthMode(str, Enum):
    BASIC = "basic"
    TOKEN = "token"
    NONE = "none"


def auth_header(mode: AuthMode, credential: str) -> str | None:
    """
    Return the `Authorization` header value for `mode`, or None when no header is sent.

    Basic credentials must look like `username:password`. Token credentials are passed
    through unchecked, including the empty string.
    """
    if mode is AuthMode.NONE:
        return None

    if mode is AuthMode.BASIC:
        if ":" not in credential:
            raise InvalidCredentialFormat(
                "Basic credentials must be in the username:password format"
            )
        encoded = base64.b64encode(credential.encode("utf-8")).decode("ascii")
        return f"Basic {encoded}"

    return f"token {credential}"
