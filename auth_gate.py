"""Query-parameter credential check."""

from __future__ import annotations

import hmac

from config import AuthCredential
from errors import Unauthorized


def is_authorized(query_params: dict[str, list[str]], credential: AuthCredential | None) -> bool:
    """Return True when the request may proceed.

    Only the first occurrence of the configured key counts. An empty configured
    value still requires the key to be present (``?key=``).
    """
    if credential is None:
        return True
    supplied = query_params.get(credential.key)
    if not supplied:
        return False
    return hmac.compare_digest(
        supplied[0].encode("utf-8"),
        credential.value.encode("utf-8"),
    )


def require_authorized(
    query_params: dict[str, list[str]],
    credential: AuthCredential | None,
) -> None:
    if not is_authorized(query_params, credential):
        raise Unauthorized("Missing or incorrect credential")
