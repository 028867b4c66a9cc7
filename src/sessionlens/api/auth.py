"""Bearer-token authentication for the session routes.

Tokens are resolved against a static token -> user id map taken from
configuration. Identity is all that is checked here; ownership of a
session is decided by the service layer.
"""

from __future__ import annotations

import hmac
import logging

from sessionlens.errors import Unauthorized

logger = logging.getLogger(__name__)

BEARER_PREFIX = "bearer "


class BearerAuthenticator:
    """Maps ``Authorization: Bearer <token>`` headers to user ids."""

    def __init__(self, tokens: dict[str, str]) -> None:
        self._tokens = dict(tokens)

    def authenticate(self, authorization: str | None) -> str:
        """Return the user id for an Authorization header value.

        Raises:
            Unauthorized: If the header is missing, malformed, or carries
                an unknown token.
        """
        if not authorization or not authorization.lower().startswith(BEARER_PREFIX):
            raise Unauthorized("Missing bearer token")

        token = authorization[len(BEARER_PREFIX):].strip()
        for known, user_id in self._tokens.items():
            if hmac.compare_digest(known.encode(), token.encode()):
                return user_id

        logger.warning("Rejected request with unknown bearer token")
        raise Unauthorized("Unknown bearer token")
