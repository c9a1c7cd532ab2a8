"""Token request building and response processing.

Pure functions of the configuration: no I/O and no token state, so the
same logic serves the builder (code exchange) and the client (refresh).
"""

from __future__ import annotations

import json
from datetime import datetime
from typing import TYPE_CHECKING

from pydantic import ValidationError

from ..errors import TokenConfigError
from ..models import Token, TokenRequest, TokenResponse

if TYPE_CHECKING:
    import httpx

    from ..config import ClientConfig

FORM_HEADERS = {"Content-Type": "application/x-www-form-urlencoded"}


class TokenOperations:
    """Token grant payloads and parsing for the identity endpoint."""

    def __init__(self, config: ClientConfig) -> None:
        """Initialize token operations.

        Args:
            config: SDK configuration.
        """
        self.config = config

    def build_authorization_code_request(self, code: str) -> dict[str, str]:
        """Build authorization code exchange form payload.

        Raises:
            TokenConfigError: If the code is empty.
        """
        return self._form(
            grant_type="authorization_code",
            code=code,
            redirect_uri=self.config.redirect_uri,
        )

    def build_refresh_token_request(self, refresh_token: str) -> dict[str, str]:
        """Build refresh token grant form payload.

        Raises:
            TokenConfigError: If the refresh token is empty.
        """
        return self._form(grant_type="refresh_token", refresh_token=refresh_token)

    def _form(self, **fields: str) -> dict[str, str]:
        try:
            request = TokenRequest(
                client_id=self.config.client_id,
                client_secret=self.config.client_secret,
                **fields,
            )
        except ValidationError as e:
            raise TokenConfigError(f"Invalid token request: {e}") from e
        return request.to_form_data()

    def parse_token_response(self, response: httpx.Response) -> TokenResponse:
        """Parse an identity endpoint response.

        Raises:
            TokenConfigError: On a non-2xx status or a malformed body.
        """
        status = response.status_code
        if not 200 <= status < 300:
            details: dict[str, str] = {}
            try:
                body = json.loads(response.content)
            except ValueError:
                body = None
            if isinstance(body, dict):
                for key in ("error", "error_description"):
                    if isinstance(body.get(key), str):
                        details[key] = body[key]
            msg = details.get(
                "error_description", f"Token request failed with status {status}"
            )
            raise TokenConfigError(msg, status_code=status, details=details)

        try:
            return TokenResponse.model_validate_json(response.content)
        except ValidationError as e:
            raise TokenConfigError(
                f"Malformed token response: {e}", status_code=status
            ) from e

    def process_exchange(
        self,
        response: httpx.Response,
        *,
        issued_at: datetime | None = None,
    ) -> Token:
        """Turn a code exchange response into a new Token."""
        return Token.from_response(
            self.parse_token_response(response), issued_at=issued_at
        )

    def process_refresh(
        self,
        response: httpx.Response,
        previous: Token,
        *,
        issued_at: datetime | None = None,
    ) -> Token:
        """Turn a refresh response into a Token that keeps ``previous``'s
        refresh token when the response omits one."""
        return Token.from_response(
            self.parse_token_response(response),
            previous=previous,
            issued_at=issued_at,
        )
