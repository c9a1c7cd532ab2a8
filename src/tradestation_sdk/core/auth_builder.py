"""Authorization URL construction for the authorization-code flow."""

from __future__ import annotations

import secrets
from typing import TYPE_CHECKING
from urllib.parse import parse_qs, quote, urlencode, urlparse

if TYPE_CHECKING:
    from ..config import ClientConfig


def generate_state(num_bytes: int = 32) -> str:
    """Generate an opaque CSRF state value."""
    return secrets.token_urlsafe(num_bytes)


class AuthorizationBuilder:
    """Builds the hosted sign-in URL and reads the redirect it produces."""

    def __init__(self, config: ClientConfig) -> None:
        self.config = config

    def build_authorization_url(self, state: str | None = None) -> str:
        """Build the hosted authorization URL.

        Args:
            state: Caller-supplied opaque state; generated if omitted.

        Returns:
            URL with response_type, client_id, redirect_uri, scope and state.
        """
        params: dict[str, str] = {
            "response_type": "code",
            "client_id": self.config.client_id,
            "redirect_uri": self.config.redirect_uri,
            "scope": self.config.scope_string,
            "state": state if state is not None else generate_state(),
        }
        # Scopes must be joined with %20, not "+"
        query = urlencode(params, quote_via=quote)
        return f"{self.config.authorization_endpoint}?{query}"

    def parse_callback_url(
        self,
        callback_url: str,
        expected_state: str | None = None,
    ) -> str:
        """Extract the authorization code from the redirect URL.

        Args:
            callback_url: The URL the browser was redirected to.
            expected_state: State sent with the authorization URL, if checked.

        Returns:
            The authorization code.

        Raises:
            ValueError: If the redirect carries an error, the state does not
                match, or no code is present.
        """
        params = parse_qs(urlparse(callback_url).query)

        if "error" in params:
            error = params["error"][0]
            error_desc = params.get("error_description", [""])[0]
            msg = f"Authorization error: {error}"
            if error_desc:
                msg += f" - {error_desc}"
            raise ValueError(msg)

        if expected_state is not None:
            state = params.get("state", [""])[0]
            if state != expected_state:
                msg = "State mismatch - possible CSRF attack"
                raise ValueError(msg)

        if "code" not in params:
            msg = "No authorization code in callback"
            raise ValueError(msg)

        return params["code"][0]

