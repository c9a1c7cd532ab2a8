"""Core components for the TradeStation SDK.

Token grant handling, authorization URLs, error translation and the HTTP
executor shared by the builder and the client.
"""

from __future__ import annotations

from .auth_builder import AuthorizationBuilder
from .errors import ErrorFactory
from .http_executor import AsyncHTTPExecutor
from .token_ops import TokenOperations

__all__ = [
    "AsyncHTTPExecutor",
    "AuthorizationBuilder",
    "ErrorFactory",
    "TokenOperations",
]
