"""Caller identity verification for layers built on the ticketing stores."""

from ticketing.security.identity import (
    AuthenticationError,
    InvalidTokenError,
    TokenExpiredError,
    TokenIdentityProvider,
    extract_bearer_token,
)

__all__ = [
    'AuthenticationError',
    'InvalidTokenError',
    'TokenExpiredError',
    'TokenIdentityProvider',
    'extract_bearer_token',
]
