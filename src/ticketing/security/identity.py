"""
Bearer token adapter for the external identity provider.

The stores never look at the caller; a calling layer verifies the bearer token
here and applies ownership or admin checks with the resulting identity.
"""

import time
from typing import Any, Dict, Mapping, Optional

import jwt
from aws_lambda_powertools.metrics import MetricUnit
from jwt.exceptions import ExpiredSignatureError, InvalidTokenError as JWTInvalidTokenError
from pydantic import ValidationError

from ticketing.models.env_vars import TicketingEnvVars
from ticketing.models.identity import CallerIdentity
from ticketing.utils.observability import add_metric, logger, tracer

BEARER_PREFIX = 'Bearer '


class AuthenticationError(Exception):
    """Base authentication error."""
    pass


class TokenExpiredError(AuthenticationError):
    """Token has expired."""
    pass


class InvalidTokenError(AuthenticationError):
    """Token is invalid, malformed or missing required claims."""
    pass


def extract_bearer_token(headers: Optional[Mapping[str, str]]) -> Optional[str]:
    """Token from an ``Authorization: Bearer <token>`` header, if present."""
    if not headers:
        return None
    value = headers.get('Authorization') or headers.get('authorization')
    if not value or not value.startswith(BEARER_PREFIX):
        return None
    token = value[len(BEARER_PREFIX):].strip()
    return token or None


class TokenIdentityProvider:
    """
    HMAC JWT verifier producing a ``CallerIdentity``.

    Tokens carry the login flow's claims: ``userId``, ``email`` and
    ``userType`` (one of admin, organizer, attendee).
    """

    def __init__(self, secret_key: str, algorithm: str = 'HS256', leeway: int = 10) -> None:
        if not secret_key:
            raise ValueError('secret_key is required')
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.leeway = leeway

        logger.debug('Token identity provider initialized', extra={'algorithm': algorithm})

    @classmethod
    def from_env(cls, env: TicketingEnvVars) -> 'TokenIdentityProvider':
        return cls(secret_key=env.JWT_SECRET or '')

    @tracer.capture_method
    def verify(self, token: str) -> CallerIdentity:
        """
        Verify a bearer token and return the caller identity.

        Args:
            token: Encoded JWT, with or without the "Bearer " prefix

        Returns:
            Identity built from the token claims

        Raises:
            TokenExpiredError: If the token is past its expiry
            InvalidTokenError: For a bad signature, malformed token or claims
        """
        start_time = time.time()
        if token and token.startswith(BEARER_PREFIX):
            token = token[len(BEARER_PREFIX):]
        if not token:
            raise InvalidTokenError('Token is required')

        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm], leeway=self.leeway)
        except ExpiredSignatureError:
            add_metric(name='AuthenticationTokenExpired', unit=MetricUnit.Count, value=1)
            logger.warning('JWT token expired')
            raise TokenExpiredError('Token has expired') from None
        except JWTInvalidTokenError as e:
            add_metric(name='AuthenticationInvalidToken', unit=MetricUnit.Count, value=1)
            logger.warning(f'Invalid JWT token: {str(e)}')
            raise InvalidTokenError(f'Invalid token: {str(e)}') from e

        identity = self._identity_from_claims(payload)

        duration_ms = (time.time() - start_time) * 1000
        add_metric(name='AuthenticationSuccess', unit=MetricUnit.Count, value=1)
        logger.info('JWT authentication successful', extra={
            'subject_id': identity.subject_id,
            'role': identity.role.value,
            'duration_ms': duration_ms,
        })
        return identity

    def _identity_from_claims(self, payload: Dict[str, Any]) -> CallerIdentity:
        claims = {
            'subjectId': payload.get('userId'),
            'email': payload.get('email'),
            'role': payload.get('userType'),
        }
        if not all(isinstance(value, str) for value in claims.values()):
            raise InvalidTokenError('Token is missing userId, email or userType')
        try:
            return CallerIdentity.model_validate(claims)
        except ValidationError as e:
            raise InvalidTokenError(f'Invalid token claims: {e.error_count()} validation error(s)') from e
