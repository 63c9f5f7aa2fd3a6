import jwt
import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, Any, Optional

from academy.core.config import (
    JWT_SECRET_KEY,
    JWT_ALGORITHM,
    JWT_AUDIENCE,
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES,
)
from academy.core.exceptions import AuthenticationError

logger = logging.getLogger(__name__)


class JWTManager:
    """
    Verifies access tokens issued by the hosted identity provider.

    The token subject ("sub") is the identity-provider user id, stored on
    the coach as auth_id.
    """

    def __init__(
        self,
        secret_key: Optional[str] = JWT_SECRET_KEY,
        algorithm: str = JWT_ALGORITHM,
        audience: Optional[str] = JWT_AUDIENCE,
        access_token_expire_minutes: int = JWT_ACCESS_TOKEN_EXPIRE_MINUTES,
    ):
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.audience = audience
        self.access_token_expire_minutes = access_token_expire_minutes

    def create_access_token(
        self, subject: str, extra_data: Dict[str, Any] = None
    ) -> str:
        """
        Issue a token in the identity provider's format. Used by local
        tooling and tests; production tokens come from the provider.
        """
        now = datetime.now(timezone.utc)
        payload = {
            "sub": subject,
            "iat": now,
            "exp": now + timedelta(minutes=self.access_token_expire_minutes),
        }
        if self.audience:
            payload["aud"] = self.audience
        if extra_data:
            payload.update(extra_data)

        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def decode_token(self, token: str) -> Dict[str, Any]:
        """
        Decode and verify a token.

        Raises:
            AuthenticationError: expired, malformed or wrongly signed token
        """
        if not self.secret_key:
            raise AuthenticationError("Token verification is not configured")

        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                audience=self.audience,
                options={"verify_aud": bool(self.audience)},
            )
        except jwt.ExpiredSignatureError:
            logger.warning("JWT token has expired")
            raise AuthenticationError("Token has expired")
        except jwt.InvalidTokenError as e:
            logger.warning(f"Invalid JWT token provided: {str(e)}")
            raise AuthenticationError("Invalid token")

        if not payload.get("sub"):
            raise AuthenticationError("Token has no subject")

        return payload


jwt_manager = JWTManager()
