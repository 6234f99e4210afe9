"""Token issuance and verification"""

import abc
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from chat_service.core.errors import AuthError

logger = logging.getLogger("chat-service.services.identity")


@dataclass(frozen=True)
class Identity:
    user_id: str
    email: str


class IdentityVerifier(abc.ABC):
    """Token-claims check used by the connection gateway and REST middleware"""

    @abc.abstractmethod
    def verify(self, token: str) -> Identity:
        """
        Verify a token

        Raises:
            AuthError: If the token is invalid or expired
        """


class TokenService:
    """Creates signed access tokens with ``userId`` and ``email`` claims"""

    def __init__(self, secret: str, algorithm: str = "HS256", lifetime: int = 86400):
        self.secret = secret
        self.algorithm = algorithm
        self.lifetime = lifetime

    def create_access_token(self, user_id: str, email: str, lifetime: int | None = None) -> str:
        """
        Create an access token

        Args:
            user_id: User ID
            email: User email
            lifetime: Token lifetime in seconds (default from settings)

        Returns:
            Encoded JWT
        """
        now = datetime.now(timezone.utc)
        exp = now + timedelta(seconds=self.lifetime if lifetime is None else lifetime)
        payload = {
            "userId": user_id,
            "email": email,
            "iat": int(now.timestamp()),
            "exp": int(exp.timestamp()),
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)


class JWTIdentityVerifier(IdentityVerifier):
    """Validates HS256 tokens issued by TokenService"""

    def __init__(self, secret: str, algorithm: str = "HS256"):
        self.secret = secret
        self.algorithm = algorithm

    def verify(self, token: str) -> Identity:
        if not token:
            raise AuthError("Missing token")
        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                options={"verify_exp": True, "require_exp": True},
            )
        except JWTError as e:
            logger.warning(f"JWT validation failed: {e}")
            raise AuthError(str(e))

        user_id = payload.get("userId")
        email = payload.get("email")
        if not user_id or not email:
            raise AuthError("Token is missing required claims")
        return Identity(user_id=user_id, email=email)
