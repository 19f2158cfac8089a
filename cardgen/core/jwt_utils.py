import time
from typing import Any, Dict, Optional

import jwt

from cardgen.core.config import settings


class JWTManager:
    """HS256 bearer tokens whose ``sub`` claim is the user id."""

    algorithm = "HS256"

    def __init__(self, secret: str, token_lifetime_seconds: int = 3600):
        self.secret = secret
        self.token_lifetime_seconds = token_lifetime_seconds

    def generate_token(self, user_id: str, extra_claims: Optional[Dict[str, Any]] = None) -> str:
        """Generate a JWT token for the user"""
        now = int(time.time())
        payload: Dict[str, Any] = {
            "sub": str(user_id),
            "iat": now,
            "exp": now + self.token_lifetime_seconds,
        }
        for key, value in (extra_claims or {}).items():
            if key not in payload and value is not None:
                payload[key] = value
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def verify_token(self, token: str) -> Dict[str, Any]:
        """Verify and decode a JWT token"""
        try:
            decoded = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                options={"require": ["sub", "exp"]},
            )
        except jwt.PyJWTError as e:
            raise ValueError(f"Invalid token: {e}")
        return decoded


jwt_manager = JWTManager(secret=settings.app.jwt_secret)
