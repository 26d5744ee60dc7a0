# animetracker/tokens.py
from datetime import datetime, timedelta, timezone
import logging

import jwt

from animetracker.errors import MalformedTokenError, ExpiredTokenError, InvalidTokenError

logger = logging.getLogger(__name__)

DEFAULT_ALGORITHM = "HS256"

class TokenService:
    """
    Issues and verifies signed session tokens.

    Tokens carry ``id``, ``email``, ``iat`` and ``exp`` claims. Verification is
    stateless: signature and expiry only, the store is never consulted.
    """

    def __init__(self, secret: str, lifetime_hours: float = 24, algorithm: str = DEFAULT_ALGORITHM):
        if not secret:
            raise ValueError("token secret must not be empty")
        self._secret = secret
        self.algorithm = algorithm
        self.lifetime = timedelta(hours=lifetime_hours)

    def issue(self, subject_id: int, email: str) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "id": subject_id,
            "email": email,
            "iat": now,
            "exp": now + self.lifetime,
        }
        token = jwt.encode(payload, self._secret, algorithm=self.algorithm)
        logger.debug("Issued token for user id=%s", subject_id)
        return token

    def verify(self, token: str) -> int:
        """Return the subject id carried by ``token`` or raise an AuthError subclass."""
        try:
            payload = jwt.decode(token, self._secret, algorithms=[self.algorithm],
                                 options={"require": ["exp"]})
        except jwt.ExpiredSignatureError as e:
            raise ExpiredTokenError("token expired") from e
        except jwt.InvalidTokenError as e:
            logger.debug("Token rejected: %s", e)
            raise InvalidTokenError("invalid token") from e

        subject = payload.get("id")
        # bool is an int subclass
        if not isinstance(subject, int) or isinstance(subject, bool):
            raise MalformedTokenError("token has no subject id")
        return subject
