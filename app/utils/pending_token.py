from dataclasses import dataclass
from datetime import datetime, timedelta

from jose import jwt, JWTError

from app.exceptions import InvalidPendingTokenError

JWT_ALGORITHM = "HS256"

@dataclass
class PendingConnection:
    memory_id: str
    scan_id: str
    code: str
    owner_user_id: str


class PendingTokenSigner:
    """
    Signs the pending-connection token handed to an anonymous viewer.

    The token carries the pending memory across the registration redirect
    (and across devices, when it travels in an invitation link) until the
    viewer is signed in and completes the connection.
    """

    def __init__(self, secret: str, ttl_days: int = 7):
        self.secret = secret
        self.ttl = timedelta(days=ttl_days)

    def issue(self, pending: PendingConnection, now: datetime) -> str:
        payload = {
            "mid": pending.memory_id,
            "sid": pending.scan_id,
            "code": pending.code,
            "own": pending.owner_user_id,
            "iat": int(now.timestamp()),
            "exp": int((now + self.ttl).timestamp()),
        }
        return jwt.encode(payload, self.secret, algorithm=JWT_ALGORITHM)

    def verify(self, token: str) -> PendingConnection:
        """
        Decode and check a token.

        Raises:
            InvalidPendingTokenError: Malformed, forged, expired or incomplete token
        """
        if not token:
            raise InvalidPendingTokenError("Missing pending connection token")
        try:
            payload = jwt.decode(token, self.secret, algorithms=[JWT_ALGORITHM])
        except JWTError as e:
            raise InvalidPendingTokenError(f"Invalid or expired pending connection token: {str(e)}")

        try:
            return PendingConnection(
                memory_id=payload["mid"],
                scan_id=payload["sid"],
                code=payload["code"],
                owner_user_id=payload["own"]
            )
        except KeyError as e:
            raise InvalidPendingTokenError(f"Pending connection token missing claim {e}")
