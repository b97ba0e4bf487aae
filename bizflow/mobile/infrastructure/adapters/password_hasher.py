from __future__ import annotations

from passlib.context import CryptContext

from bizflow.shared.logging import get_logger

logger = get_logger(__name__)


class PasslibPasswordHasher:
    """Argon2 for new hashes; bcrypt hashes from older imports still verify."""

    def __init__(self) -> None:
        self._ctx = CryptContext(schemes=["argon2", "bcrypt"], deprecated="auto")

    def hash(self, plain: str) -> str:
        if not plain:
            raise ValueError("password_empty")
        return self._ctx.hash(plain)

    def verify(self, plain: str, hashed: str) -> bool:
        if not plain or not hashed:
            return False
        try:
            return self._ctx.verify(plain, hashed)
        except (ValueError, TypeError) as exc:
            # unknown or corrupt hash format
            logger.warning("password_verify_failed", error=str(exc))
            return False
