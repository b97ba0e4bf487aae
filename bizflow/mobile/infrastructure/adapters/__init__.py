from .jwt_service import JWTService
from .password_hasher import PasslibPasswordHasher

__all__ = ["JWTService", "PasslibPasswordHasher"]
