from .auth_service import MobileAuthService
from .device_service import DeviceService
from .rate_limiter import RateLimiter
from .sync_manager import SyncManager

__all__ = ["DeviceService", "MobileAuthService", "RateLimiter", "SyncManager"]
