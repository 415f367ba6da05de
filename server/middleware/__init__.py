"""
Middleware package for security and request handling
"""

from .rate_limiter import setup_rate_limiting, auth_rate_limit
from .error_handler import setup_error_handlers
from .request_logger import RequestLoggerMiddleware, AuditLogger, SecurityEvent

__all__ = [
    "setup_rate_limiting",
    "auth_rate_limit",
    "setup_error_handlers",
    "RequestLoggerMiddleware",
    "AuditLogger",
    "SecurityEvent",
]
