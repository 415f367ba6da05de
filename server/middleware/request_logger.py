"""
Request Logging and Audit Trail Middleware
Logs every HTTP request and the partner portal's security events
as JSON records on the "audit" logger
"""

import os
import json
import time
import uuid
import logging
from datetime import datetime, timezone
from typing import Dict, Optional, Any, List
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

audit_logger = logging.getLogger("audit")
audit_logger.setLevel(logging.INFO)

# File handler only when a path is configured; otherwise records propagate to root
AUDIT_LOG_FILE = os.getenv("AUDIT_LOG_FILE")
if AUDIT_LOG_FILE and not audit_logger.handlers:
    audit_handler = logging.FileHandler(AUDIT_LOG_FILE)
    audit_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    audit_handler.setFormatter(audit_formatter)
    audit_logger.addHandler(audit_handler)


class SecurityEvent:
    """Security event types for audit logging"""

    # Authentication events
    LOGIN_SUCCESS = "LOGIN_SUCCESS"
    LOGIN_FAILURE = "LOGIN_FAILURE"
    PARTNER_LOGIN_SUCCESS = "PARTNER_LOGIN_SUCCESS"
    PARTNER_LOGIN_FAILURE = "PARTNER_LOGIN_FAILURE"

    # Authorization events
    ACCESS_DENIED = "ACCESS_DENIED"
    NOT_ASSOCIATED = "NOT_ASSOCIATED"

    # Partner portal events
    PARTNER_REGISTERED = "PARTNER_REGISTERED"
    PARTNER_USER_LINKED = "PARTNER_USER_LINKED"
    DEAL_SUBMITTED = "DEAL_SUBMITTED"
    DEAL_APPROVED = "DEAL_APPROVED"
    DEAL_REJECTED = "DEAL_REJECTED"
    PASSWORD_RESET_REQUESTED = "PASSWORD_RESET_REQUESTED"
    PASSWORD_RESET_COMPLETED = "PASSWORD_RESET_COMPLETED"

    # Security events
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"


class AuditLogger:
    """Centralized audit logging system"""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or audit_logger
        self.sensitive_fields = {
            "password", "password_hash", "hashed_password", "token",
            "access_token", "secret", "key", "authorization"
        }

    def log_security_event(
        self,
        event_type: str,
        user_id: Optional[int] = None,
        email: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        severity: str = "INFO",
        request_id: Optional[str] = None
    ):
        """Log security event with standardized format"""

        event_data = {
            "event_type": event_type,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "severity": severity,
            "user_id": user_id,
            "email": email,
            "ip_address": ip_address,
            "user_agent": user_agent,
            "request_id": request_id,
            "details": self._sanitize_details(details)
        }

        event_data = {k: v for k, v in event_data.items() if v is not None}

        log_message = f"SECURITY_EVENT: {json.dumps(event_data)}"

        level = logging.getLevelName(severity)
        if not isinstance(level, int):
            level = logging.INFO
        self.logger.log(level, log_message)

    def log_request(
        self,
        method: str,
        path: str,
        status_code: int,
        user_id: Optional[int] = None,
        email: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        duration_ms: Optional[float] = None,
        request_size: Optional[int] = None,
        response_size: Optional[int] = None,
        request_id: Optional[str] = None,
        query_params: Optional[Dict] = None,
        errors: Optional[List[str]] = None
    ):
        """Log HTTP request with details"""

        request_data = {
            "type": "HTTP_REQUEST",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "method": method,
            "path": path,
            "status_code": status_code,
            "user_id": user_id,
            "email": email,
            "ip_address": ip_address,
            "user_agent": user_agent,
            "duration_ms": duration_ms,
            "request_size": request_size,
            "response_size": response_size,
            "request_id": request_id,
            "query_params": self._sanitize_details(query_params),
            "errors": errors
        }

        request_data = {k: v for k, v in request_data.items() if v is not None}

        log_message = f"HTTP_REQUEST: {json.dumps(request_data)}"

        if status_code >= 500:
            self.logger.error(log_message)
        elif status_code >= 400:
            self.logger.warning(log_message)
        else:
            self.logger.info(log_message)

    def _sanitize_details(self, details: Optional[Dict]) -> Optional[Dict]:
        """Remove sensitive information from details"""
        if not details:
            return details

        sanitized = {}
        for key, value in details.items():
            if any(sensitive in key.lower() for sensitive in self.sensitive_fields):
                sanitized[key] = "[REDACTED]"
            elif isinstance(value, dict):
                sanitized[key] = self._sanitize_details(value)
            else:
                sanitized[key] = value

        return sanitized


# (method, path, status) -> (event, severity) for exact-path events
ROUTE_EVENTS = {
    ("POST", "/auth/login", 200): (SecurityEvent.LOGIN_SUCCESS, "INFO"),
    ("POST", "/auth/login", 401): (SecurityEvent.LOGIN_FAILURE, "WARNING"),
    ("POST", "/partners/login", 200): (SecurityEvent.PARTNER_LOGIN_SUCCESS, "INFO"),
    ("POST", "/partners/login", 401): (SecurityEvent.PARTNER_LOGIN_FAILURE, "WARNING"),
    ("POST", "/partners/register", 201): (SecurityEvent.PARTNER_REGISTERED, "INFO"),
    ("POST", "/partners/deals", 201): (SecurityEvent.DEAL_SUBMITTED, "INFO"),
    ("POST", "/partners/password-reset/request", 200): (SecurityEvent.PASSWORD_RESET_REQUESTED, "INFO"),
    ("POST", "/partners/password-reset/reset", 200): (SecurityEvent.PASSWORD_RESET_COMPLETED, "WARNING"),
}


class RequestLoggerMiddleware(BaseHTTPMiddleware):
    """Middleware for logging all HTTP requests and responses"""

    def __init__(self, app, audit_logger: AuditLogger = None):
        super().__init__(app)
        self.audit_logger = audit_logger or AuditLogger()
        self.exclude_paths = {
            "/docs", "/redoc", "/openapi.json", "/health"
        }

    async def dispatch(self, request: Request, call_next):
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id

        if any(request.url.path.startswith(path) for path in self.exclude_paths):
            return await call_next(request)

        start_time = time.time()

        method = request.method
        path = request.url.path
        ip_address = self._get_client_ip(request)
        user_agent = request.headers.get("user-agent", "")
        query_params = dict(request.query_params) if request.query_params else None
        request_size = int(request.headers.get("content-length", 0))

        response = None
        errors = None
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
        except Exception as e:
            errors = [str(e)]
            raise
        finally:
            duration_ms = round((time.time() - start_time) * 1000, 2)

            response_size = None
            if response is not None:
                response_size = int(response.headers.get("content-length", 0))

            # The caller is only known once the auth dependency has run
            caller = getattr(request.state, "caller", None)
            user_id = caller.user_id if caller else None
            email = caller.email if caller else None

            self.audit_logger.log_request(
                method=method,
                path=path,
                status_code=status_code,
                user_id=user_id,
                email=email,
                ip_address=ip_address,
                user_agent=user_agent,
                duration_ms=duration_ms,
                request_size=request_size,
                response_size=response_size,
                request_id=request_id,
                query_params=query_params,
                errors=errors
            )

            self._log_security_events(
                status_code, method, path,
                user_id, email, ip_address, user_agent, request_id
            )

        return response

    def _get_client_ip(self, request: Request) -> str:
        """Extract client IP address from request"""
        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()

        real_ip = request.headers.get("x-real-ip")
        if real_ip:
            return real_ip

        return request.client.host if request.client else "unknown"

    def _log_security_events(
        self,
        status_code: int,
        method: str,
        path: str,
        user_id: Optional[int],
        email: Optional[str],
        ip_address: str,
        user_agent: str,
        request_id: str
    ):
        """Log specific security events based on request/response"""

        common = dict(
            user_id=user_id,
            email=email,
            ip_address=ip_address,
            user_agent=user_agent,
            request_id=request_id,
        )

        route_event = ROUTE_EVENTS.get((method, path, status_code))
        if route_event:
            event_type, severity = route_event
            self.audit_logger.log_security_event(event_type, severity=severity, **common)

        elif path.startswith("/admin/partner-users") and method == "POST" and status_code == 200:
            self.audit_logger.log_security_event(
                SecurityEvent.PARTNER_USER_LINKED,
                details={"path": path},
                severity="WARNING",
                **common
            )

        elif path.startswith("/admin/deals/") and method == "POST" and status_code == 200:
            event_type = SecurityEvent.DEAL_APPROVED if path.endswith("/approve") else SecurityEvent.DEAL_REJECTED
            self.audit_logger.log_security_event(
                event_type,
                details={"path": path},
                **common
            )

        elif status_code == 429:
            self.audit_logger.log_security_event(
                SecurityEvent.RATE_LIMIT_EXCEEDED,
                details={"path": path, "method": method},
                severity="WARNING",
                **common
            )

        elif status_code == 403:
            event_type = SecurityEvent.NOT_ASSOCIATED if path.startswith("/partners") else SecurityEvent.ACCESS_DENIED
            self.audit_logger.log_security_event(
                event_type,
                details={"path": path, "method": method},
                severity="WARNING",
                **common
            )
