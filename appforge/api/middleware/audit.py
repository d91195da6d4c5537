"""Audit logging for the AppForge API.

The RBAC core does not store audit events. Mutating endpoints hand each event
to ``AuditLogger``, which emits it on the ``appforge.audit`` logger and never
lets a failing sink break the request. ``AuditMiddleware`` stamps every
request with a correlation id that the events carry.
"""

import logging
import time
import uuid
from typing import Any, Callable, Dict, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

audit_log = logging.getLogger("appforge.audit")
logger = logging.getLogger(__name__)


# Paths that should not be traced (health checks, docs)
EXCLUDED_PATHS = {
    "/health",
    "/docs",
    "/redoc",
    "/openapi.json",
    "/favicon.ico",
}

# Sensitive fields to redact from logs
SENSITIVE_FIELDS = {
    "password",
    "password_hash",
    "token",
    "access_token",
    "refresh_token",
    "api_key",
    "secret",
    "client_secret",
}


def get_client_ip(request: Request) -> str:
    """Extract client IP from request, handling proxies."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        # Take the first IP (original client)
        return forwarded.split(",")[0].strip()

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip

    if request.client:
        return request.client.host

    return "unknown"


def redact_sensitive(data: Any) -> Any:
    """Redact sensitive fields from data."""
    if isinstance(data, dict):
        return {
            k: "[REDACTED]" if str(k).lower() in SENSITIVE_FIELDS else redact_sensitive(v)
            for k, v in data.items()
        }
    elif isinstance(data, list):
        return [redact_sensitive(item) for item in data]
    return data


class AuditMiddleware(BaseHTTPMiddleware):
    """
    Assigns a request id and traces each API request.

    The id is stored on ``request.state.request_id`` and echoed in the
    ``X-Request-ID`` response header.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in EXCLUDED_PATHS:
            return await call_next(request)

        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())[:8]
        request.state.request_id = request_id
        start_time = time.time()

        response = await call_next(request)

        duration_ms = int((time.time() - start_time) * 1000)
        response.headers["X-Request-ID"] = request_id
        logger.debug(
            "%s %s -> %d (%dms)",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            extra={"request_id": request_id, "client_ip": get_client_ip(request)},
        )
        return response


class AuditLogger:
    """
    Emits audit events for role and assignment mutations.

    Usage:
        @router.post("/roles")
        async def create_role(
            request: Request,
            db: Session = Depends(get_db),
            current_user: User = Depends(get_current_user),
        ):
            # ... create role ...

            AuditLogger(request, current_user).log(
                action="create",
                resource="role",
                resource_id=role.id,
                details={"name": role.name},
            )
    """

    def __init__(self, request: Optional[Request], user):
        self.request = request
        self.user = user

    def build_event(
        self,
        action: str,
        resource: str,
        resource_id: Optional[Any] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        event = {
            "actor_user_id": str(self.user.id) if self.user is not None else None,
            "action": action,
            "resource": resource,
            "resource_id": str(resource_id) if resource_id is not None else None,
            "details": redact_sensitive(details) if details else {},
        }
        if self.request is not None:
            event["ip_address"] = get_client_ip(self.request)
            event["user_agent"] = self.request.headers.get("user-agent")
            event["request_id"] = getattr(self.request.state, "request_id", None)
        return event

    def log(
        self,
        action: str,
        resource: str,
        resource_id: Optional[Any] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> Optional[Dict[str, Any]]:
        """Log an audit event. Failures are reported and swallowed."""
        try:
            event = self.build_event(action, resource, resource_id, details)
            audit_log.info(
                "%s on %s %s by %s",
                action,
                resource,
                event["resource_id"] or "-",
                event["actor_user_id"] or "system",
                extra={"audit": event},
            )
            return event
        except Exception:
            # Log error but dont fail the request
            logger.exception("Audit logging error for %s on %s", action, resource)
            return None
