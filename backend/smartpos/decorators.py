# Overview: Request and capability decorators for API routes.

from functools import wraps

from flask import current_app, g, request

from .errors import AuthenticationError, AuthorizationError, error_response
from .permissions import Capability, has_capability
from .services import session_service


TOKEN_COOKIE = "token"


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user') and hasattr(g, 'session_context')


def request_token() -> str | None:
    """Bearer token from the Authorization header, else the `token` cookie."""
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header.split(" ", 1)[1].strip()
        if token:
            return token
    return request.cookies.get(TOKEN_COOKIE) or None


def require_auth(f):
    """
    Require a valid session.

    Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.session_context: The full SessionContext object

    Returns 401 if the token is missing, unknown, expired, revoked, or the
    user account has been deactivated.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = request_token()
        if not token:
            return error_response(AuthenticationError("Authentication required"))

        context = session_service.validate_session(token)
        if not context:
            return error_response(AuthenticationError("Invalid or expired token"))

        g.current_user = context.user
        g.session_context = context
        return f(*args, **kwargs)

    return decorated_function


def require_capability(capability: Capability):
    """Require the current user's role to carry `capability`. Use below @require_auth."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return error_response(AuthenticationError("Authentication required"))

            role = g.session_context.role
            if not has_capability(role, capability):
                current_app.logger.warning(
                    "Permission denied: user %s (%s) lacks %s for %s %s",
                    g.current_user.id, role.value, capability.value, request.method, request.path,
                )
                return error_response(AuthorizationError(
                    "Permission denied",
                    details={"required_capability": capability.value},
                ))

            return f(*args, **kwargs)

        return decorated_function
    return decorator
