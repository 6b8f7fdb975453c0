# Overview: Flask API routes for auth operations; login, logout, identity and user registration.

from flask import Blueprint, current_app, g, request

from ..decorators import TOKEN_COOKIE, request_token, require_auth, require_capability
from ..errors import AuthenticationError, PosError, ValidationError, error_response, ok
from ..permissions import Capability, Role, capabilities_for
from ..services import auth_service, session_service
from . import internal_error, json_body


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _identity(user) -> dict:
    data = user.to_dict()
    data["capabilities"] = sorted(c.value for c in capabilities_for(user.role))
    return data


@auth_bp.post("/login")
def login():
    """
    Exchange username/password for a session token.

    The token is returned in the body and also set as an HttpOnly cookie.
    """
    try:
        data = json_body()
        username = (data.get("username") or "").strip()
        password = data.get("password") or ""
        if not username or not password:
            raise ValidationError("username and password are required")

        user = auth_service.authenticate(username, password)
        if not user:
            current_app.logger.warning("Failed login for %r from %s", username, request.remote_addr)
            raise AuthenticationError("Invalid username or password")

        record, token = session_service.create_session(
            user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
        response, status = ok({
            "token": token,
            "expires_at": record.to_dict()["expires_at"],
            "user": _identity(user),
        })
        response.set_cookie(
            TOKEN_COOKIE,
            token,
            httponly=True,
            samesite="Lax",
            secure=not current_app.debug and not current_app.testing,
            max_age=current_app.config.get("SESSION_ABSOLUTE_TIMEOUT_HOURS", 24) * 3600,
        )
        return response, status
    except PosError as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to log in")
        return internal_error()


@auth_bp.post("/logout")
@require_auth
def logout():
    try:
        session_service.revoke_session(request_token())
        response, status = ok({"message": "Logged out"})
        response.delete_cookie(TOKEN_COOKIE)
        return response, status
    except PosError as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to log out")
        return internal_error()


@auth_bp.get("/me")
@require_auth
def me():
    return ok(_identity(g.current_user))


@auth_bp.get("/roles")
@require_auth
def roles():
    return ok([
        {"role": role.value, "capabilities": sorted(c.value for c in capabilities_for(role))}
        for role in Role
    ])


@auth_bp.post("/register")
@require_auth
@require_capability(Capability.MANAGE_USERS)
def register():
    """Create a user account. Admin only."""
    try:
        data = json_body()
        user = auth_service.create_user(
            username=data.get("username"),
            password=data.get("password"),
            full_name=data.get("full_name"),
            role=data.get("role") or Role.CASHIER,
        )
        current_app.logger.info("User %s created by %s", user.username, g.current_user.username)
        return ok(user.to_dict(), 201)
    except PosError as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to register user")
        return internal_error()


@auth_bp.get("/users")
@require_auth
@require_capability(Capability.MANAGE_USERS)
def list_users():
    users = auth_service.list_users(include_inactive=True)
    return ok([u.to_dict() for u in users])
