# Overview: Flask API routes for shop settings; any user reads, admins write.

from flask import Blueprint, current_app, g

from ..decorators import require_auth, require_capability
from ..errors import PosError, error_response, ok
from ..permissions import Capability
from ..services import settings_service
from . import internal_error, json_body


settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")


@settings_bp.get("")
@require_auth
@require_capability(Capability.VIEW_SETTINGS)
def get_settings():
    try:
        return ok(settings_service.get_settings().to_dict())
    except PosError as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to fetch settings")
        return internal_error()


@settings_bp.put("")
@require_auth
@require_capability(Capability.MANAGE_SETTINGS)
def update_settings():
    try:
        settings = settings_service.update_settings(json_body())
        current_app.logger.info("Settings updated by %s", g.current_user.username)
        return ok(settings.to_dict())
    except PosError as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to update settings")
        return internal_error()


@settings_bp.post("/reset")
@require_auth
@require_capability(Capability.MANAGE_SETTINGS)
def reset_settings():
    try:
        return ok(settings_service.reset_settings().to_dict())
    except PosError as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to reset settings")
        return internal_error()
