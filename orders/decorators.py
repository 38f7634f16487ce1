import json
import logging
from functools import wraps

from django.http import JsonResponse

from accounts.utils import Actor
from marketplace.errors import MarketplaceError

logger = logging.getLogger(__name__)


def error_response(error):
    return JsonResponse(
        {"success": False, "error": error.code, "message": error.message},
        status=error.status_code,
    )


def api_view(view_func):
    """
    JSON endpoint wrapper:
    - 401 for anonymous users, otherwise ``request.actor`` is set
    - ``request.data`` holds the parsed JSON body (400 when malformed)
    - engine errors become ``{"success": false, "error": <code>}`` with their status
    - anything else is logged and answered with a generic 500
    """
    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        if not request.user.is_authenticated:
            return JsonResponse({"success": False, "error": "Unauthorized", "message": "Login required"}, status=401)
        request.actor = Actor.from_user(request.user)

        request.data = {}
        if request.method in ("POST", "PUT", "PATCH") and request.body:
            try:
                request.data = json.loads(request.body)
            except (json.JSONDecodeError, UnicodeDecodeError):
                return JsonResponse({"success": False, "error": "BadRequest", "message": "Invalid JSON body"}, status=400)
            if not isinstance(request.data, dict):
                return JsonResponse({"success": False, "error": "BadRequest", "message": "JSON object expected"}, status=400)

        try:
            return view_func(request, *args, **kwargs)
        except MarketplaceError as e:
            logger.info(f"{view_func.__name__} rejected for {request.actor.role} #{request.actor.id}: {e.code}: {e.message}")
            return error_response(e)
        except Exception as e:
            logger.error(f"{view_func.__name__} failed: {str(e)}", exc_info=True)
            return JsonResponse(
                {"success": False, "error": "InternalError", "message": "Something went wrong. Please try again."},
                status=500,
            )

    return wrapper


def require_roles(*roles):
    """Restrict an ``api_view`` to the given actor roles (403 otherwise)"""
    def decorator(view_func):
        @wraps(view_func)
        def wrapper(request, *args, **kwargs):
            if request.actor.role not in roles:
                return JsonResponse(
                    {"success": False, "error": "Forbidden", "message": "Access denied for your role"},
                    status=403,
                )
            return view_func(request, *args, **kwargs)
        return wrapper
    return decorator
