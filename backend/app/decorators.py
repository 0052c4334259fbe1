# Overview: Request decorators for API routes (authentication and admin gate).

from functools import wraps
from flask import request, jsonify, g, current_app

from .services import session_service
from .services.payment_gateway import PaymentGatewayError
from .validation import AuthorizationError, NotFoundError, ValidationError


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user')


def require_auth(f):
    """
    Require a valid bearer token.

    Sets g.current_user to the authenticated User.

    SECURITY: Returns 401 if:
    - No Authorization header
    - Invalid, expired or revoked token
    - User account deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"success": False, "error": "Authentication required"}), 401

        token = auth_header.split(" ", 1)[1]
        user = session_service.validate_session(token)

        if not user:
            return jsonify({"success": False, "error": "Invalid or expired token"}), 401

        g.current_user = user
        return f(*args, **kwargs)

    return decorated_function


def require_admin(f):
    """Require the authenticated user to be an admin. Use after @require_auth."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not _is_authenticated():
            return jsonify({"success": False, "error": "Authentication required"}), 401
        if not g.current_user.is_admin:
            return jsonify({"success": False, "error": "Admin access required"}), 403
        return f(*args, **kwargs)
    return decorated_function


def translate_errors(action: str):
    """
    Map domain errors raised by a route to JSON error responses.

    ValidationError -> 400, AuthorizationError -> 403, NotFoundError -> 404,
    PaymentGatewayError -> 502. Anything else is logged with `action` and
    returned as a generic 500.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            try:
                return f(*args, **kwargs)
            except AuthorizationError as e:
                return jsonify({"success": False, "error": str(e)}), 403
            except ValidationError as e:
                return jsonify({"success": False, "error": str(e)}), 400
            except NotFoundError as e:
                return jsonify({"success": False, "error": str(e)}), 404
            except PaymentGatewayError:
                current_app.logger.exception("%s: payment gateway error", action)
                return jsonify({"success": False, "error": "Payment gateway unavailable"}), 502
            except Exception:
                current_app.logger.exception(action)
                return jsonify({"success": False, "error": "Internal server error"}), 500
        return decorated_function
    return decorator
