"""Middleware for caller identity (user or guest) and role."""
from functools import wraps

from flask import session, g, current_app

from storefront.database import get_session
from storefront.exceptions import UnauthorizedError
from storefront.services.guest_session_service import GuestSessionStore
from storefront.services.pricing_service import fetch_user_role, default_role


def load_identity():
    """
    Load the caller's identity into g.

    Sets g.user_id (None for guests), g.role (price tier) and
    g.guest_store (the guest session backed by the signed cookie).
    """
    g.user_id = session.get('user_id')
    g.role = default_role()
    g.guest_store = GuestSessionStore(expiry_days=current_app.config.get('GUEST_SESSION_DAYS', 7))

    if not g.user_id:
        return
    try:
        g.role = fetch_user_role(get_session(), g.user_id)
    except Exception as e:
        # Pricing falls back to the default tier rather than failing the request
        current_app.logger.error(f"Error loading role for {g.user_id}: {e}")


def require_login(f):
    """Decorator: caller must be signed in (401 otherwise)."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not g.get('user_id'):
            raise UnauthorizedError('Please sign in to continue.', status_code=401)
        return f(*args, **kwargs)
    return decorated_function


def require_admin(f):
    """Decorator: caller must hold the admin role (403 otherwise)."""
    @wraps(f)
    @require_login
    def decorated_function(*args, **kwargs):
        if g.get('role') != current_app.config.get('ADMIN_ROLE', 'admin'):
            raise UnauthorizedError('Administrator access required.')
        return f(*args, **kwargs)
    return decorated_function
