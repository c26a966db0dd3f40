"""
Auth hand-off blueprint.

Sign-in itself happens at the external auth provider; the client posts
the provider's access token here, the session cookie remembers the user
and the guest cart is folded into the user's cart.
"""
import logging

import jwt
from flask import Blueprint, request, session, jsonify, g, current_app

from storefront.database import get_session
from storefront.exceptions import UnauthorizedError, BusinessLogicError
from storefront.middleware import require_login
from storefront.services.cart_service import merge_guest_cart_into_user, get_current_cart_id
from storefront.services.dealer_service import submit_application

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__, url_prefix='/auth')


def decode_access_token(token: str) -> dict:
    """Verify an auth-provider access token and return its claims."""
    try:
        return jwt.decode(
            token,
            current_app.config['AUTH_JWT_SECRET'],
            algorithms=['HS256'],
            audience=current_app.config.get('AUTH_JWT_AUDIENCE') or None,
            options={'require': ['sub', 'exp']},
        )
    except jwt.ExpiredSignatureError:
        raise UnauthorizedError('Your session has expired, please sign in again.', status_code=401)
    except jwt.InvalidTokenError:
        raise UnauthorizedError('Invalid access token.', status_code=401)


@auth_bp.route('/session', methods=['POST'])
def create_session():
    """Exchange a provider token for a session and merge the guest cart."""
    payload = request.get_json(silent=True) or {}
    token = payload.get('access_token')
    if not token:
        auth_header = request.headers.get('Authorization', '')
        if auth_header.startswith('Bearer '):
            token = auth_header[len('Bearer '):]
    if not token:
        raise UnauthorizedError('Access token is required.', status_code=401)

    claims = decode_access_token(token)
    user_id = str(claims['sub'])

    session['user_id'] = user_id
    g.user_id = user_id

    db_session = get_session()
    merged_cart_id = merge_guest_cart_into_user(db_session, user_id, g.guest_store)
    cart_id = merged_cart_id or get_current_cart_id(db_session, user_id=user_id)

    logger.info(f"[AUTH] User {user_id} signed in")
    return jsonify({'status': 'success', 'user_id': user_id, 'cart_id': cart_id})


@auth_bp.route('/session', methods=['DELETE'])
def delete_session():
    session.pop('user_id', None)
    return jsonify({'status': 'success'})


@auth_bp.route('/dealer-application', methods=['POST'])
@require_login
def dealer_application():
    """Ask to be moved to the wholesale price tier."""
    payload = request.get_json(silent=True) or {}
    if not payload.get('company_name'):
        raise BusinessLogicError('Company name is required')
    application = submit_application(
        get_session(), g.user_id, payload.get('company_name'), payload.get('tax_number')
    )
    return jsonify({'status': 'success', 'application_id': application.id}), 201
