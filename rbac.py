"""
Role-based access control for the JSON API

Two roles exist, derived from the user's is_admin flag. Admins can do
everything; members can only look at their own record.
"""
from functools import wraps

from flask import jsonify
from flask_login import current_user

ROLE_PERMISSIONS = {
    'admin': {
        'view_all_members': True,
        'edit_members': True,
        'delete_members': True,
        'record_payments': True,
        'manage_users': True,
        'send_emails': True,
        'view_stats': True,
        'system_administration': True,
        'view_own_record': True,
        'view_own_payments': True,
        'view_own_dues': True,
    },
    'member': {
        'view_own_record': True,
        'view_own_payments': True,
        'view_own_dues': True,
    },
}

UNAUTHENTICATED_MESSAGE = 'Authentication required'
FORBIDDEN_MESSAGE = 'Admin access required'


def role_for(user):
    return 'admin' if getattr(user, 'is_admin', False) else 'member'


def get_user_permissions(user=None):
    """Permission map for a user (empty when anonymous)"""
    if user is None:
        user = current_user
    if not user or not user.is_authenticated:
        return {}
    return dict(ROLE_PERMISSIONS.get(role_for(user), {}))


def has_permission(permission_name, user=None):
    return get_user_permissions(user).get(permission_name, False)


def can_access_member(member_id, user=None):
    """Admins see every member; members only the record under their own email"""
    if user is None:
        user = current_user
    if not user or not user.is_authenticated:
        return False
    if has_permission('view_all_members', user):
        return True
    return bool(member_id) and str(member_id).strip().lower() == str(user.email).strip().lower()


def _error(error_key, message, status, success_flag):
    body = {error_key: message}
    if success_flag:
        body = {'success': False, **body}
    return jsonify(body), status


def login_required_json(error_key='error', success_flag=False):
    """401 JSON response instead of a redirect when nobody is logged in"""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not current_user.is_authenticated:
                return _error(error_key, UNAUTHENTICATED_MESSAGE, 401, success_flag)
            return f(*args, **kwargs)
        return decorated_function
    return decorator


def admin_required(error_key='error', success_flag=False):
    """
    Restrict a route to admins.

    error_key and success_flag shape the error body so each endpoint family
    keeps its own response format: {error}, {message} or {success, message}.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not current_user.is_authenticated:
                return _error(error_key, UNAUTHENTICATED_MESSAGE, 401, success_flag)
            if not has_permission('system_administration'):
                return _error(error_key, FORBIDDEN_MESSAGE, 403, success_flag)
            return f(*args, **kwargs)
        return decorated_function
    return decorator
