"""
Authentication: session users, password checks and the /api/auth endpoints
"""
import hmac
import logging

import bcrypt
from flask import Blueprint, current_app, jsonify, request, session
from flask_login import LoginManager, UserMixin, current_user, login_user, logout_user
from werkzeug.security import check_password_hash, generate_password_hash

from local_users import LocalUserStore
from sheets import BCRYPT_PREFIXES, SheetError, StoreError, get_store

logger = logging.getLogger(__name__)

# Create authentication blueprint
auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')

# Initialize Flask-Login
login_manager = LoginManager()

SESSION_PROFILE_KEY = 'user_profile'


class SessionUser(UserMixin):
    """Logged-in user rebuilt from the signed session cookie"""

    def __init__(self, email, name='', is_admin=False):
        self.id = email
        self.email = email
        self.name = name or email.split('@')[0]
        self.is_admin = bool(is_admin)

    @property
    def role(self):
        return 'admin' if self.is_admin else 'member'

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'name': self.name,
            'isAdmin': self.is_admin,
        }


@login_manager.user_loader
def load_user(user_id):
    """Restore the user from the session; no sheet read per request"""
    profile = session.get(SESSION_PROFILE_KEY)
    if not profile or profile.get('email') != user_id:
        return None
    return SessionUser(profile['email'], profile.get('name', ''), profile.get('isAdmin', False))


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({'error': 'Authentication required'}), 401


def init_auth(app):
    """Initialize authentication system with Flask app"""
    login_manager.init_app(app)
    app.register_blueprint(auth_bp)


def hash_password(password):
    return generate_password_hash(password)


def verify_password(stored_hash, password):
    """Check a password against a werkzeug hash or a bcrypt hash from the old system"""
    if not stored_hash or not password:
        return False
    if stored_hash.startswith(BCRYPT_PREFIXES):
        try:
            return bcrypt.checkpw(password.encode('utf-8'), stored_hash.encode('utf-8'))
        except ValueError:
            logger.warning("Stored bcrypt hash is malformed")
            return False
    try:
        return check_password_hash(stored_hash, password)
    except ValueError:
        logger.warning("Stored password hash uses an unknown format")
        return False


def get_local_user_store():
    return LocalUserStore(current_app.config['LOCAL_USERS_FILE'])


def _bootstrap_admin(email, password):
    config = current_app.config
    admin_email = config.get('ADMIN_EMAIL')
    admin_password = config.get('ADMIN_PASSWORD')
    if not admin_email or not admin_password:
        return None
    if email.lower() != admin_email.strip().lower():
        return None
    if not hmac.compare_digest(password.encode('utf-8'), admin_password.encode('utf-8')):
        return None
    return SessionUser(admin_email, config.get('ADMIN_NAME', 'Admin User'), True)


def authenticate(email, password):
    """
    Resolve credentials to a SessionUser, or None.

    Order: configured bootstrap admin, then the Users sheet, then the local
    users file. A sheet failure falls through to the local file; a sheet user
    with the wrong password does not.
    """
    email = (email or '').strip()
    if not email or not isinstance(password, str) or not password:
        return None

    user = _bootstrap_admin(email, password)
    if user:
        logger.info("Bootstrap admin authenticated")
        return user

    store = get_store()
    if store is not None:
        try:
            sheet_user = store.get_user_by_email(email)
        except SheetError as e:
            logger.warning(f"Sheet login lookup failed, trying local users: {e}")
            sheet_user = None

        if sheet_user:
            if not verify_password(sheet_user.password, password):
                return None
            name = sheet_user.name
            if not name:
                try:
                    name = store.get_member(sheet_user.email).name
                except StoreError as e:
                    logger.info(f"No member name for {sheet_user.email}: {e}")
                    name = 'Member'
            return SessionUser(sheet_user.email, name, sheet_user.is_admin)

    local_user = get_local_user_store().find(email)
    if local_user and verify_password(local_user.password, password):
        return SessionUser(local_user.email, local_user.name, local_user.is_admin)
    return None


# Authentication Routes
@auth_bp.route('/login', methods=['POST'])
def login():
    data = request.get_json(silent=True) or {}
    email = str(data.get('email', '')).strip()
    password = data.get('password', '')

    if not email or not password:
        return jsonify({'error': 'Email and password are required'}), 400
    if not isinstance(password, str):
        return jsonify({'error': 'Password must be a string'}), 400

    user = authenticate(email, password)
    if not user:
        logger.info(f"Failed login for {email}")
        return jsonify({'error': 'Invalid email or password'}), 401

    session[SESSION_PROFILE_KEY] = user.to_dict()
    login_user(user, remember=False)
    logger.info(f"User {user.email} logged in (role={user.role})")
    return jsonify({'success': True, 'user': user.to_dict()})


@auth_bp.route('/logout', methods=['POST'])
def logout():
    logout_user()
    session.pop(SESSION_PROFILE_KEY, None)
    return jsonify({'success': True})


@auth_bp.route('/session', methods=['GET'])
def session_info():
    if current_user.is_authenticated:
        return jsonify({'authenticated': True, 'user': current_user.to_dict()})
    return jsonify({'authenticated': False, 'user': None})
