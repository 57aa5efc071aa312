"""
User API: login accounts kept in the Users sheet (admin only)
"""
import logging

from flask import Blueprint, jsonify, request
from flask_login import current_user

from rbac import admin_required
from sheets import NotFound, StoreError, http_status, require_store
from utils import parse_bool

users_bp = Blueprint('users', __name__, url_prefix='/api/users')

logger = logging.getLogger(__name__)


def _error(e):
    return jsonify({'error': str(e)}), http_status(e)


@users_bp.route('', methods=['GET'])
@admin_required()
def list_users():
    try:
        users = require_store().get_users()
    except StoreError as e:
        return _error(e)
    return jsonify([u.to_dict() for u in users])


@users_bp.route('', methods=['POST'])
@admin_required()
def create_user():
    data = request.get_json(silent=True) or {}
    email = str(data.get('email', '')).strip()
    password = data.get('password') or ''
    if not email or not password:
        return jsonify({'error': 'Email and password are required'}), 400

    try:
        user = require_store().create_user(
            email, password,
            name=str(data.get('name', '')).strip(),
            is_admin=parse_bool(data.get('isAdmin', False)),
        )
    except StoreError as e:
        return _error(e)

    logger.info(f"User {email} created by {current_user.email}")
    return jsonify(user.to_dict()), 201


@users_bp.route('/<email>', methods=['GET'])
@admin_required()
def get_user(email):
    try:
        user = require_store().get_user_by_email(email)
    except StoreError as e:
        return _error(e)
    if user is None:
        return jsonify({'error': 'User not found'}), 404
    return jsonify(user.to_dict())


@users_bp.route('/<email>', methods=['PUT'])
@admin_required()
def update_user(email):
    data = request.get_json(silent=True) or {}
    is_admin = data.get('isAdmin')
    try:
        user = require_store().update_user(
            email,
            name=data.get('name'),
            is_admin=parse_bool(is_admin) if is_admin is not None else None,
            password=data.get('password') or None,
        )
    except StoreError as e:
        return _error(e)
    return jsonify(user.to_dict())


@users_bp.route('/<email>', methods=['DELETE'])
@admin_required()
def delete_user(email):
    if email.strip().lower() == current_user.email.strip().lower():
        return jsonify({'error': 'You cannot delete your own account'}), 403
    try:
        require_store().delete_user(email)
    except NotFound:
        return jsonify({'error': 'User not found'}), 404
    except StoreError as e:
        return _error(e)
    logger.info(f"User {email} deleted by {current_user.email}")
    return jsonify({'success': True, 'message': 'User deleted successfully'})
