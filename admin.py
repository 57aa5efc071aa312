"""
Admin API: member management, payment entry, reminders, dashboard figures
and spreadsheet setup
"""
import logging

from flask import Blueprint, current_app, jsonify, request

from auth import get_local_user_store, hash_password
from config import sheets_configured
from database import initialize_sheets, seed_demo_data
from models import payment_defaults
from notifications import EmailError, NotificationService
from rbac import admin_required
from sheets import SheetError, StoreError, http_status, require_store
from utils import parse_payment_amount

admin_bp = Blueprint('admin', __name__, url_prefix='/api/admin')

logger = logging.getLogger(__name__)

NOT_CONFIGURED_MESSAGE = 'Google Sheets not configured. Using mock data instead.'


def _message(e):
    return jsonify({'message': str(e)}), http_status(e)


def _api_error(message, status):
    """Error in the {error, status} envelope used by payments and reminders"""
    return jsonify({'error': message, 'status': status}), status


# Member management

@admin_bp.route('/members', methods=['GET'])
@admin_required(error_key='error')
def list_members():
    try:
        members = require_store().get_members()
    except StoreError as e:
        return jsonify({'error': str(e)}), http_status(e)
    return jsonify([m.to_dict(include_payments=False) for m in members])


@admin_bp.route('/members', methods=['POST'])
@admin_required(error_key='message')
def create_member():
    data = request.get_json(silent=True) or {}
    if not str(data.get('name', '')).strip() or not str(data.get('email', '')).strip():
        return jsonify({'message': 'Name and email are required'}), 400

    try:
        member = require_store().create_member(data)
    except StoreError as e:
        return _message(e)
    return jsonify(member.to_dict()), 201


@admin_bp.route('/members/<member_id>', methods=['GET'])
@admin_required(error_key='message')
def get_member(member_id):
    try:
        member = require_store().get_member_with_payments(member_id)
    except StoreError as e:
        return _message(e)
    return jsonify(member.to_dict())


@admin_bp.route('/members/<member_id>', methods=['PUT'])
@admin_required(error_key='message')
def update_member(member_id):
    data = request.get_json(silent=True) or {}
    try:
        member = require_store().update_member(member_id, data)
    except StoreError as e:
        return _message(e)
    return jsonify(member.to_dict())


@admin_bp.route('/members/<member_id>', methods=['DELETE'])
@admin_required(error_key='message')
def delete_member(member_id):
    try:
        store = require_store()
        member = store.get_member(member_id)
        if member.is_admin:
            return jsonify({'message': 'Admin members cannot be deleted'}), 403
        store.delete_member(member_id)
    except StoreError as e:
        return _message(e)
    return jsonify({'message': 'Member deleted successfully'})


# Payments

@admin_bp.route('/members/<member_id>/payments', methods=['POST'])
@admin_required(error_key='message')
def record_member_payment(member_id):
    """Payment against the member's current balance"""
    data = request.get_json(silent=True) or {}
    if data.get('amount') in (None, '') or not data.get('method') or not data.get('date'):
        return jsonify({'message': 'Amount, method and date are required'}), 400

    amount = parse_payment_amount(data.get('amount'))
    if amount is None or amount <= 0:
        return jsonify({'message': 'Invalid payment amount'}), 400

    try:
        result = require_store().record_payment(member_id, amount, payment_defaults(data))
    except StoreError as e:
        return _message(e)

    body = {
        'message': 'Payment recorded successfully',
        'payment': result['payment'].to_dict(),
        'member': result['member'].to_dict(),
    }
    if 'warning' in result:
        body['warning'] = result['warning']
    return jsonify(body), 201


@admin_bp.route('/payments', methods=['POST'])
@admin_required(error_key='error')
def record_payment():
    """Payment measured against the full-year dues"""
    data = request.get_json(silent=True) or {}
    member_id = data.get('memberId')
    required = (member_id, data.get('amount'), data.get('date'), data.get('month'), data.get('year'))
    if any(value in (None, '') for value in required):
        return _api_error('Missing required payment information', 400)

    amount = parse_payment_amount(data.get('amount'))
    if amount is None or amount <= 0:
        return _api_error('Invalid payment amount', 400)

    try:
        result = require_store().record_payment(
            member_id, amount, payment_defaults(data), against_yearly_dues=True
        )
    except StoreError as e:
        return _api_error(str(e), http_status(e))

    body = {
        'data': result['payment'].to_dict(),
        'message': 'Payment recorded successfully',
        'status': 201,
    }
    if 'warning' in result:
        body['warning'] = result['warning']
    return jsonify(body), 201


# Reminders and figures

@admin_bp.route('/send-reminder', methods=['POST'])
@admin_required(error_key='error')
def send_reminder():
    data = request.get_json(silent=True) or {}
    member_id = data.get('memberId')
    if not member_id:
        return _api_error('Member ID is required', 400)

    try:
        member = require_store().get_member(member_id)
        NotificationService.for_app().send_payment_reminder(member)
    except StoreError as e:
        return _api_error(str(e), http_status(e))
    except EmailError as e:
        return _api_error(f"Email error: {e}", 500)

    return jsonify({
        'data': {'email': member.email},
        'message': f"Payment reminder sent to {member.email}",
        'status': 200,
    })


@admin_bp.route('/stats', methods=['GET'])
@admin_required(error_key='error')
def stats():
    try:
        return jsonify(require_store().get_dashboard_stats())
    except StoreError as e:
        logger.error(f"Error fetching stats: {e}")
        return jsonify({'error': 'Failed to fetch statistics'}), 500


@admin_bp.route('/email-stats', methods=['GET'])
@admin_required(error_key='error')
def email_stats():
    try:
        return jsonify(require_store().get_email_stats())
    except StoreError as e:
        logger.error(f"Error fetching email stats: {e}")
        return jsonify({'error': 'Failed to fetch email statistics'}), 500


# Setup

@admin_bp.route('/initialize', methods=['POST'])
@admin_required(error_key='message')
def initialize():
    if not sheets_configured(current_app.config):
        logger.warning("Google Sheets not configured, initialization skipped")
        return jsonify({'message': NOT_CONFIGURED_MESSAGE, 'usingMockData': True})

    try:
        result = initialize_sheets(require_store().spreadsheet)
    except SheetError as e:
        return jsonify({'message': 'Failed to initialize Google Sheet structure', 'error': str(e)}), 500
    return jsonify(result)


@admin_bp.route('/seed', methods=['POST'])
@admin_required(error_key='message')
def seed():
    if not sheets_configured(current_app.config):
        logger.warning("Google Sheets not configured, seeding skipped")
        return jsonify({'message': NOT_CONFIGURED_MESSAGE, 'usingMockData': True})

    password = current_app.config.get('ADMIN_PASSWORD')
    if not password:
        return jsonify({'message': 'ADMIN_PASSWORD must be configured to create the demo logins'}), 400

    try:
        result = seed_demo_data(require_store().spreadsheet, password)
    except SheetError as e:
        return jsonify({'message': 'Failed to insert demo data', 'error': str(e)}), 500

    result.pop('password', None)
    return jsonify(result)


@admin_bp.route('/setup', methods=['POST'])
def setup():
    """Write the configured bootstrap admin into the local users file"""
    config = current_app.config
    email = config.get('ADMIN_EMAIL')
    password = config.get('ADMIN_PASSWORD')
    if not email or not password:
        return jsonify({'success': False, 'message': 'ADMIN_EMAIL and ADMIN_PASSWORD must be configured'}), 400

    try:
        created = get_local_user_store().add_user(
            email, hash_password(password), name=config.get('ADMIN_NAME', 'Admin User'), is_admin=True
        )
    except OSError as e:
        logger.error(f"Could not write local users file: {e}")
        return jsonify({'success': False, 'message': 'Failed to create admin user'}), 500

    return jsonify({
        'success': True,
        'message': 'Admin user created successfully' if created else 'Admin user already exists',
        'email': email,
    })


@admin_bp.route('/config-status', methods=['GET'])
@admin_required(error_key='message')
def config_status():
    """Which settings are present; values are never returned"""
    config = current_app.config
    keys = [
        'GOOGLE_SHEET_ID', 'GOOGLE_CREDENTIALS_PATH', 'GOOGLE_CLIENT_EMAIL', 'GOOGLE_PRIVATE_KEY',
        'MAIL_PROVIDER', 'SMTP_HOST', 'SMTP_USER', 'SMTP_PASSWORD',
        'GMAIL_CLIENT_ID', 'GMAIL_CLIENT_SECRET', 'GMAIL_REFRESH_TOKEN', 'RESEND_API_KEY',
        'ADMIN_EMAIL', 'ADMIN_PASSWORD',
    ]
    return jsonify({
        'settings': {key: bool(config.get(key)) for key in keys},
        'sheetsConfigured': sheets_configured(config),
        'sheetsConnected': current_app.extensions.get('sheet_store') is not None,
        'mailProvider': (config.get('MAIL_PROVIDER') or config.get('DEFAULT_MAIL_PROVIDER')),
        'monthlyDues': config.get('MONTHLY_DUES'),
    })
