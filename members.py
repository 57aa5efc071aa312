"""
Member API: member records, their payments and month-by-month dues status
"""
import logging
from datetime import date

from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user

from dues import available_years, dues_summary
from models import payment_defaults
from rbac import admin_required, can_access_member, login_required_json
from sheets import StoreError, http_status, require_store
from utils import parse_amount, parse_payment_amount, parse_year

members_bp = Blueprint('members', __name__, url_prefix='/api/members')

logger = logging.getLogger(__name__)


def _error(e):
    return jsonify({'error': str(e)}), http_status(e)


@members_bp.route('', methods=['GET'])
@login_required_json()
def list_members():
    """Admins get everyone; members get a list holding only their own record"""
    try:
        members = require_store().get_members(current_user.email, current_user.is_admin)
    except StoreError as e:
        return _error(e)
    return jsonify([m.to_dict() for m in members])


@members_bp.route('', methods=['POST'])
@admin_required()
def create_member():
    data = request.get_json(silent=True) or {}
    if not str(data.get('name', '')).strip() or not str(data.get('email', '')).strip():
        return jsonify({'error': 'Name and email are required'}), 400

    try:
        member = require_store().create_member(data)
    except StoreError as e:
        return _error(e)
    return jsonify(member.to_dict()), 201


@members_bp.route('/<member_id>', methods=['GET'])
@login_required_json()
def get_member(member_id):
    try:
        member = require_store().get_member_with_payments(
            member_id, current_user.email, current_user.is_admin
        )
    except StoreError as e:
        return _error(e)
    return jsonify(member.to_dict())


@members_bp.route('/<member_id>', methods=['PUT'])
@admin_required()
def update_member(member_id):
    data = request.get_json(silent=True) or {}
    try:
        member = require_store().update_member(member_id, data)
    except StoreError as e:
        return _error(e)
    return jsonify(member.to_dict())


@members_bp.route('/<member_id>', methods=['DELETE'])
@admin_required()
def delete_member(member_id):
    try:
        store = require_store()
        member = store.get_member(member_id)
        if member.is_admin:
            return jsonify({'error': 'Admin members cannot be deleted'}), 403
        store.delete_member(member_id)
    except StoreError as e:
        return _error(e)
    return jsonify({'success': True, 'message': 'Member deleted successfully'})


@members_bp.route('/<member_id>/payments', methods=['GET'])
@login_required_json()
def list_member_payments(member_id):
    if not can_access_member(member_id):
        return jsonify({'error': 'You can only view your own payments'}), 403
    try:
        payments = require_store().get_member_payments(member_id)
    except StoreError as e:
        return _error(e)
    return jsonify([p.to_dict() for p in payments])


@members_bp.route('/<member_id>/payments', methods=['POST'])
@admin_required()
def record_member_payment(member_id):
    data = request.get_json(silent=True) or {}
    amount = parse_payment_amount(data.get('amount'))
    if amount is None:
        return jsonify({'error': 'A numeric amount is required'}), 400
    if amount <= 0:
        return jsonify({'error': 'Invalid payment amount'}), 400

    details = payment_defaults(data)
    try:
        result = require_store().record_payment(member_id, amount, details)
    except StoreError as e:
        return _error(e)
    logger.info(f"Payment of {amount} recorded for {member_id} by {current_user.email}")

    body = {
        'success': True,
        'payment': result['payment'].to_dict(),
        'member': result['member'].to_dict(),
    }
    if 'warning' in result:
        body['warning'] = result['warning']
    return jsonify(body), 201


@members_bp.route('/<member_id>/dues', methods=['GET'])
@login_required_json()
def member_dues(member_id):
    """Month grid and yearly summary for one member"""
    if not can_access_member(member_id):
        return jsonify({'error': 'You can only view your own dues'}), 403

    requested = request.args.get('year')
    year = parse_year(requested) if requested else date.today().year
    if year is None:
        return jsonify({'error': 'Year must be a four digit number'}), 400

    try:
        store = require_store()
        member = store.get_member(member_id)
        payments = store.get_member_payments(member_id)
    except StoreError as e:
        return _error(e)

    rate = parse_amount(current_app.config.get('MONTHLY_DUES', 10))
    summary = dues_summary(year, member.join_date, payments, rate)
    return jsonify({
        'memberId': member.id,
        'name': member.name,
        'joinDate': member.to_dict()['joinDate'],
        **summary,
        'availableYears': available_years(payments, member.join_date, date.today().year),
    })
