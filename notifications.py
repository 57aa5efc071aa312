"""
Email Notification System
Greetings, payment reminders and dues statements for members, sent through a
configurable mail provider
"""
import base64
import logging
import smtplib
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

import requests
from flask import Blueprint, current_app, jsonify, request
from google.auth.exceptions import GoogleAuthError
from google.oauth2.credentials import Credentials as OAuthCredentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from markupsafe import escape

from rbac import admin_required
from sheets import NotFound, SheetError, get_store, require_store
from utils import format_currency, format_display_date

email_bp = Blueprint('email', __name__, url_prefix='/api/email')

logger = logging.getLogger(__name__)

RESEND_API_URL = 'https://api.resend.com/emails'
GMAIL_TOKEN_URI = 'https://oauth2.googleapis.com/token'
GMAIL_SCOPES = ['https://www.googleapis.com/auth/gmail.send']


class EmailError(Exception):
    """A message could not be handed to the mail provider"""


class NotificationTemplates:
    """Email templates; each returns (subject, html_content, text_content)"""

    @staticmethod
    def _wrap(title, body_html, org_name):
        return f"""
        <html>
        <body style="font-family: Arial, sans-serif; margin: 0; padding: 20px; background-color: #f4f4f4;">
            <div style="max-width: 600px; margin: 0 auto; background-color: white; padding: 30px; border-radius: 10px;">
                <h2 style="color: #2c3e50; margin-bottom: 20px;">{title}</h2>
                {body_html}
                <p>Best regards,<br>
                {escape(org_name)}</p>

                <hr style="border: none; border-top: 1px solid #eee; margin: 30px 0;">
                <p style="font-size: 12px; color: #666;">This is an automated email from the {escape(org_name)} membership system.</p>
            </div>
        </body>
        </html>
        """

    @staticmethod
    def birthday_email(member, org_name):
        subject = f"Happy Birthday from {org_name}!"
        name = escape(member.name)

        html_content = NotificationTemplates._wrap('Happy Birthday!', f"""
                <p>Dear {name},</p>
                <p>Wishing you a very <strong>happy birthday</strong> from all of us at {escape(org_name)}!</p>
                <p>May your day be filled with joy, peace, and blessings.</p>
        """, org_name)

        text_content = f"""
        Dear {member.name},

        Wishing you a very happy birthday from all of us at {org_name}!

        May your day be filled with joy, peace, and blessings.

        Best regards,
        {org_name}
        """

        return subject, html_content, text_content

    @staticmethod
    def anniversary_email(member, org_name):
        subject = f"Happy Anniversary from {org_name}!"
        name = escape(member.name)

        html_content = NotificationTemplates._wrap('Happy Anniversary!', f"""
                <p>Dear {name},</p>
                <p>Congratulations on your <strong>wedding anniversary</strong> from all of us at {escape(org_name)}!</p>
                <p>May your marriage continue to be blessed with love, joy, and companionship.</p>
        """, org_name)

        text_content = f"""
        Dear {member.name},

        Congratulations on your wedding anniversary from all of us at {org_name}!

        May your marriage continue to be blessed with love, joy, and companionship.

        Best regards,
        {org_name}
        """

        return subject, html_content, text_content

    @staticmethod
    def payment_reminder_email(member, amount_due, org_name, currency='£'):
        """Payment reminder email template"""
        amount = format_currency(amount_due, currency)
        since = format_display_date(member.join_date, empty='Not available')
        subject = f"Payment Reminder - {org_name} Dues"

        html_content = NotificationTemplates._wrap('Payment Reminder', f"""
                <p>Dear {escape(member.name)},</p>
                <p>This is a friendly reminder that you currently have an outstanding balance of <strong>{amount}</strong> for your {escape(org_name)} dues.</p>
                <p>Please arrange to make your payment at your earliest convenience.</p>

                <div style="background-color: #f5f5f5; padding: 15px; border-radius: 5px; margin: 20px 0;">
                    <p style="margin: 0;"><strong>Membership since:</strong> {escape(since)}</p>
                    <p style="margin: 10px 0 0 0;"><strong>Total outstanding:</strong> {amount}</p>
                </div>

                <p>Thank you for your attention to this matter.</p>
        """, org_name)

        text_content = f"""
        Dear {member.name},

        This is a friendly reminder that you currently have an outstanding balance of {amount} for your {org_name} dues.

        Please arrange to make your payment at your earliest convenience.

        Your membership details:
        - Membership since: {since}
        - Total outstanding: {amount}

        Thank you for your attention to this matter.

        Best regards,
        {org_name}
        """

        return subject, html_content, text_content

    @staticmethod
    def dues_status_email(member, year, org_name, currency='£'):
        """Yearly statement: balance and amount paid"""
        balance = format_currency(member.outstanding, currency)
        paid = format_currency(member.dues_paid, currency)
        subject = f"Dues Payment Status for {year}"

        html_content = NotificationTemplates._wrap(f'Dues Payment Status for {year}', f"""
                <p>Dear {escape(member.name)},</p>
                <p>Here is your current dues payment status with {escape(org_name)} for the year {year}:</p>

                <div style="background-color: #f7f7f7; padding: 20px; border-radius: 5px; margin: 20px 0;">
                    <p style="margin: 0; color: #555;">Balance ({year})</p>
                    <p style="margin: 5px 0 15px 0; font-size: 28px; font-weight: bold; color: #e11d48;">{balance}</p>
                    <p style="margin: 0; color: #555;">Amount Paid ({year})</p>
                    <p style="margin: 5px 0 0 0; font-size: 28px; font-weight: bold; color: #059669;">{paid}</p>
                </div>

                <p>If you have any questions or concerns, please don't hesitate to reach out.</p>
        """, org_name)

        text_content = f"""
        Dear {member.name},

        Here is your current dues payment status with {org_name} for the year {year}:

        Balance ({year}): {balance}
        Amount Paid ({year}): {paid}

        If you have any questions or concerns, please don't hesitate to reach out.

        Best regards,
        {org_name}
        """

        return subject, html_content, text_content

    @staticmethod
    def test_email(provider, environment, org_name):
        sent_at = datetime.now(timezone.utc).isoformat()
        subject = f"Test Email from {org_name} Application"

        html_content = NotificationTemplates._wrap('Test Email', f"""
                <p>This is a test email sent at {sent_at}.</p>
                <p>If you're seeing this, your email configuration is working correctly!</p>
                <div style="background-color: #f5f5f5; padding: 15px; border-radius: 5px; margin: 20px 0;">
                    <p style="margin: 0;"><strong>Provider:</strong> {escape(provider)}</p>
                    <p style="margin: 10px 0 0 0;"><strong>Environment:</strong> {escape(environment)}</p>
                </div>
        """, org_name)

        text_content = f"""
        This is a test email sent at {sent_at}.
        If you're seeing this, your email configuration is working correctly!

        Provider: {provider}
        Environment: {environment}

        Best regards,
        {org_name}
        """

        return subject, html_content, text_content


def build_message(from_email, reply_to, to_email, subject, html_content, text_content=None):
    msg = MIMEMultipart('alternative')
    msg['From'] = from_email
    msg['To'] = to_email
    msg['Subject'] = subject
    msg['Reply-To'] = reply_to

    # Plain text first so clients that prefer HTML pick the last part
    if text_content:
        msg.attach(MIMEText(text_content, 'plain', 'utf-8'))
    msg.attach(MIMEText(html_content, 'html', 'utf-8'))
    return msg


class SMTPTransport:
    name = 'smtp'

    def __init__(self, config):
        self.host = config.get('SMTP_HOST')
        self.port = int(config.get('SMTP_PORT') or 587)
        self.username = config.get('SMTP_USER')
        self.password = config.get('SMTP_PASSWORD')
        self.secure = bool(config.get('SMTP_SECURE'))
        self.from_email = config.get('EMAIL_FROM')
        self.reply_to = config.get('EMAIL_REPLY_TO')

    def send(self, to_email, subject, html_content, text_content=None):
        msg = build_message(self.from_email, self.reply_to, to_email, subject, html_content, text_content)
        smtp_class = smtplib.SMTP_SSL if self.secure else smtplib.SMTP
        try:
            with smtp_class(self.host, self.port, timeout=30) as server:
                if not self.secure:
                    server.starttls()
                if self.username and self.password:
                    server.login(self.username, self.password)
                server.sendmail(self.from_email, [to_email], msg.as_string())
        except (smtplib.SMTPException, OSError) as e:
            raise EmailError(f"SMTP error: {e}") from e
        return {'id': msg.get('Message-ID', ''), 'status': 'sent'}


class GmailTransport:
    """Gmail API users.messages.send with an OAuth refresh token"""
    name = 'gmail'

    def __init__(self, config):
        self.client_id = config.get('GMAIL_CLIENT_ID')
        self.client_secret = config.get('GMAIL_CLIENT_SECRET')
        self.refresh_token = config.get('GMAIL_REFRESH_TOKEN')
        self.from_email = config.get('EMAIL_FROM')
        self.reply_to = config.get('EMAIL_REPLY_TO')

    def _service(self):
        credentials = OAuthCredentials(
            token=None,
            refresh_token=self.refresh_token,
            client_id=self.client_id,
            client_secret=self.client_secret,
            token_uri=GMAIL_TOKEN_URI,
            scopes=GMAIL_SCOPES,
        )
        return build('gmail', 'v1', credentials=credentials, cache_discovery=False)

    def send(self, to_email, subject, html_content, text_content=None):
        if not (self.client_id and self.client_secret and self.refresh_token):
            raise EmailError('Gmail API credentials are not configured')

        msg = build_message(self.from_email, self.reply_to, to_email, subject, html_content, text_content)
        raw = base64.urlsafe_b64encode(msg.as_bytes()).decode('ascii')
        try:
            result = self._service().users().messages().send(userId='me', body={'raw': raw}).execute()
        except (HttpError, GoogleAuthError) as e:
            raise EmailError(f"Gmail API error: {e}") from e
        return {'id': result.get('id', ''), 'status': 'sent'}


class ResendTransport:
    name = 'resend'

    def __init__(self, config):
        self.api_key = config.get('RESEND_API_KEY')
        self.from_email = config.get('EMAIL_FROM')
        self.reply_to = config.get('EMAIL_REPLY_TO')

    def send(self, to_email, subject, html_content, text_content=None):
        if not self.api_key:
            raise EmailError('Resend API key is not configured')

        headers = {'Authorization': f'Bearer {self.api_key}', 'Content-Type': 'application/json'}
        payload = {
            'from': self.from_email,
            'to': [to_email],
            'reply_to': self.reply_to,
            'subject': subject,
            'html': html_content,
        }
        if text_content:
            payload['text'] = text_content

        try:
            r = requests.post(RESEND_API_URL, headers=headers, json=payload, timeout=20)
        except requests.RequestException as e:
            raise EmailError(f"Resend request error: {e}") from e

        try:
            data = r.json()
        except ValueError:
            data = {'message': r.text}
        if not 200 <= r.status_code < 300:
            raise EmailError(f"Resend error: {r.status_code}: {data.get('message', data)}")
        return {'id': data.get('id', ''), 'status': 'sent'}


class SimulatedTransport:
    """Logs the message instead of sending it"""
    name = 'simulation'

    def __init__(self, config):
        self.from_email = config.get('EMAIL_FROM')

    def send(self, to_email, subject, html_content, text_content=None):
        logger.info(f"Simulated email to {to_email} from {self.from_email}: {subject}")
        logger.debug(text_content or html_content)
        return {
            'id': f"mock_{int(datetime.now().timestamp() * 1000)}",
            'status': 'simulated',
            'message': 'Email simulated for development',
        }


TRANSPORTS = {
    'smtp': SMTPTransport,
    'nodemailer': SMTPTransport,
    'gmail': GmailTransport,
    'resend': ResendTransport,
    'simulation': SimulatedTransport,
}


def get_transport(config):
    """Transport for MAIL_PROVIDER; unknown names fall back to simulation"""
    provider = (config.get('MAIL_PROVIDER') or config.get('DEFAULT_MAIL_PROVIDER') or 'gmail').strip().lower()
    transport_class = TRANSPORTS.get(provider)
    if transport_class is None:
        logger.warning(f"Unknown mail provider '{provider}', simulating emails")
        transport_class = SimulatedTransport
    return transport_class(config)


class NotificationService:
    """Sends templated emails and records each attempt in the email log"""

    def __init__(self, config, store=None, transport=None):
        self.config = config
        self.store = store
        self.transport = transport or get_transport(config)
        self.org_name = config.get('ORGANIZATION_NAME', "Gideon's Army")
        self.currency = config.get('CURRENCY_SYMBOL', '£')
        self.max_workers = int(config.get('BULK_EMAIL_WORKERS') or 5)

    @classmethod
    def for_app(cls):
        return cls(current_app.config, store=get_store())

    def _log(self, recipient, status, email_type, detail):
        if self.store is not None:
            self.store.log_email(recipient, status, email_type, detail)

    def send_email(self, to_email, subject, html_content, text_content=None, email_type='general'):
        """Send one email; raises EmailError on failure"""
        if not to_email:
            raise EmailError('Recipient email address is missing')

        logger.info(f"Sending {email_type} email to {to_email} via {self.transport.name}")
        try:
            result = self.transport.send(to_email, subject, html_content, text_content)
        except EmailError as e:
            logger.error(f"Failed to send email to {to_email}: {e}")
            self._log(to_email, 'failed', email_type, str(e))
            raise

        self._log(to_email, result.get('status', 'sent'), email_type, result.get('id', ''))
        logger.info(f"Email sent successfully to {to_email}")
        return result

    def send_birthday_email(self, member):
        subject, html_content, text_content = NotificationTemplates.birthday_email(member, self.org_name)
        return self.send_email(member.email, subject, html_content, text_content, 'birthday')

    def send_anniversary_email(self, member):
        subject, html_content, text_content = NotificationTemplates.anniversary_email(member, self.org_name)
        return self.send_email(member.email, subject, html_content, text_content, 'anniversary')

    def send_payment_reminder(self, member):
        subject, html_content, text_content = NotificationTemplates.payment_reminder_email(
            member, member.outstanding, self.org_name, self.currency
        )
        return self.send_email(member.email, subject, html_content, text_content, 'payment_reminder')

    def send_dues_status_email(self, member, year=None):
        year = year or datetime.now().year
        subject, html_content, text_content = NotificationTemplates.dues_status_email(
            member, year, self.org_name, self.currency
        )
        return self.send_email(member.email, subject, html_content, text_content, 'dues_status')

    def send_test_email(self, to_email, environment):
        subject, html_content, text_content = NotificationTemplates.test_email(
            self.transport.name, environment, self.org_name
        )
        return self.send_email(to_email, subject, html_content, text_content, 'test')

    def _send_dues_status_safely(self, member):
        try:
            self.send_dues_status_email(member)
        except EmailError as e:
            return {'memberId': member.id, 'email': member.email, 'success': False, 'message': str(e)}
        return {'memberId': member.id, 'email': member.email, 'success': True,
                'message': f"Dues status email sent to {member.name}"}

    def send_bulk_dues_status(self, members):
        """
        Send dues statements to many members at once.

        Every member gets an attempt; one failure never stops the rest.
        Returns {successful, failed, results} with one result per member.
        """
        with ThreadPoolExecutor(max_workers=max(1, self.max_workers)) as executor:
            results = list(executor.map(self._send_dues_status_safely, members))

        successful = sum(1 for r in results if r['success'])
        logger.info(f"Bulk dues status: {successful} sent, {len(results) - successful} failed")
        return {
            'successful': successful,
            'failed': len(results) - successful,
            'results': results,
        }


def _fail(message, status):
    return jsonify({'success': False, 'message': message}), status


@email_bp.route('/test', methods=['POST'])
@admin_required(error_key='message', success_flag=True)
def send_test_email():
    data = request.get_json(silent=True) or {}
    to_email = str(data.get('to', '')).strip()
    if not to_email:
        return _fail('Please provide a recipient email address', 400)

    service = NotificationService.for_app()
    environment = 'testing' if current_app.testing else ('development' if current_app.debug else 'production')
    try:
        result = service.send_test_email(to_email, environment)
    except EmailError as e:
        return _fail(f"Email error: {e}", 500)

    simulated = result.get('status') == 'simulated'
    return jsonify({
        'success': True,
        'message': f"Test email {'simulated' if simulated else 'sent'} successfully",
        'details': result,
        'environment': environment,
    })


@email_bp.route('/dues-status', methods=['POST'])
@admin_required(error_key='message', success_flag=True)
def send_dues_status():
    data = request.get_json(silent=True) or {}
    member_id = data.get('memberId')
    if not member_id:
        return _fail('Missing member ID', 400)

    try:
        member = require_store().get_member(member_id)
        NotificationService.for_app().send_dues_status_email(member)
    except NotFound:
        return _fail('Member not found', 404)
    except SheetError as e:
        return _fail(str(e), 500)
    except EmailError as e:
        return _fail(f"Email error: {e}", 500)

    return jsonify({'success': True, 'message': f"Dues status email sent to {member.name}"})


@email_bp.route('/dues-status/bulk', methods=['POST'])
@admin_required(error_key='message', success_flag=True)
def send_bulk_dues_status():
    data = request.get_json(silent=True) or {}
    member_ids = data.get('memberIds') or []
    if not isinstance(member_ids, list):
        return _fail('memberIds must be a list', 400)

    try:
        members = require_store().get_members()
    except SheetError as e:
        return _fail(str(e), 500)

    if member_ids:
        by_email = {m.email.lower(): m for m in members}
        selected = []
        missing = []
        for member_id in member_ids:
            member = by_email.get(str(member_id).strip().lower())
            if member:
                selected.append(member)
            else:
                missing.append(member_id)
    else:
        selected, missing = members, []

    summary = NotificationService.for_app().send_bulk_dues_status(selected)
    for member_id in missing:
        summary['results'].append({'memberId': member_id, 'email': None, 'success': False,
                                   'message': 'Member not found'})
        summary['failed'] += 1

    return jsonify({
        'success': summary['failed'] == 0,
        'message': f"Sent {summary['successful']} dues status emails, {summary['failed']} failed",
        **summary,
    })


@email_bp.route('/event-greetings', methods=['POST'])
@admin_required(error_key='message', success_flag=True)
def send_event_greetings():
    data = request.get_json(silent=True) or {}
    member_id = data.get('memberId')
    email_type = data.get('emailType')
    if not member_id or not email_type:
        return _fail('Missing required fields', 400)
    if email_type not in ('birthday', 'anniversary'):
        return _fail('Invalid email type', 400)

    try:
        member = require_store().get_member(member_id)
        service = NotificationService.for_app()
        if email_type == 'birthday':
            service.send_birthday_email(member)
        else:
            service.send_anniversary_email(member)
    except NotFound:
        return _fail('Member not found', 404)
    except SheetError as e:
        return _fail(str(e), 500)
    except EmailError as e:
        return _fail(f"Email error: {e}", 500)

    return jsonify({
        'success': True,
        'message': f"{email_type.capitalize()} greetings sent to {member.name}",
    })
