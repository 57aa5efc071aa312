"""
Application configuration loaded from environment variables
"""
import os
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _env_bool(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    """Base configuration shared by every mode"""
    SECRET_KEY = os.environ.get('SECRET_KEY', 'change-me-in-production')

    # Spreadsheet used as the system of record
    GOOGLE_SHEET_ID = os.environ.get('GOOGLE_SHEET_ID', '')
    GOOGLE_CREDENTIALS_PATH = os.environ.get('GOOGLE_CREDENTIALS_PATH', '')
    GOOGLE_CLIENT_EMAIL = os.environ.get('GOOGLE_CLIENT_EMAIL', '')
    GOOGLE_PRIVATE_KEY = os.environ.get('GOOGLE_PRIVATE_KEY', '')

    # Dues
    MONTHLY_DUES = float(os.environ.get('MONTHLY_DUES', '10'))
    CURRENCY_SYMBOL = os.environ.get('CURRENCY_SYMBOL', '£')
    ORGANIZATION_NAME = os.environ.get('ORGANIZATION_NAME', "Gideon's Army")

    # Bootstrap admin (optional) and local user fallback
    ADMIN_EMAIL = os.environ.get('ADMIN_EMAIL', '')
    ADMIN_PASSWORD = os.environ.get('ADMIN_PASSWORD', '')
    ADMIN_NAME = os.environ.get('ADMIN_NAME', 'Admin User')
    LOCAL_USERS_FILE = os.environ.get(
        'LOCAL_USERS_FILE',
        os.path.join(os.path.dirname(os.path.abspath(__file__)), 'data', 'users.json')
    )

    # Email
    MAIL_PROVIDER = os.environ.get('MAIL_PROVIDER', '')
    EMAIL_FROM = os.environ.get('EMAIL_FROM', 'noreply@gideonsarmy.com')
    EMAIL_REPLY_TO = os.environ.get('EMAIL_REPLY_TO', 'noreply@gideonsarmy.com')
    SMTP_HOST = os.environ.get('SMTP_HOST', 'smtp.gmail.com')
    SMTP_PORT = int(os.environ.get('SMTP_PORT', '587'))
    SMTP_USER = os.environ.get('SMTP_USER', '')
    SMTP_PASSWORD = os.environ.get('SMTP_PASSWORD', '')
    SMTP_SECURE = _env_bool('SMTP_SECURE')
    GMAIL_CLIENT_ID = os.environ.get('GMAIL_CLIENT_ID', '')
    GMAIL_CLIENT_SECRET = os.environ.get('GMAIL_CLIENT_SECRET', '')
    GMAIL_REFRESH_TOKEN = os.environ.get('GMAIL_REFRESH_TOKEN', '')
    RESEND_API_KEY = os.environ.get('RESEND_API_KEY', '')
    BULK_EMAIL_WORKERS = int(os.environ.get('BULK_EMAIL_WORKERS', '5'))

    DEFAULT_MAIL_PROVIDER = 'gmail'


class DevelopmentConfig(Config):
    DEBUG = True
    DEFAULT_MAIL_PROVIDER = 'simulation'


class ProductionConfig(Config):
    DEBUG = False
    SESSION_COOKIE_SECURE = True
    SESSION_COOKIE_HTTPONLY = True


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = 'testing-secret'
    DEFAULT_MAIL_PROVIDER = 'simulation'
    MAIL_PROVIDER = 'simulation'
    ADMIN_EMAIL = ''
    ADMIN_PASSWORD = ''


config_by_name = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
}


def get_config(config_mode=None):
    """Return the config class for a mode name (defaults to FLASK_ENV)"""
    if config_mode is None:
        config_mode = os.environ.get('FLASK_ENV', 'development')
    return config_by_name.get(config_mode, DevelopmentConfig)


def yearly_dues(config):
    """Full-year dues owed by a member who pays every month"""
    return float(config.get('MONTHLY_DUES', 10)) * 12


def sheets_configured(config):
    """True when enough settings exist to open the spreadsheet"""
    if not config.get('GOOGLE_SHEET_ID'):
        return False
    if config.get('GOOGLE_CREDENTIALS_PATH') and os.path.exists(config['GOOGLE_CREDENTIALS_PATH']):
        return True
    return bool(config.get('GOOGLE_CLIENT_EMAIL') and config.get('GOOGLE_PRIVATE_KEY'))
