"""
Application factory: configuration, spreadsheet store, auth and API blueprints
"""
import logging

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from admin import admin_bp
from auth import init_auth
from config import get_config, sheets_configured, yearly_dues
from database import open_spreadsheet
from members import members_bp
from notifications import email_bp
from sheets import SheetError, SheetStore
from users import users_bp

logger = logging.getLogger(__name__)


def _attach_store(app, spreadsheet=None):
    """Put a SheetStore in app.extensions when a spreadsheet is available"""
    if spreadsheet is None and sheets_configured(app.config):
        try:
            spreadsheet = open_spreadsheet(app.config)
        except SheetError as e:
            logger.warning(f"Google Sheets unavailable, running without it: {e}")

    if spreadsheet is None:
        logger.info("No spreadsheet configured; sheet-backed endpoints will report errors")
        app.extensions['sheet_store'] = None
        return

    app.extensions['sheet_store'] = SheetStore(spreadsheet, yearly_dues=yearly_dues(app.config))


def register_error_handlers(app):
    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        return jsonify({'error': e.description or e.name}), e.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(e):
        logger.exception(f"Unhandled error: {e}")
        return jsonify({'error': 'Internal server error'}), 500


def create_app(config_mode=None, spreadsheet=None):
    """Create and configure the Flask app"""
    logging.basicConfig(level=logging.INFO)

    app = Flask(__name__)
    app.config.from_object(get_config(config_mode))
    # Keep response keys in the order the handlers build them
    app.json.sort_keys = False

    _attach_store(app, spreadsheet)
    init_auth(app)
    app.register_blueprint(members_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(email_bp)
    register_error_handlers(app)

    @app.route('/api/health')
    def health():
        return jsonify({
            'status': 'ok',
            'sheetsConnected': app.extensions.get('sheet_store') is not None,
        })

    logger.info(f"App created (mode={config_mode or 'default'}, sheets={'on' if app.extensions['sheet_store'] else 'off'})")
    return app
