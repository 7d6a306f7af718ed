import logging
import os
from logging.config import dictConfig

from dotenv import load_dotenv
from flask import Flask, jsonify
from flask_migrate import Migrate
from werkzeug.exceptions import HTTPException
from werkzeug.middleware.proxy_fix import ProxyFix

from extensions import limiter
from models import db

# .env から環境変数を読み込む
BASE_DIR = os.path.dirname(os.path.abspath(__file__))
load_dotenv(os.path.join(BASE_DIR, '.env'))

from config import config_by_name  # noqa: E402

app = Flask(__name__)
# リバースプロキシ配下の X-Forwarded-* を反映
app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1)

# 環境設定 (既定は production)
env_name = os.environ.get('FLASK_ENV', 'production')
app_config = config_by_name[env_name]()
app.config.from_object(app_config)
app.json.ensure_ascii = app.config.get('JSON_AS_ASCII', False)

# ロギング
LOG_DIR = os.path.join(BASE_DIR, 'logs')
os.makedirs(LOG_DIR, exist_ok=True)
dictConfig(app_config.get_logging_config(LOG_DIR))

logger = logging.getLogger(__name__)

# 初期化
db.init_app(app)
migrate = Migrate(app, db)
limiter.init_app(app)

# Blueprint 一括登録
from routes import register_blueprints  # noqa: E402
register_blueprints(app)


@app.route('/health')
def health():
    try:
        db.session.execute(db.text('SELECT 1'))
        return jsonify({"status": "healthy", "database": "connected"}), 200
    except Exception as e:
        logger.error("Health check failed: %s", e)
        return jsonify({"status": "unhealthy", "database": str(e)}), 503


@app.after_request
def set_security_headers(response):
    response.headers.setdefault("X-Frame-Options", "SAMEORIGIN")
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
    return response


@app.errorhandler(404)
def not_found(e):
    return jsonify({"ok": False, "message": "Not found"}), 404


@app.errorhandler(405)
def method_not_allowed(e):
    return jsonify({"ok": False, "message": "Method not allowed"}), 405


@app.errorhandler(429)
def too_many_requests(e):
    return jsonify({"ok": False, "message": "Too many requests", "detail": e.description}), 429


@app.errorhandler(500)
def internal_server_error(e):
    original = getattr(e, "original_exception", None)
    logger.exception("500 Internal Server Error: %s", original or e)
    db.session.rollback()
    return jsonify({"ok": False, "message": "Unexpected error"}), 500


@app.errorhandler(Exception)
def unhandled_exception(e):
    if isinstance(e, HTTPException):
        return jsonify({"ok": False, "message": e.description}), e.code
    logger.exception("Unhandled exception: %s", e)
    db.session.rollback()
    return jsonify({"ok": False, "message": "Unexpected error"}), 500


if __name__ == '__main__':
    use_debug = os.environ.get('FLASK_DEBUG', '0') == '1'
    app.run(host='127.0.0.1', port=5000, debug=use_debug)
