from datetime import datetime, timezone
from flask import Blueprint, render_template, jsonify, current_app

main_bp = Blueprint('main', __name__)


@main_bp.route('/health')
def health():
    """Liveness check for the hosting platform."""
    return jsonify({
        'status': 'OK',
        'timestamp': datetime.now(timezone.utc).isoformat(),
        'environment': current_app.config['APP_ENV'],
    })


@main_bp.route('/')
def index():
    # Landing page; base.html carries the accessibility widget on every page.
    return render_template('index.html')
