from flask import Blueprint, request, jsonify, current_app, render_template, redirect, url_for, flash, has_request_context
from forms import AccessibilityActionForm
from utils.accessibility import AccessibilityPreferences, ACTIONS, labels, normalize_language, text_direction
from utils.helpers import is_safe_url

# Blueprint for the accessibility widget: a JSON API for the SPA and a server-rendered panel.
accessibility_bp = Blueprint('accessibility', __name__, url_prefix='/accessibility')


def load_preferences():
    """Reads the preferences cookie of the current request (defaults if absent or unreadable)."""
    raw = request.cookies.get(current_app.config['ACCESSIBILITY_COOKIE_NAME'])
    return AccessibilityPreferences.from_json(raw)


def save_preferences(response, prefs):
    """Persists preferences on the response as the long-lived `accessibilityPrefs` cookie."""
    response.set_cookie(
        current_app.config['ACCESSIBILITY_COOKIE_NAME'],
        prefs.to_json(),
        max_age=current_app.config['ACCESSIBILITY_COOKIE_MAX_AGE'],
        samesite='Lax',
        httponly=False, # The frontend reads it on first paint, before any API call.
    )
    return response


def current_language():
    return normalize_language(request.args.get('lang') or request.cookies.get('language'))


def preferences_payload(prefs):
    return {'preferences': prefs.to_dict(), 'rootAttributes': prefs.root_attributes()}


@accessibility_bp.app_context_processor
def inject_accessibility():
    """Makes the root attributes available to every template (base.html applies them on <html>)."""
    if not has_request_context():
        return {}
    prefs = load_preferences()
    language = current_language()
    return {
        'accessibility': prefs.root_attributes(),
        'accessibility_prefs': prefs,
        'accessibility_labels': labels(language),
        'language': language,
        'text_direction': text_direction(language),
    }


@accessibility_bp.route('/preferences', methods=['GET'])
def get_preferences():
    return jsonify(preferences_payload(load_preferences()))


@accessibility_bp.route('/preferences', methods=['PUT'])
def replace_preferences():
    """
    Replaces the whole preferences blob.
    Accepts the stored camelCase shape; missing or invalid fields take their defaults.
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({'error': 'Preferences must be a JSON object.'}), 400

    prefs = AccessibilityPreferences.from_dict(data)
    return save_preferences(jsonify(preferences_payload(prefs)), prefs)


@accessibility_bp.route('/preferences/<action>', methods=['POST'])
def apply_preference_action(action):
    """
    Applies one widget action (the JSON equivalent of pressing a panel button).

    Args:
        action (str): One of utils.accessibility.ACTIONS, e.g. 'increase-font' or 'contrast'.
    Request JSON (optional):
        value (str): Required for 'contrast' (normal/high/invert) and 'cursor' (normal/large).
    """
    if action not in ACTIONS:
        return jsonify({'error': f'Unknown accessibility action: {action}'}), 404

    data = request.get_json(silent=True) or {}
    value = data.get('value', request.form.get('value'))

    prefs = load_preferences()
    try:
        prefs.apply_action(action, value)
    except ValueError as e:
        return jsonify({'error': str(e)}), 400

    current_app.logger.debug(f"Accessibility action {action} applied: {prefs.to_json()}")
    return save_preferences(jsonify(preferences_payload(prefs)), prefs)


@accessibility_bp.route('/', methods=['GET', 'POST'])
def panel():
    """
    Server-rendered accessibility panel.
    GET renders the panel; POST applies the submitted action and redirects back.
    """
    form = AccessibilityActionForm()

    if request.method == 'GET':
        prefs = load_preferences()
        # Same-site URLs only; next_url becomes the Close link's href.
        next_url = request.args.get('next', '')
        if not is_safe_url(next_url):
            next_url = ''
        return render_template('accessibility/panel.html', form=form, prefs=prefs, next_url=next_url)

    if not form.validate_on_submit():
        for field_errors in form.errors.values():
            for error in field_errors:
                flash(error, 'danger')
        return redirect(url_for('accessibility.panel'))

    prefs = load_preferences().apply_action(form.action.data, form.value.data)

    # Go back to the page the panel was opened from, but never off-site.
    target = form.next.data if form.next.data and is_safe_url(form.next.data) else url_for('accessibility.panel')
    return save_preferences(redirect(target), prefs)
