from flask import Flask, render_template, session, request, jsonify, flash, redirect, url_for
import os
import logging
import secrets
from dotenv import load_dotenv

# Load environment variables BEFORE importing services that read them
load_dotenv()

from video_audit.audit_state import AuditStateStore, DEFAULT_TTL
from video_audit.services.request_builder import (
    AuditRequest,
    AuditValidationError,
    PLATFORMS,
    PLATFORM_ICONS,
    normalize_input_mode,
    normalize_platform
)
from video_audit.services.llm_client import CompletionError, ResponseParseError, GENERIC_ERROR_MESSAGE
from video_audit.services.audit_orchestrator import run_audit
from video_audit.utils.presentation import register_template_helpers

logger = logging.getLogger(__name__)

print("\n=== DEBUG APP INITIALIZATION ===")

app = Flask(__name__, static_folder='video_audit/static', template_folder='video_audit/templates')
app.secret_key = os.getenv('SECRET_KEY', 'dev-secret-key')
print(f"DEBUG: Flask app created")
print(f"DEBUG: SECRET_KEY set: {bool(os.getenv('SECRET_KEY'))}")

# Behind a reverse proxy: trust forwarded scheme/host so url_for() builds correct URLs
from werkzeug.middleware.proxy_fix import ProxyFix
app.wsgi_app = ProxyFix(
    app.wsgi_app,
    x_for=1,
    x_proto=1,
    x_host=1,
    x_prefix=1
)

def secure_cookie_setting(url_scheme: str, override: str = None) -> bool:
    """
    Decide SESSION_COOKIE_SECURE.

    An explicit SESSION_COOKIE_SECURE value wins; otherwise cookies are
    Secure only when the app is served over HTTPS. Browsers drop Secure
    cookies on plain HTTP, which would lose the audit session on every redirect.
    """
    if override:
        return override.strip().lower() == 'true'
    return url_scheme.lower() == 'https'


url_scheme = os.getenv('PREFERRED_URL_SCHEME') or 'https'
app.config.update(
    PREFERRED_URL_SCHEME=url_scheme,
    SESSION_COOKIE_SECURE=secure_cookie_setting(url_scheme, os.getenv('SESSION_COOKIE_SECURE')),
    SESSION_COOKIE_HTTPONLY=True,
    SESSION_COOKIE_SAMESITE='Lax'
)
print(f"DEBUG: PREFERRED_URL_SCHEME: {url_scheme}")
print(f"DEBUG: SESSION_COOKIE_SECURE: {app.config['SESSION_COOKIE_SECURE']}")

# Groq configuration (the default key is only ever sent upstream, never rendered)
app.config['GROQ_API_KEY'] = os.getenv('GROQ_API_KEY', '')
app.config['AUDIT_STATE_TTL'] = int(os.getenv('AUDIT_STATE_TTL') or DEFAULT_TTL)

print(f"DEBUG: GROQ_API_KEY default set: {bool(app.config['GROQ_API_KEY'])}")
print(f"DEBUG: AUDIT_STATE_TTL: {app.config['AUDIT_STATE_TTL']}s")

audit_states = AuditStateStore(ttl=app.config['AUDIT_STATE_TTL'])

register_template_helpers(app)


def _session_id() -> str:
    """Return this browser's audit state key, creating one on first use."""
    if 'audit_id' not in session:
        session['audit_id'] = secrets.token_hex(16)
    return session['audit_id']


def _execute_audit(sid: str, audit_request: AuditRequest) -> dict:
    """
    Run the audit and record the outcome in the session's state.

    The in-flight flag must already be set by audit_states.begin().

    Raises:
        AuditValidationError, CompletionError, ResponseParseError or any
        unexpected exception; the state is updated before re-raising.
    """
    try:
        result = run_audit(audit_request)
    except AuditValidationError as e:
        audit_states.finish(sid, error=str(e))
        raise
    except CompletionError as e:
        logger.error(f"Completion call failed: {e}")
        audit_states.finish(sid, error=str(e) or GENERIC_ERROR_MESSAGE)
        raise
    except ResponseParseError as e:
        logger.error(f"Audit response could not be parsed: {e}")
        audit_states.finish(sid, error=GENERIC_ERROR_MESSAGE)
        raise
    except Exception as e:
        logger.exception(f"Unexpected error during audit: {type(e).__name__}")
        audit_states.finish(sid, error=GENERIC_ERROR_MESSAGE)
        raise

    audit_states.finish(sid, result=result)
    return result


@app.route('/')
def index():
    sid = _session_id()
    state = audit_states.get(sid)
    return render_template(
        'index.html',
        state=state,
        platforms=PLATFORMS,
        platform_icons=PLATFORM_ICONS,
        has_default_key=bool(app.config['GROQ_API_KEY'])
    )


@app.route('/audit', methods=['POST'])
def audit():
    """Handle the audit form submission and redirect back to the dashboard"""
    sid = _session_id()

    platform = normalize_platform(request.form.get('platform'))
    input_mode = normalize_input_mode(request.form.get('input_mode'))
    script = request.form.get('script', '')
    video_url = request.form.get('video_url', '')

    if not audit_states.begin(sid, platform, input_mode, script, video_url):
        logger.info("Audit already in flight for this session, ignoring submit")
        flash('An audit is already running. Please wait for it to finish.', 'warning')
        return redirect(url_for('index'))

    try:
        audit_request = AuditRequest.from_form(
            platform=platform,
            input_mode=input_mode,
            script=script,
            video_url=video_url,
            api_key=request.form.get('api_key'),
            default_api_key=app.config['GROQ_API_KEY']
        )
        _execute_audit(sid, audit_request)
    except Exception as e:
        # The error message is already stored in the session state for the page
        logger.info(f"Audit finished with {type(e).__name__}")
    finally:
        if audit_states.is_in_flight(sid):
            audit_states.finish(sid, error=GENERIC_ERROR_MESSAGE)

    return redirect(url_for('index'))


@app.route('/api/audit', methods=['POST'])
def api_audit():
    """
    JSON variant of the audit form.

    The pending-audit guard is keyed on the session cookie, like the form.
    A client that sends no cookies gets a fresh session (and state entry,
    kept until AUDIT_STATE_TTL) on every call, so the guard cannot apply
    to it; clients that want one-at-a-time behavior must keep the cookie.
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({'success': False, 'message': 'Request body must be a JSON object'}), 400

    for field in ('platform', 'input_mode', 'content', 'api_key'):
        if data.get(field) is not None and not isinstance(data[field], str):
            return jsonify({'success': False, 'message': f"'{field}' must be a string"}), 400

    sid = _session_id()
    platform = normalize_platform(data.get('platform'))
    input_mode = normalize_input_mode(data.get('input_mode'))
    content = data.get('content') or ''

    if not audit_states.begin(
        sid,
        platform,
        input_mode,
        script=content if input_mode == 'script' else '',
        video_url=content if input_mode == 'url' else ''
    ):
        return jsonify({'success': False, 'message': 'An audit is already in progress', 'pending': True}), 409

    try:
        audit_request = AuditRequest(
            platform,
            input_mode,
            content,
            (data.get('api_key') or '').strip() or app.config['GROQ_API_KEY']
        )
        result = _execute_audit(sid, audit_request)
        return jsonify({'success': True, 'result': result})
    except AuditValidationError as e:
        return jsonify({'success': False, 'message': str(e)}), 400
    except CompletionError as e:
        return jsonify({'success': False, 'message': str(e) or GENERIC_ERROR_MESSAGE}), 502
    except Exception:
        logger.exception("Audit API request failed")
        return jsonify({'success': False, 'message': GENERIC_ERROR_MESSAGE}), 502
    finally:
        # Anything that failed before run_audit still has to release the guard
        if audit_states.is_in_flight(sid):
            audit_states.finish(sid, error=GENERIC_ERROR_MESSAGE)


@app.route('/reset', methods=['POST'])
def reset():
    """Clear the form, result and error for this browser"""
    audit_states.reset(_session_id())
    return redirect(url_for('index'))


@app.route('/health')
def health():
    return jsonify({'status': 'ok'})


if __name__ == '__main__':
    # Reloader off: it double-imports the module and prints the startup banner twice
    app.debug = False
    app.config['DEBUG'] = False
    app.config['TESTING'] = False
    app.run(host='0.0.0.0', port=int(os.getenv('PORT', 5000)), debug=False, use_reloader=False)
