"""
Route tests for the audit form and JSON API.
Tests the Flask endpoints with run_audit / requests.post mocked.
"""
import pytest
from unittest.mock import patch, Mock

from video_audit.audit_state import AuditStateStore
from video_audit.services.llm_client import CompletionError, ResponseParseError, GENERIC_ERROR_MESSAGE
from video_audit.services.request_builder import AuditValidationError

SESSION_ID = 'test-session-id'

SAMPLE_RESULT = {
    "platform": "TikTok",
    "brand_alignment": "Partially",
    "crm_mention": "No",
    "action": "Revise",
    "score": 58,
    "hook_strength": "Moderate",
    "cta_present": False,
    "verdict": "Decent hook but no CRM story.",
    "issues": ["No call-to-action at the end"],
    "suggestions": ["Close with a demo booking link"],
    "revised_angle": "Open on a messy spreadsheet, then show the WiBiz CRM cleaning it up."
}


@pytest.fixture
def app(monkeypatch):
    """Create Flask app for testing with a fresh state store."""
    import main
    from main import app as flask_app

    flask_app.config['TESTING'] = True
    flask_app.config['SECRET_KEY'] = 'test-secret-key'
    flask_app.config['SESSION_COOKIE_SECURE'] = False
    flask_app.config['GROQ_API_KEY'] = ''

    monkeypatch.setattr(main, 'audit_states', AuditStateStore())
    return flask_app


@pytest.fixture
def client(app):
    """Create Flask test client with a known audit session id."""
    client = app.test_client()
    with client.session_transaction() as sess:
        sess['audit_id'] = SESSION_ID
    return client


def form_data(**overrides):
    data = {
        'platform': 'TikTok',
        'input_mode': 'script',
        'script': 'Automate your follow-ups with WiBiz CRM. Book a demo today!',
        'video_url': '',
        'api_key': 'gsk_test'
    }
    data.update(overrides)
    return data


class TestIndex:

    def test_renders_form(self, client):
        response = client.get('/')

        assert response.status_code == 200
        assert b'Run Brand Audit' in response.data
        for platform in [b'TikTok', b'Instagram', b'Facebook', b'YouTube', b'X (Twitter)', b'LinkedIn']:
            assert platform in response.data

    def test_default_key_never_rendered(self, app, client):
        app.config['GROQ_API_KEY'] = 'gsk_server_secret'

        response = client.get('/')

        assert b'gsk_server_secret' not in response.data
        assert b"default key" in response.data

    def test_health(self, client):
        response = client.get('/health')

        assert response.get_json() == {'status': 'ok'}


class TestAuditForm:
    """Test suite for the POST /audit route."""

    def test_blank_script_shows_validation_error_without_call(self, client):
        with patch('video_audit.services.llm_client.requests.post') as mock_post:
            response = client.post('/audit', data=form_data(script='   '), follow_redirects=True)

            assert response.status_code == 200
            assert b'Please provide a video URL or script.' in response.data
            mock_post.assert_not_called()

    def test_missing_key_shows_validation_error_without_call(self, client):
        with patch('video_audit.services.llm_client.requests.post') as mock_post:
            response = client.post('/audit', data=form_data(api_key=''), follow_redirects=True)

            assert b'Please enter your Groq API key.' in response.data
            mock_post.assert_not_called()

    def test_server_default_key_used_when_field_blank(self, app, client):
        app.config['GROQ_API_KEY'] = 'gsk_server'

        with patch('main.run_audit', return_value=SAMPLE_RESULT) as mock_run:
            client.post('/audit', data=form_data(api_key=''))

            audit_request = mock_run.call_args[0][0]
            assert audit_request.credential == 'gsk_server'

    def test_happy_path_renders_dashboard(self, client):
        with patch('main.run_audit', return_value=SAMPLE_RESULT):
            response = client.post('/audit', data=form_data())

            assert response.status_code == 302
            assert response.location.endswith('/')

            response = client.get('/')
            assert b'AUDIT RESULTS' in response.data
            assert b'Decent hook but no CRM story.' in response.data
            assert b'REVISE' in response.data
            assert b'Close with a demo booking link' in response.data
            assert b'#ffd600' in response.data

    def test_full_stack_with_fenced_reply(self, client):
        """Form submit through the real client and parser with HTTP mocked."""
        reply = '```json\n{"action": "Keep", "score": 91, "verdict": "Ship it."}\n```'
        upstream = Mock(status_code=200, ok=True)
        upstream.json.return_value = {"choices": [{"message": {"content": reply}}]}

        with patch('video_audit.services.llm_client.requests.post', return_value=upstream) as mock_post:
            response = client.post('/audit', data=form_data(), follow_redirects=True)

            assert mock_post.call_count == 1
            assert b'Ship it.' in response.data
            assert b'KEEP' in response.data

    def test_upstream_error_message_shown_and_result_cleared(self, client):
        with patch('main.run_audit', return_value=SAMPLE_RESULT):
            client.post('/audit', data=form_data())

        with patch('main.run_audit', side_effect=CompletionError('bad key')):
            response = client.post('/audit', data=form_data(), follow_redirects=True)

            assert b'bad key' in response.data
            assert b'AUDIT RESULTS' not in response.data

    def test_parse_error_shows_generic_message(self, client):
        with patch('main.run_audit', side_effect=ResponseParseError('Invalid JSON response from LLM')):
            response = client.post('/audit', data=form_data(), follow_redirects=True)

            assert GENERIC_ERROR_MESSAGE.encode() in response.data
            assert b'Invalid JSON' not in response.data

    def test_resubmit_while_pending_is_noop(self, client):
        import main
        main.audit_states.begin(SESSION_ID, 'TikTok', 'script', script='first')

        with patch('main.run_audit') as mock_run:
            response = client.post('/audit', data=form_data(script='second'), follow_redirects=True)

            mock_run.assert_not_called()
            assert b'already running' in response.data
            assert main.audit_states.is_in_flight(SESSION_ID)
            assert main.audit_states.get(SESSION_ID)['script'] == 'first'

    def test_pending_audit_disables_button(self, client):
        import main
        main.audit_states.begin(SESSION_ID, 'TikTok', 'script')

        response = client.get('/')

        assert b'class="run" disabled' in response.data

    def test_in_flight_flag_cleared_after_failure(self, client):
        import main
        with patch('main.run_audit', side_effect=RuntimeError('unexpected')):
            client.post('/audit', data=form_data())

        assert not main.audit_states.is_in_flight(SESSION_ID)

    def test_form_values_are_kept(self, client):
        with patch('main.run_audit', side_effect=AuditValidationError('Please enter your Groq API key.')):
            response = client.post(
                '/audit',
                data=form_data(platform='LinkedIn', script='My draft script'),
                follow_redirects=True
            )

            assert b'My draft script' in response.data
            assert b'value="LinkedIn" checked' in response.data

    def test_reset_clears_result(self, client):
        with patch('main.run_audit', return_value=SAMPLE_RESULT):
            client.post('/audit', data=form_data())

        response = client.post('/reset', follow_redirects=True)

        assert b'AUDIT RESULTS' not in response.data


class TestAuditApi:
    """Test suite for POST /api/audit."""

    def test_success(self, client):
        with patch('main.run_audit', return_value=SAMPLE_RESULT):
            response = client.post('/api/audit', json={
                'platform': 'TikTok',
                'input_mode': 'script',
                'content': 'A script',
                'api_key': 'gsk_test'
            })

            assert response.status_code == 200
            assert response.get_json() == {'success': True, 'result': SAMPLE_RESULT}

    def test_validation_error_is_400(self, client):
        with patch('video_audit.services.llm_client.requests.post') as mock_post:
            response = client.post('/api/audit', json={'content': '  ', 'api_key': 'gsk_test'})

            assert response.status_code == 400
            assert response.get_json()['message'] == 'Please provide a video URL or script.'
            mock_post.assert_not_called()

    def test_upstream_error_is_502(self, client):
        with patch('main.run_audit', side_effect=CompletionError('API error 500')):
            response = client.post('/api/audit', json={'content': 'x', 'api_key': 'gsk_test'})

            assert response.status_code == 502
            assert response.get_json() == {'success': False, 'message': 'API error 500'}

    def test_pending_is_409(self, client):
        import main
        main.audit_states.begin(SESSION_ID, 'TikTok', 'script')

        with patch('main.run_audit') as mock_run:
            response = client.post('/api/audit', json={'content': 'x', 'api_key': 'gsk_test'})

            assert response.status_code == 409
            assert response.get_json()['pending'] is True
            mock_run.assert_not_called()

    def test_non_string_field_is_400_and_releases_session(self, client):
        import main
        with patch('main.run_audit') as mock_run:
            response = client.post('/api/audit', json={'content': 5, 'api_key': 'gsk_test'})

            assert response.status_code == 400
            assert "'content' must be a string" in response.get_json()['message']
            assert not main.audit_states.is_in_flight(SESSION_ID)
            mock_run.assert_not_called()

        with patch('main.run_audit', return_value=SAMPLE_RESULT) as mock_run:
            response = client.post('/api/audit', json={'content': 'ok', 'api_key': 'gsk_test'})

            assert response.status_code == 200
            mock_run.assert_called_once()

    @pytest.mark.parametrize("field", ['platform', 'input_mode', 'api_key'])
    def test_other_non_string_fields_are_400(self, client, field):
        body = {'content': 'A script', 'api_key': 'gsk_test'}
        body[field] = ['TikTok']

        response = client.post('/api/audit', json=body)

        assert response.status_code == 400
        assert response.get_json()['success'] is False

    @pytest.mark.parametrize("body", [[1, 2], "just a string", 42])
    def test_non_object_body_is_400(self, client, body):
        import main
        with patch('main.run_audit') as mock_run:
            response = client.post('/api/audit', json=body)

            assert response.status_code == 400
            assert response.get_json() == {'success': False, 'message': 'Request body must be a JSON object'}
            assert not main.audit_states.is_in_flight(SESSION_ID)
            mock_run.assert_not_called()

    def test_non_json_body_is_400(self, client):
        response = client.post('/api/audit', data='content=hello', content_type='text/plain')

        assert response.status_code == 400

    def test_failure_before_run_audit_releases_session(self, client):
        """An error while building the request still clears the in-flight flag."""
        import main
        with patch('main.AuditRequest', side_effect=RuntimeError('boom')), \
             patch('main.run_audit') as mock_run:
            response = client.post('/api/audit', json={'content': 'x', 'api_key': 'gsk_test'})

            assert response.status_code == 502
            assert response.get_json()['message'] == GENERIC_ERROR_MESSAGE
            mock_run.assert_not_called()

        assert not main.audit_states.is_in_flight(SESSION_ID)

    def test_pending_guard_is_per_session_cookie(self, app, client):
        """A client without the pending session's cookie is not blocked by it."""
        import main
        main.audit_states.begin(SESSION_ID, 'TikTok', 'script')
        other_client = app.test_client()

        with patch('main.run_audit', return_value=SAMPLE_RESULT):
            response = other_client.post('/api/audit', json={'content': 'x', 'api_key': 'gsk_test'})

            assert response.status_code == 200
            assert main.audit_states.is_in_flight(SESSION_ID)


class TestAuditFormEdgeCases:
    """Form route cases around empty results and early failures."""

    def test_empty_object_result_renders_dashboard(self, client):
        with patch('main.run_audit', return_value={}):
            response = client.post('/audit', data=form_data(), follow_redirects=True)

            assert b'AUDIT RESULTS' in response.data
            assert b'TIKTOK' in response.data
            assert b'REVISE' in response.data
            assert b'Missing' in response.data

    def test_failure_building_request_releases_session(self, client):
        import main
        with patch('main.AuditRequest.from_form', side_effect=RuntimeError('boom')):
            response = client.post('/audit', data=form_data(), follow_redirects=True)

            assert GENERIC_ERROR_MESSAGE.encode() in response.data

        assert not main.audit_states.is_in_flight(SESSION_ID)


class TestSecureCookieSetting:

    def test_follows_https_scheme(self):
        from main import secure_cookie_setting

        assert secure_cookie_setting('https') is True
        assert secure_cookie_setting('http') is False

    @pytest.mark.parametrize("override,expected", [('true', True), ('True', True), ('false', False), (' false ', False)])
    def test_explicit_value_wins(self, override, expected):
        from main import secure_cookie_setting

        assert secure_cookie_setting('http', override) is expected
        assert secure_cookie_setting('https', override) is expected

    def test_blank_override_uses_scheme(self):
        from main import secure_cookie_setting

        assert secure_cookie_setting('http', '') is False
