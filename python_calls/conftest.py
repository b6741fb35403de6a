import os
import sys
import pytest

# Add the project root to the path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'call_gateway.settings')
os.environ.setdefault('USE_SQLITE_FOR_TESTS', 'true')


@pytest.fixture(autouse=True)
def voice_platform_settings(settings):
    """Point the voice platform client at a fake host and disable sweep delays."""
    settings.VOICE_API_BASE_URL = 'https://voice.example.test'
    settings.VOICE_API_KEY = 'test-api-key'
    settings.VOICE_AGENT_ID = 'agent_jess'
    settings.VOICE_API_MAX_RETRIES = 2
    settings.RECONCILE_SLEEP_SECONDS = 0
    settings.DEFAULT_TENANT_ID = 'tenant-default'
    return settings


@pytest.fixture(autouse=True)
def no_retry_sleep(monkeypatch):
    """Skip backoff sleeps in the voice platform client."""
    monkeypatch.setattr('calls.services.voice_client.time.sleep', lambda seconds: None)


@pytest.fixture
def post_call_payload():
    """Return a post-call webhook payload in the flat parameters format."""
    return {
        'conversation_id': 'c1',
        'agent_id': 'agent_jess',
        'parameters': {
            'caller_number': '+15551234567',
            'to_number': '+15559870000',
            'company_name': 'Blue Line Freight',
            'mc_number': 'MC123456',
            'started_at': '2026-10-17T14:00:00Z',
            'ended_at': '2026-10-17T14:03:30Z',
        },
        'transcript': [
            {'role': 'agent', 'message': 'Hi, this is Jess with dispatch. How can I help?'},
            {'role': 'user', 'message': 'I saw the Dallas to Atlanta load.'},
            {'role': 'agent', 'message': 'It pays 2,400 dollars, picks up tomorrow.'},
            {'role': 'user', 'message': "Okay, sounds good, let's book it."},
        ],
        'analysis': {
            'summary': 'Carrier agreed to haul the Dallas to Atlanta load.',
        },
    }


@pytest.fixture
def conversation_detail():
    """Return a conversation detail as served by the platform's detail API."""
    def build(conversation_id='c2', transcript=None, summary='Carrier asked for a callback.',
              from_number='+15557654321', agent_id='agent_jess'):
        if transcript is None:
            transcript = [
                {'role': 'agent', 'message': 'Hi, this is Jess. Which load are you calling about?'},
                {'role': 'user', 'message': "I'm interested in the load to Memphis, call me back."},
            ]
        analysis = {'call_successful': 'success'}
        if summary is not None:
            analysis['transcript_summary'] = summary
        return {
            'conversation_id': conversation_id,
            'agent_id': agent_id,
            'status': 'done',
            'start_time_unix_secs': 1792245600,
            'end_time_unix_secs': 1792245720,
            'call_duration_secs': 120,
            'transcript': transcript,
            'analysis': analysis,
            'call': {
                'from_number': from_number,
                'to_number': '+15559870000',
                'recording_url': 'https://voice.example.test/recordings/abc.mp3',
                'ended_reason': 'caller_hangup',
            },
        }
    return build
