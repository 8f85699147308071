import os
import sys
from concurrent.futures import Executor, Future

import flask
import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from brainbattle_app import create_app, db
from brainbattle_app.config import Config
from brainbattle_app.models import User
from brainbattle_app.modules.battle.engine.question_timer import BaseTicker


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_ENGINE_OPTIONS = {
        'connect_args': {'check_same_thread': False}
    }
    SCHEDULER_AUTOSTART = False
    LOG_DIR = None


class ManualTicker(BaseTicker):
    """Ticker driven by the test: fire() runs every scheduled job once per call."""

    def __init__(self):
        self.jobs = {}
        self.cancelled = []

    def schedule(self, job_id, interval, func):
        self.jobs[job_id] = func

    def cancel(self, job_id):
        self.cancelled.append(job_id)
        self.jobs.pop(job_id, None)

    def fire(self, times=1):
        for _ in range(times):
            for func in list(self.jobs.values()):
                func()


class FakeClock:
    def __init__(self, start=0.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class InlineExecutor(Executor):
    """Runs submitted work immediately on the calling thread."""

    def submit(self, fn, *args, **kwargs):
        future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as exc:
            future.set_exception(exc)
        return future


SAMPLE_QUESTIONS = [
    {
        'id': 'q1',
        'question': 'Which data structure is FIFO?',
        'type': 'multiple_choice',
        'options': ['Stack', 'Queue', 'Tree', 'Graph'],
        'correct': 1,
        'explanation': 'A queue serves elements in arrival order.',
    },
    {
        'id': 'q2',
        'question': 'What is 2 + 2?',
        'type': 'multiple_choice',
        'options': ['3', '4'],
        'correct': 1,
    },
    {
        'id': 'q3',
        'question': 'Yield strength of the sample in MPa?',
        'type': 'open_ended',
        'expected_answers': ['350'],
        'answer_format': 'numeric',
    },
    {
        'id': 'q4',
        'question': 'Name the structure that keeps keys ordered for lookup.',
        'type': 'open_ended',
        'expected_answers': ['binary search tree'],
    },
]

CORRECT_ANSWERS = [1, 1, '350 MPa', 'a tree for binary search']


def login_client(client, user_id):
    with client.session_transaction() as session:
        session['_user_id'] = str(user_id)
        session['_fresh'] = True
    # The app fixture keeps one app context alive across requests, so drop
    # Flask-Login's cached user from g or the previous login would leak.
    flask.g.pop('_login_user', None)


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    def _make_user(username='player'):
        user = User(username=username, email=f'{username}@example.com')
        user.set_password('password123')
        db.session.add(user)
        db.session.commit()
        return user.user_id
    return _make_user


@pytest.fixture
def ticker():
    return ManualTicker()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def inline_executor():
    return InlineExecutor()


@pytest.fixture
def sample_questions():
    return [dict(question) for question in SAMPLE_QUESTIONS]
