import os
import random
import sys
import pytest

# Ensure the backend root (containing the `trivia` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from trivia import create_app, db
from trivia.models import Question, User
from trivia.services import GameLifecycleManager


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    WTF_CSRF_ENABLED = False
    LOG_LEVEL = 'DEBUG'
    POINTS_PER_CORRECT_ANSWER = 10
    REQUIRE_TEAMS_READY_TO_START = False


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import trivia.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def users(flask_app):
    created = {}
    for name in ('host', 'other_host', 'alice', 'bob', 'cara', 'dan'):
        user = User(username=name)
        user.set_password('password')
        db.session.add(user)
        created[name] = user
    db.session.commit()
    return {name: user.id for name, user in created.items()}


@pytest.fixture()
def add_questions(flask_app):
    """Add ``count`` questions to the bank; option A is always right."""
    def _add(category, count):
        questions = [
            Question(
                category=category,
                question=f'{category} question {i}',
                a='right', b='wrong', c='wrong', d='wrong',
            )
            for i in range(count)
        ]
        db.session.add_all(questions)
        db.session.commit()
        return [q.id for q in questions]
    return _add


@pytest.fixture()
def manager(flask_app):
    return GameLifecycleManager.from_config(db.session, flask_app.config, rng=random.Random(1234))


@pytest.fixture()
def make_game(manager, users):
    def _make(host='host', **overrides):
        config = {
            'title': 'Thursday Pub Quiz',
            'total_rounds': 2,
            'questions_per_round': 3,
            'selected_categories': ['science'],
            'max_teams': 4,
            'max_players_per_team': 3,
            'min_players_per_team': 1,
        }
        config.update(overrides)
        return manager.create_game(users[host], config)
    return _make


@pytest.fixture()
def running_game(manager, make_game, users, add_questions):
    """A started two-round game with two one-player teams."""
    add_questions('science', 8)
    game = make_game()
    owls = manager.create_team(users['host'], game.id, 'Owls', '#112233')
    foxes = manager.create_team(users['host'], game.id, 'Foxes')
    manager.join_team(users['alice'], owls.id)
    manager.join_team(users['bob'], foxes.id)
    manager.start_game(users['host'], game.id)
    return {'game_id': game.id, 'owls_id': owls.id, 'foxes_id': foxes.id}
