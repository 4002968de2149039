import logging

from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_login import LoginManager
from flask_cors import CORS
from flask_migrate import Migrate
import click
from config import Config

db = SQLAlchemy()
login_manager = LoginManager()
migrate = Migrate()
allowed_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:5174",
    "http://127.0.0.1:5174",
]

def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    db.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Services log under the package logger; let it follow the configured level
    logging.getLogger('trivia').setLevel(flask_app.config.get('LOG_LEVEL', 'INFO'))

    from trivia.routes import main
    flask_app.register_blueprint(main)

    from trivia.api.games import games
    from trivia.api.teams import teams
    from trivia.api.rounds import rounds
    from trivia.api.questions import questions
    flask_app.register_blueprint(games, url_prefix='/api/games')
    flask_app.register_blueprint(teams, url_prefix='/api/teams')
    flask_app.register_blueprint(rounds, url_prefix='/api')
    flask_app.register_blueprint(questions, url_prefix='/api/questions')

    from trivia.errors import TriviaError

    @flask_app.errorhandler(TriviaError)
    def handle_trivia_error(exc):
        if exc.http_status >= 500:
            flask_app.logger.error(f"[{exc.code}] {exc.message}")
        return jsonify(exc.to_dict()), exc.http_status

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'error': 'Login required', 'code': 'UNAUTHENTICATED', 'details': {}}), 401

    # Flask-Login user loader
    from trivia.models import User

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            # Seed users
            users = ['host1', 'player1', 'player2', 'player3']
            for u in users:
                user = User(username=u)
                user.set_password('password')
                db.session.add(user)

            db.session.commit()
            print('Database has been reset and seeded!')

    @click.command('seed-questions')
    def seed_questions_command():
        """Loads the sample question bank, skipping prompts already present."""
        from trivia.models import Question
        from trivia.sample_questions import SAMPLE_QUESTIONS
        with flask_app.app_context():
            existing = {q.question for q in Question.query.all()}
            added = 0
            for entry in SAMPLE_QUESTIONS:
                if entry['question'] in existing:
                    continue
                db.session.add(Question(**entry))
                added += 1
            db.session.commit()
            print(f'Added {added} questions to the bank.')

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(seed_questions_command)

    return flask_app
