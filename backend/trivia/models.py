import enum

from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash

from trivia import db
from trivia.utils import utcnow, format_timestamp, load_json_list, dump_json_list


class GameStatus(str, enum.Enum):
    SETUP = 'setup'
    IN_PROGRESS = 'in_progress'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'


class RoundStatus(str, enum.Enum):
    PENDING = 'pending'
    IN_PROGRESS = 'in_progress'
    COMPLETED = 'completed'


ANSWER_LABELS = ('A', 'B', 'C', 'D')


class User(UserMixin, db.Model):
    __tablename__ = 'user'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=False)

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
        }


class Question(db.Model):
    """Question bank entry. Read-only to the game core."""
    __tablename__ = 'question'
    id = db.Column(db.Integer, primary_key=True)
    category = db.Column(db.String(64), nullable=False, index=True)
    question = db.Column(db.Text, nullable=False)
    a = db.Column(db.Text, nullable=False)
    b = db.Column(db.Text, nullable=False)
    c = db.Column(db.Text, nullable=False)
    d = db.Column(db.Text, nullable=False)
    # Bank convention: option A holds the right answer unless stated otherwise
    correct_label = db.Column(db.String(1), nullable=False, default='A')

    def option(self, label):
        return getattr(self, label.lower())

    def to_dict(self, include_answer=False):
        data = {
            'id': self.id,
            'category': self.category,
            'question': self.question,
            'options': {label: self.option(label) for label in ANSWER_LABELS},
        }
        if include_answer:
            data['correct_label'] = self.correct_label
        return data


class Game(db.Model):
    __tablename__ = 'game'
    id = db.Column(db.Integer, primary_key=True)
    host_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    title = db.Column(db.String(100), nullable=False)
    location = db.Column(db.String(200), nullable=True)
    scheduled_date = db.Column(db.Date, nullable=True)
    start_time = db.Column(db.DateTime, nullable=True)
    end_time = db.Column(db.DateTime, nullable=True)
    status = db.Column(db.String(32), nullable=False, default=GameStatus.SETUP.value, index=True)
    total_rounds = db.Column(db.Integer, nullable=False)
    questions_per_round = db.Column(db.Integer, nullable=False)
    selected_categories = db.Column(db.Text, nullable=False)  # JSON-encoded list of category names
    max_teams = db.Column(db.Integer, nullable=False, default=20)
    max_players_per_team = db.Column(db.Integer, nullable=False, default=4)
    min_players_per_team = db.Column(db.Integer, nullable=False, default=1)
    self_registration_enabled = db.Column(db.Boolean, nullable=False, default=True)
    archived = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    host = db.relationship('User')
    teams = db.relationship('Team', back_populates='game', order_by='Team.id', cascade='all, delete-orphan')
    rounds = db.relationship('Round', back_populates='game', order_by='Round.round_number', cascade='all, delete-orphan')

    __table_args__ = (
        db.CheckConstraint('max_teams >= 1', name='ck_game_max_teams'),
        db.CheckConstraint(
            'min_players_per_team >= 1 AND min_players_per_team <= max_players_per_team',
            name='ck_game_team_size',
        ),
        db.CheckConstraint('total_rounds > 0 AND questions_per_round > 0', name='ck_game_round_config'),
    )

    @property
    def categories(self):
        return load_json_list(self.selected_categories)

    @categories.setter
    def categories(self, values):
        self.selected_categories = dump_json_list(values)

    def to_dict(self, include_teams=False, include_rounds=False):
        data = {
            'id': self.id,
            'host_id': self.host_id,
            'title': self.title,
            'location': self.location,
            'scheduled_date': self.scheduled_date.isoformat() if self.scheduled_date else None,
            'start_time': format_timestamp(self.start_time),
            'end_time': format_timestamp(self.end_time),
            'status': self.status,
            'total_rounds': self.total_rounds,
            'questions_per_round': self.questions_per_round,
            'selected_categories': self.categories,
            'max_teams': self.max_teams,
            'max_players_per_team': self.max_players_per_team,
            'min_players_per_team': self.min_players_per_team,
            'self_registration_enabled': self.self_registration_enabled,
            'archived': self.archived,
            'created_at': format_timestamp(self.created_at),
            'updated_at': format_timestamp(self.updated_at),
        }
        if include_teams:
            data['teams'] = [t.to_dict(include_players=True) for t in self.teams]
        if include_rounds:
            data['rounds'] = [r.to_dict() for r in self.rounds]
        return data


class Team(db.Model):
    __tablename__ = 'team'
    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.Integer, db.ForeignKey('game.id'), nullable=False, index=True)
    name = db.Column(db.String(50), nullable=False)
    display_color = db.Column(db.String(7), nullable=False, default='#3B82F6')
    current_score = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    game = db.relationship('Game', back_populates='teams')
    players = db.relationship('TeamPlayer', back_populates='team', order_by='TeamPlayer.id', cascade='all, delete-orphan')
    answers = db.relationship('TeamAnswer', back_populates='team', cascade='all, delete-orphan')

    __table_args__ = (
        db.UniqueConstraint('game_id', 'name', name='uq_team_game_name'),
        db.CheckConstraint('current_score >= 0', name='ck_team_score_positive'),
    )

    def to_dict(self, include_players=False):
        data = {
            'id': self.id,
            'game_id': self.game_id,
            'name': self.name,
            'display_color': self.display_color,
            'current_score': self.current_score,
            'player_count': len(self.players),
            'created_at': format_timestamp(self.created_at),
        }
        if include_players:
            data['players'] = [p.to_dict() for p in self.players]
        return data


class TeamPlayer(db.Model):
    __tablename__ = 'team_player'
    id = db.Column(db.Integer, primary_key=True)
    team_id = db.Column(db.Integer, db.ForeignKey('team.id'), nullable=False, index=True)
    # Copied from the team so one-team-per-player-per-game is a plain unique constraint
    game_id = db.Column(db.Integer, db.ForeignKey('game.id'), nullable=False)
    player_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    joined_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    team = db.relationship('Team', back_populates='players')
    player = db.relationship('User')

    __table_args__ = (
        db.UniqueConstraint('team_id', 'player_id', name='uq_team_player_membership'),
        db.UniqueConstraint('game_id', 'player_id', name='uq_team_player_one_team_per_game'),
    )

    def to_dict(self):
        return {
            'team_id': self.team_id,
            'player_id': self.player_id,
            'username': self.player.username if self.player else None,
            'joined_at': format_timestamp(self.joined_at),
        }


class Round(db.Model):
    __tablename__ = 'round'
    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.Integer, db.ForeignKey('game.id'), nullable=False, index=True)
    round_number = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(32), nullable=False, default=RoundStatus.PENDING.value)
    start_time = db.Column(db.DateTime, nullable=True)
    end_time = db.Column(db.DateTime, nullable=True)
    # Optional per-round overrides of the game's categories and question count
    custom_categories = db.Column(db.Text, nullable=True)
    questions_per_round = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    game = db.relationship('Game', back_populates='rounds')
    questions = db.relationship(
        'RoundQuestion', back_populates='round', order_by='RoundQuestion.question_order', cascade='all, delete-orphan'
    )

    __table_args__ = (
        db.UniqueConstraint('game_id', 'round_number', name='uq_round_game_number'),
        db.CheckConstraint('round_number > 0', name='ck_round_number_positive'),
    )

    @property
    def categories(self):
        return load_json_list(self.custom_categories) or self.game.categories

    @property
    def question_count(self):
        return self.questions_per_round or self.game.questions_per_round

    def to_dict(self, include_questions=False, include_answers=False):
        data = {
            'id': self.id,
            'game_id': self.game_id,
            'round_number': self.round_number,
            'status': self.status,
            'start_time': format_timestamp(self.start_time),
            'end_time': format_timestamp(self.end_time),
            'custom_categories': load_json_list(self.custom_categories) or None,
            'questions_per_round': self.questions_per_round,
        }
        if include_questions:
            data['questions'] = [q.to_dict(include_answers) for q in self.questions]
        return data


class RoundQuestion(db.Model):
    __tablename__ = 'round_question'
    id = db.Column(db.Integer, primary_key=True)
    round_id = db.Column(db.Integer, db.ForeignKey('round.id'), nullable=False, index=True)
    question_id = db.Column(db.Integer, db.ForeignKey('question.id'), nullable=False, index=True)
    question_order = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    round = db.relationship('Round', back_populates='questions')
    question = db.relationship('Question')

    __table_args__ = (
        db.UniqueConstraint('round_id', 'question_order', name='uq_round_question_order'),
        db.UniqueConstraint('round_id', 'question_id', name='uq_round_question_question'),
        db.CheckConstraint('question_order > 0', name='ck_round_question_order_positive'),
    )

    def to_dict(self, include_answer=False):
        return {
            'id': self.id,
            'round_id': self.round_id,
            'question_id': self.question_id,
            'question_order': self.question_order,
            'question': self.question.to_dict(include_answer) if self.question else None,
        }


class TeamAnswer(db.Model):
    __tablename__ = 'team_answer'
    id = db.Column(db.Integer, primary_key=True)
    team_id = db.Column(db.Integer, db.ForeignKey('team.id'), nullable=False, index=True)
    round_question_id = db.Column(db.Integer, db.ForeignKey('round_question.id'), nullable=False, index=True)
    submitted_by = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    answer = db.Column(db.String(1), nullable=False)
    is_correct = db.Column(db.Boolean, nullable=False)
    points_earned = db.Column(db.Integer, nullable=False, default=0)
    submitted_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    team = db.relationship('Team', back_populates='answers')
    round_question = db.relationship('RoundQuestion')

    __table_args__ = (
        db.UniqueConstraint('team_id', 'round_question_id', name='uq_team_answer_once'),
        db.CheckConstraint('points_earned >= 0', name='ck_team_answer_points_positive'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'team_id': self.team_id,
            'round_question_id': self.round_question_id,
            'submitted_by': self.submitted_by,
            'answer': self.answer,
            'is_correct': self.is_correct,
            'points_earned': self.points_earned,
            'submitted_at': format_timestamp(self.submitted_at),
        }


class HostUsedQuestion(db.Model):
    __tablename__ = 'host_used_question'
    id = db.Column(db.Integer, primary_key=True)
    host_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    question_id = db.Column(db.Integer, db.ForeignKey('question.id'), nullable=False, index=True)
    used_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        db.UniqueConstraint('host_id', 'question_id', name='uq_host_used_question_pair'),
    )
