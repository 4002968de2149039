"""Game lifecycle: the entry point for every mutating game operation.

Each public mutating method runs as one unit of work. Component services only
flush; the manager commits once the whole operation succeeded and rolls back
everything otherwise. State-change signals go out only after the commit.
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from trivia import signals
from trivia.errors import (
    ConfigurationValidationError,
    GameStateError,
    InvalidTransitionError,
    NotDeletableError,
    NotEditableError,
    NotFoundError,
    RoundNotActiveError,
    RoundsNotFinishedError,
    StorageError,
    TeamsNotReadyError,
    TriviaError,
    UnauthorizedError,
)
from trivia.models import Game, GameStatus, Round, RoundQuestion, RoundStatus, Team, TeamAnswer, TeamPlayer, User
from trivia.services.questions import QuestionAllocator, SqlQuestionBank
from trivia.services.rounds import RoundProgressionController
from trivia.services.scoring import AnswerScoringEngine, FlatRateScoring, ScoringPolicy
from trivia.services.summary import GameSummaryAggregator
from trivia.services.teams import TeamMembershipManager
from trivia.services.validation import (
    GAME_FIELDS,
    GameLimits,
    validate_game_config,
    validate_round_overrides,
)
from trivia.utils import utcnow

logger = logging.getLogger(__name__)

# from -> allowed targets
GAME_TRANSITIONS = {
    GameStatus.SETUP: (GameStatus.IN_PROGRESS, GameStatus.CANCELLED),
    GameStatus.IN_PROGRESS: (GameStatus.COMPLETED, GameStatus.CANCELLED),
    GameStatus.COMPLETED: (),
    GameStatus.CANCELLED: (),
}


def can_transition(from_status, to_status) -> bool:
    return GameStatus(to_status) in GAME_TRANSITIONS[GameStatus(from_status)]


class GameLifecycleManager:
    def __init__(
        self,
        session,
        question_bank=None,
        scoring_policy: Optional[ScoringPolicy] = None,
        limits: Optional[GameLimits] = None,
        require_teams_ready: bool = False,
        rng=None,
    ):
        self.session = session
        self.limits = limits or GameLimits()
        self.require_teams_ready = require_teams_ready
        self.teams = TeamMembershipManager(session)
        self.rounds = RoundProgressionController(session)
        self.questions = QuestionAllocator(session, question_bank or SqlQuestionBank(session), rng=rng)
        self.scoring = AnswerScoringEngine(session, scoring_policy or FlatRateScoring())
        self.summaries = GameSummaryAggregator(session)
        self._pending_signals = []

    @classmethod
    def from_config(cls, session, config: Mapping[str, Any], question_bank=None, rng=None) -> 'GameLifecycleManager':
        return cls(
            session,
            question_bank=question_bank,
            scoring_policy=FlatRateScoring(int(config.get('POINTS_PER_CORRECT_ANSWER', 10))),
            limits=GameLimits.from_config(config),
            require_teams_ready=bool(config.get('REQUIRE_TEAMS_READY_TO_START', False)),
            rng=rng,
        )

    # -- plumbing ---------------------------------------------------------

    @contextmanager
    def _unit_of_work(self, operation: str):
        self._pending_signals = []
        try:
            yield
            self.session.commit()
        except TriviaError as exc:
            self.session.rollback()
            self._pending_signals = []
            logger.info(f"[{operation}] rejected: {exc.code} {exc.message}")
            raise
        except SQLAlchemyError as exc:
            self.session.rollback()
            self._pending_signals = []
            logger.error(f"[{operation}] storage failure: {exc}")
            raise StorageError(operation, exc) from exc
        except Exception as exc:
            # e.g. a question bank timeout; nothing from the operation may stay pending.
            self.session.rollback()
            self._pending_signals = []
            logger.error(f"[{operation}] failed: {exc!r}")
            raise StorageError(operation, exc) from exc

        pending, self._pending_signals = self._pending_signals, []
        for signal, sender, kwargs in pending:
            signal.send(sender, **kwargs)

    def _emit(self, signal, sender, **kwargs) -> None:
        self._pending_signals.append((signal, sender, kwargs))

    def _get(self, model, resource: str, resource_id):
        obj = self.session.get(model, resource_id)
        if obj is None:
            raise NotFoundError(resource, resource_id)
        return obj

    def _get_game(self, game_id: int, lock: bool = False) -> Game:
        query = self.session.query(Game).filter(Game.id == game_id)
        if lock:
            query = query.with_for_update()
        game = query.first()
        if game is None:
            raise NotFoundError('game', game_id)
        return game

    @staticmethod
    def _require_host(game: Game, caller_id: int, operation: str, resource: str = 'game', resource_id=None) -> None:
        if game.host_id != caller_id:
            raise UnauthorizedError(operation, resource, resource_id if resource_id is not None else game.id)

    def _set_game_status(self, game: Game, to_status: GameStatus) -> None:
        from_status = game.status
        if not can_transition(from_status, to_status):
            raise InvalidTransitionError('game', game.id, from_status, to_status.value)
        game.status = to_status.value
        self._emit(signals.game_status_changed, game, from_status=from_status, to_status=to_status.value)

    # -- game configuration -------------------------------------------------

    def create_game(self, host_id: int, config: Mapping[str, Any]) -> Game:
        with self._unit_of_work('create_game'):
            values = validate_game_config(config, self.limits)
            self._get(User, 'host', host_id)
            categories = values.pop('selected_categories')
            game = Game(host_id=host_id, status=GameStatus.SETUP.value, archived=False, **values)
            game.categories = categories
            self.session.add(game)
            self.session.flush()
            self.rounds.create_rounds(game)
            self._emit(signals.game_status_changed, game, from_status=None, to_status=GameStatus.SETUP.value)
            logger.info(f"[create_game] host={host_id} game={game.id} rounds={game.total_rounds}")
        return game

    def update_game(self, caller_id: int, game_id: int, changes: Mapping[str, Any]) -> Game:
        with self._unit_of_work('update_game'):
            game = self._get_game(game_id, lock=True)
            self._require_host(game, caller_id, 'update_game')
            if game.status != GameStatus.SETUP:
                raise NotEditableError('game', game.id, game.status, 'update')

            merged = {field: getattr(game, field) for field in GAME_FIELDS if field != 'selected_categories'}
            merged['selected_categories'] = game.categories
            merged.update(changes)
            values = validate_game_config(merged, self.limits)

            team_count = len(game.teams)
            largest_roster = max((len(team.players) for team in game.teams), default=0)
            errors = {}
            if values['max_teams'] < team_count:
                errors['max_teams'] = [f'max_teams cannot be lower than the {team_count} existing teams']
            if values['max_players_per_team'] < largest_roster:
                errors['max_players_per_team'] = [
                    f'max_players_per_team cannot be lower than the largest roster ({largest_roster} players)'
                ]
            if errors:
                raise ConfigurationValidationError(errors)

            rounds_changed = values['total_rounds'] != game.total_rounds
            game.categories = values.pop('selected_categories')
            for field, value in values.items():
                setattr(game, field, value)
            self.session.flush()
            if rounds_changed:
                self.rounds.rebuild_rounds(game)
            logger.info(f"[update_game] game={game.id} fields={sorted(changes)}")
        return game

    def update_round(self, caller_id: int, round_id: int, custom_categories=None, questions_per_round=None) -> Round:
        with self._unit_of_work('update_round'):
            rnd = self._get(Round, 'round', round_id)
            self._require_host(rnd.game, caller_id, 'update_round', 'round', rnd.id)
            categories, count = validate_round_overrides(custom_categories, questions_per_round, self.limits)
            self.rounds.set_overrides(rnd, categories, count)
        return rnd

    def archive_game(self, caller_id: int, game_id: int) -> Game:
        with self._unit_of_work('archive_game'):
            game = self._get_game(game_id)
            self._require_host(game, caller_id, 'archive_game')
            game.archived = True
            logger.info(f"[archive_game] game={game.id} status={game.status}")
        return game

    def delete_game(self, caller_id: int, game_id: int) -> None:
        with self._unit_of_work('delete_game'):
            game = self._get_game(game_id, lock=True)
            self._require_host(game, caller_id, 'delete_game')
            team_count = self.teams.team_count(game.id)
            if game.status != GameStatus.SETUP or team_count:
                raise NotDeletableError(game.id, game.status, team_count)
            self.session.delete(game)
            logger.info(f"[delete_game] game={game_id}")

    # -- game progression ---------------------------------------------------

    def start_game(self, caller_id: int, game_id: int) -> Game:
        with self._unit_of_work('start_game'):
            game = self._get_game(game_id)
            self._require_host(game, caller_id, 'start_game')
            from_status = game.status
            started_at = utcnow()
            # The conditional flip is the start token: at most one caller wins it.
            result = self.session.execute(
                update(Game)
                .where(Game.id == game.id, Game.status == GameStatus.SETUP.value)
                .values(status=GameStatus.IN_PROGRESS.value, start_time=started_at, updated_at=started_at)
                .execution_options(synchronize_session=False)
            )
            self.session.refresh(game)
            if result.rowcount != 1:
                raise InvalidTransitionError('game', game.id, game.status, GameStatus.IN_PROGRESS.value)

            if self.require_teams_ready:
                readiness = self.teams.game_readiness(game)
                if not readiness['ready']:
                    raise TeamsNotReadyError(game.id, [t for t in readiness['teams'] if not t['ready']])

            allocated = 0
            for categories, entries in self.rounds.questions_needed(game).items():
                needed = sum(count for _, count in entries)
                selected = self.questions.allocate(game.host_id, categories, needed)
                offset = 0
                for rnd, count in entries:
                    self.rounds.assign_questions(rnd, [q.id for q in selected[offset:offset + count]])
                    offset += count
                allocated += needed

            first_round = game.rounds[0]
            self.rounds.start_round(first_round)
            self._emit(signals.game_status_changed, game, from_status=from_status, to_status=game.status)
            self._emit(
                signals.round_status_changed, first_round,
                from_status='pending', to_status=first_round.status,
            )
            logger.info(f"[start_game] game={game.id} rounds={len(game.rounds)} questions={allocated}")
        return game

    def _round_for_host(self, caller_id: int, round_id: int, operation: str) -> Round:
        rnd = self._get(Round, 'round', round_id)
        game = self._get_game(rnd.game_id, lock=True)
        self._require_host(game, caller_id, operation, 'round', rnd.id)
        if game.status != GameStatus.IN_PROGRESS:
            raise GameStateError(game.id, game.status, operation)
        return rnd

    def start_round(self, caller_id: int, round_id: int) -> Round:
        with self._unit_of_work('start_round'):
            rnd = self._round_for_host(caller_id, round_id, 'start_round')
            from_status = rnd.status
            self.rounds.start_round(rnd)
            self._emit(signals.round_status_changed, rnd, from_status=from_status, to_status=rnd.status)
        return rnd

    def complete_round(self, caller_id: int, round_id: int) -> Round:
        with self._unit_of_work('complete_round'):
            rnd = self._round_for_host(caller_id, round_id, 'complete_round')
            from_status = rnd.status
            self.rounds.complete_round(rnd)
            self._emit(signals.round_status_changed, rnd, from_status=from_status, to_status=rnd.status)
        return rnd

    def complete_game(self, caller_id: int, game_id: int) -> Dict[str, Any]:
        with self._unit_of_work('complete_game'):
            game = self._get_game(game_id, lock=True)
            self._require_host(game, caller_id, 'complete_game')
            if game.status != GameStatus.IN_PROGRESS:
                raise InvalidTransitionError('game', game.id, game.status, GameStatus.COMPLETED.value)
            unfinished = self.rounds.unfinished_rounds(game)
            if unfinished:
                raise RoundsNotFinishedError(game.id, unfinished)
            self._set_game_status(game, GameStatus.COMPLETED)
            game.end_time = utcnow()
            summary = self.summaries.summarize(game)
            logger.info(f"[complete_game] game={game.id}")
        return summary

    def cancel_game(self, caller_id: int, game_id: int) -> Game:
        with self._unit_of_work('cancel_game'):
            game = self._get_game(game_id, lock=True)
            self._require_host(game, caller_id, 'cancel_game')
            self._set_game_status(game, GameStatus.CANCELLED)
            if game.start_time is not None:
                game.end_time = utcnow()
            logger.info(f"[cancel_game] game={game.id}")
        return game

    # -- teams ----------------------------------------------------------------

    def create_team(self, caller_id: int, game_id: int, name, color=None) -> Team:
        with self._unit_of_work('create_team'):
            game = self._get_game(game_id)
            self._require_host(game, caller_id, 'create_team')
            team = self.teams.create_team(game, name, color)
            self._emit(signals.team_roster_changed, team, action='created', player_id=None)
        return team

    def update_team(self, caller_id: int, team_id: int, name=None, color=None) -> Team:
        with self._unit_of_work('update_team'):
            team = self._get(Team, 'team', team_id)
            self._require_host(team.game, caller_id, 'update_team', 'team', team.id)
            self.teams.update_team(team, name, color)
            self._emit(signals.team_roster_changed, team, action='updated', player_id=None)
        return team

    def delete_team(self, caller_id: int, team_id: int) -> None:
        with self._unit_of_work('delete_team'):
            team = self._get(Team, 'team', team_id)
            self._require_host(team.game, caller_id, 'delete_team', 'team', team.id)
            self.teams.delete_team(team)
            self._emit(signals.team_roster_changed, team, action='deleted', player_id=None)

    def join_team(self, caller_id: int, team_id: int, player_id: Optional[int] = None) -> TeamPlayer:
        player_id = caller_id if player_id is None else player_id
        with self._unit_of_work('join_team'):
            team = self._get(Team, 'team', team_id)
            game = team.game
            if caller_id != game.host_id:
                if player_id != caller_id or not game.self_registration_enabled:
                    raise UnauthorizedError('join_team', 'team', team.id)
            self._get(User, 'player', player_id)
            membership = self.teams.join_team(team, player_id)
            self._emit(signals.team_roster_changed, team, action='joined', player_id=player_id)
        return membership

    def assign_players(self, caller_id: int, team_id: int, player_ids: Sequence[int]) -> List[TeamPlayer]:
        """Host adds several players to a team at once; either every player joins or none do."""
        with self._unit_of_work('assign_players'):
            team = self._get(Team, 'team', team_id)
            self._require_host(team.game, caller_id, 'assign_players', 'team', team.id)
            memberships = []
            for player_id in dict.fromkeys(player_ids):
                self._get(User, 'player', player_id)
                memberships.append(self.teams.join_team(team, player_id))
                self._emit(signals.team_roster_changed, team, action='joined', player_id=player_id)
            logger.info(f"[assign_players] team={team.id} players={len(memberships)}")
        return memberships

    def leave_team(self, caller_id: int, team_id: int, player_id: Optional[int] = None) -> bool:
        player_id = caller_id if player_id is None else player_id
        with self._unit_of_work('leave_team'):
            team = self._get(Team, 'team', team_id)
            if caller_id not in (player_id, team.game.host_id):
                raise UnauthorizedError('leave_team', 'team', team.id)
            removed = self.teams.leave_team(team, player_id)
            if removed:
                self._emit(signals.team_roster_changed, team, action='left', player_id=player_id)
        return removed

    # -- play -------------------------------------------------------------------

    def submit_answer(self, caller_id: int, team_id: int, round_question_id: int, answer) -> TeamAnswer:
        with self._unit_of_work('submit_answer'):
            team = self._get(Team, 'team', team_id)
            round_question = self._get(RoundQuestion, 'round_question', round_question_id)
            team_answer = self.scoring.submit_answer(team, round_question, answer, caller_id)
            self._emit(
                signals.answer_submitted, team_answer,
                team_id=team.id, points_earned=team_answer.points_earned,
            )
        return team_answer

    def replace_question(self, caller_id: int, round_question_id: int) -> RoundQuestion:
        with self._unit_of_work('replace_question'):
            round_question = self._get(RoundQuestion, 'round_question', round_question_id)
            game = round_question.round.game
            self._require_host(game, caller_id, 'replace_question', 'round_question', round_question.id)
            if game.status not in (GameStatus.SETUP, GameStatus.IN_PROGRESS):
                raise GameStateError(game.id, game.status, 'replace questions')
            self.questions.replace_question(round_question, game.host_id)
        return round_question

    def recalculate_team_score(self, caller_id: int, team_id: int) -> int:
        with self._unit_of_work('recalculate_team_score'):
            team = self._get(Team, 'team', team_id)
            self._require_host(team.game, caller_id, 'recalculate_team_score', 'team', team.id)
            score = self.scoring.recalculate_team_score(team)
        return score

    def mark_questions_used(self, caller_id: int, question_ids: Iterable[int]) -> int:
        with self._unit_of_work('mark_questions_used'):
            self._get(User, 'host', caller_id)
            inserted = self.questions.mark_questions_used(caller_id, question_ids)
        return inserted

    # -- queries ----------------------------------------------------------------

    def _require_participant(self, game: Game, caller_id: int, operation: str, resource: str, resource_id) -> None:
        if caller_id != game.host_id and self.teams.player_team(game.id, caller_id) is None:
            raise UnauthorizedError(operation, resource, resource_id)

    def get_game(self, game_id: int) -> Game:
        return self._get_game(game_id)

    def list_host_games(self, host_id: int, status: Optional[str] = None, archived: Optional[bool] = None) -> List[Game]:
        query = self.session.query(Game).filter(Game.host_id == host_id)
        if status is not None:
            statuses = [s.value for s in GameStatus]
            if status not in statuses:
                raise ConfigurationValidationError({'status': [f'status must be one of {statuses}']})
            query = query.filter(Game.status == status)
        if archived is not None:
            query = query.filter(Game.archived == archived)
        return query.order_by(Game.created_at.desc(), Game.id.desc()).all()

    def get_round_questions(self, caller_id: int, round_id: int) -> List[Dict[str, Any]]:
        """Questions of a round in play order.

        Players of the game see a round once it has started. Correct answers
        are shown to the host, and to players once the round is completed.
        """
        rnd = self._get(Round, 'round', round_id)
        game = rnd.game
        self._require_participant(game, caller_id, 'get_round_questions', 'round', rnd.id)
        is_host = caller_id == game.host_id
        if not is_host and rnd.status == RoundStatus.PENDING:
            raise RoundNotActiveError(rnd.id, rnd.status, 'view questions')
        reveal = is_host or rnd.status == RoundStatus.COMPLETED
        return [rq.to_dict(include_answer=reveal) for rq in self.rounds.round_questions(rnd)]

    def get_team_answers(self, caller_id: int, team_id: int, round_id: Optional[int] = None) -> List[TeamAnswer]:
        team = self._get(Team, 'team', team_id)
        if caller_id != team.game.host_id:
            member_of = self.teams.player_team(team.game_id, caller_id)
            if member_of is None or member_of.id != team.id:
                raise UnauthorizedError('get_team_answers', 'team', team.id)
        return self.scoring.team_answers(team.id, round_id)

    def get_round_answers(self, caller_id: int, round_id: int) -> List[TeamAnswer]:
        rnd = self._get(Round, 'round', round_id)
        self._require_host(rnd.game, caller_id, 'get_round_answers', 'round', rnd.id)
        return self.scoring.round_answers(rnd.id)

    def get_available_categories(self, host_id: int) -> List[Dict[str, Any]]:
        return self.questions.available_categories(host_id)

    def get_team(self, team_id: int) -> Team:
        return self._get(Team, 'team', team_id)

    def get_game_readiness(self, game_id: int) -> Dict[str, Any]:
        return self.teams.game_readiness(self._get_game(game_id))

    def get_team_stats(self, team_id: int) -> Dict[str, Any]:
        team = self._get(Team, 'team', team_id)
        return self.scoring.get_team_stats(team.id)

    def get_game_summary(self, game_id: int) -> Dict[str, Any]:
        return self.summaries.summarize(self._get_game(game_id))

    def get_current_round(self, game_id: int) -> Optional[Round]:
        return self.rounds.current_round(self._get_game(game_id))

    def get_available_questions_for_host(
        self, host_id: int, categories: Sequence[str], limit: Optional[int] = None
    ) -> List:
        return self.questions.get_available_questions(host_id, categories, limit)
