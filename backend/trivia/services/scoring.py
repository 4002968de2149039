"""Answer scoring and per-team statistics."""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import case, func, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from trivia.errors import (
    DuplicateAnswerError,
    GameStateError,
    RoundNotActiveError,
    UnauthorizedError,
)
from trivia.models import GameStatus, RoundQuestion, RoundStatus, Team, TeamAnswer, TeamPlayer
from trivia.services.validation import validate_answer_label

logger = logging.getLogger(__name__)


class ScoringPolicy:
    """Decides how many points an answer earns. Must never return a negative value."""

    def points_for(self, round_question: RoundQuestion, is_correct: bool) -> int:
        raise NotImplementedError


class FlatRateScoring(ScoringPolicy):
    def __init__(self, points_per_correct_answer: int = 10):
        self.points_per_correct_answer = points_per_correct_answer

    def points_for(self, round_question, is_correct):
        return self.points_per_correct_answer if is_correct else 0


def _accuracy(correct: int, total: int) -> float:
    return (correct / total) * 100 if total else 0


class AnswerScoringEngine:
    def __init__(self, session, scoring_policy: ScoringPolicy = None):
        self.session = session
        self.scoring_policy = scoring_policy or FlatRateScoring()

    def _already_answered(self, team_id: int, round_question_id: int) -> bool:
        return (
            self.session.query(TeamAnswer.id)
            .filter(TeamAnswer.team_id == team_id, TeamAnswer.round_question_id == round_question_id)
            .first()
        ) is not None

    def _is_member(self, team_id: int, player_id: int) -> bool:
        return (
            self.session.query(TeamPlayer.id)
            .filter(TeamPlayer.team_id == team_id, TeamPlayer.player_id == player_id)
            .first()
        ) is not None

    def submit_answer(self, team: Team, round_question: RoundQuestion, answer, player_id: int) -> TeamAnswer:
        label = validate_answer_label(answer)
        rnd = round_question.round
        game = team.game

        if rnd.game_id != team.game_id:
            raise UnauthorizedError('submit_answer', 'round_question', round_question.id)
        if not self._is_member(team.id, player_id):
            raise UnauthorizedError('submit_answer', 'team', team.id)
        if game.status != GameStatus.IN_PROGRESS:
            raise GameStateError(game.id, game.status, 'submit answers')
        if rnd.status != RoundStatus.IN_PROGRESS:
            raise RoundNotActiveError(rnd.id, rnd.status)
        if self._already_answered(team.id, round_question.id):
            raise DuplicateAnswerError(team.id, round_question.id)

        is_correct = label == round_question.question.correct_label
        points = max(int(self.scoring_policy.points_for(round_question, is_correct)), 0)
        team_answer = TeamAnswer(
            team_id=team.id,
            round_question_id=round_question.id,
            submitted_by=player_id,
            answer=label,
            is_correct=is_correct,
            points_earned=points,
        )
        # A failed flush expires every instance, so keep the ids for the error.
        team_id, round_question_id = team.id, round_question.id
        self.session.add(team_answer)
        try:
            self.session.flush()
        except IntegrityError as exc:
            raise DuplicateAnswerError(team_id, round_question_id) from exc

        if points:
            self._increment_score(team, points)
        logger.info(
            f"[submit_answer] team={team.id} round_question={round_question.id} "
            f"answer={label} correct={is_correct} points={points}"
        )
        return team_answer

    def _increment_score(self, team: Team, points: int) -> None:
        # The cached score can always be rebuilt from TeamAnswer rows.
        try:
            with self.session.begin_nested():
                self.session.execute(
                    update(Team)
                    .where(Team.id == team.id)
                    .values(current_score=Team.current_score + points)
                    .execution_options(synchronize_session='fetch')
                )
        except SQLAlchemyError as exc:
            logger.warning(f"[score-increment-failed] team={team.id} points={points} error={exc}")

    def get_team_stats(self, team_id: int) -> Dict[str, Any]:
        total, correct, points = (
            self.session.query(
                func.count(TeamAnswer.id),
                func.coalesce(func.sum(case((TeamAnswer.is_correct.is_(True), 1), else_=0)), 0),
                func.coalesce(func.sum(TeamAnswer.points_earned), 0),
            )
            .filter(TeamAnswer.team_id == team_id)
            .one()
        )
        return {
            'team_id': team_id,
            'total_answers': total,
            'correct_answers': int(correct),
            'accuracy_percentage': _accuracy(int(correct), total),
            'total_points': int(points),
        }

    def team_answers(self, team_id: int, round_id: Optional[int] = None) -> List[TeamAnswer]:
        query = (
            self.session.query(TeamAnswer)
            .join(RoundQuestion, RoundQuestion.id == TeamAnswer.round_question_id)
            .filter(TeamAnswer.team_id == team_id)
        )
        if round_id is not None:
            query = query.filter(RoundQuestion.round_id == round_id)
        return query.order_by(RoundQuestion.round_id, RoundQuestion.question_order).all()

    def round_answers(self, round_id: int) -> List[TeamAnswer]:
        return (
            self.session.query(TeamAnswer)
            .join(RoundQuestion, RoundQuestion.id == TeamAnswer.round_question_id)
            .filter(RoundQuestion.round_id == round_id)
            .order_by(RoundQuestion.question_order, TeamAnswer.team_id)
            .all()
        )

    def recalculate_team_score(self, team: Team) -> int:
        total = (
            self.session.query(func.coalesce(func.sum(TeamAnswer.points_earned), 0))
            .filter(TeamAnswer.team_id == team.id)
            .scalar()
        )
        team.current_score = int(total)
        self.session.flush()
        logger.info(f"[recalculate_score] team={team.id} score={team.current_score}")
        return team.current_score
