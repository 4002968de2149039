"""Round progression: round creation, question assignment and round status."""

import logging
from collections import OrderedDict
from typing import Dict, List, Optional, Sequence, Tuple

from trivia.errors import InvalidTransitionError, NotEditableError
from trivia.models import Game, GameStatus, Round, RoundQuestion, RoundStatus
from trivia.utils import dump_json_list, utcnow

logger = logging.getLogger(__name__)

# categories (sorted) -> [(round, question count), ...]; fewest categories first
AllocationPlan = Dict[Tuple[str, ...], List[Tuple[Round, int]]]


class RoundProgressionController:
    def __init__(self, session):
        self.session = session

    def create_rounds(self, game: Game) -> List[Round]:
        rounds = [
            Round(game=game, round_number=number, status=RoundStatus.PENDING.value)
            for number in range(1, game.total_rounds + 1)
        ]
        self.session.add_all(rounds)
        self.session.flush()
        logger.debug(f"[create_rounds] game={game.id} rounds={len(rounds)}")
        return rounds

    def rebuild_rounds(self, game: Game) -> List[Round]:
        """Replace a setup game's rounds so they match ``total_rounds``.

        Existing overrides are kept for round numbers that survive.
        """
        if game.status != GameStatus.SETUP:
            raise NotEditableError('game', game.id, game.status, 'rebuild rounds of')
        existing = {rnd.round_number: rnd for rnd in game.rounds}
        for number, rnd in list(existing.items()):
            if number > game.total_rounds:
                game.rounds.remove(rnd)
        self.session.flush()
        for number in range(1, game.total_rounds + 1):
            if number not in existing:
                game.rounds.append(Round(round_number=number, status=RoundStatus.PENDING.value))
        self.session.flush()
        logger.info(f"[rebuild_rounds] game={game.id} rounds={game.total_rounds}")
        return list(game.rounds)

    def set_overrides(self, rnd: Round, custom_categories: Optional[Sequence[str]], questions_per_round: Optional[int]) -> Round:
        if rnd.game.status != GameStatus.SETUP:
            raise NotEditableError('round', rnd.id, rnd.game.status, 'configure')
        rnd.custom_categories = dump_json_list(custom_categories) if custom_categories else None
        rnd.questions_per_round = questions_per_round
        self.session.flush()
        return rnd

    def questions_needed(self, game: Game) -> AllocationPlan:
        """Group the game's rounds by category set.

        Rounds drawing from the same categories share one allocation, so a
        shortfall is reported against their combined need. Narrower category
        sets come first so a broader pool cannot use up the only questions a
        narrower one can take; ties keep round order.
        """
        groups = OrderedDict()
        for rnd in game.rounds:
            key = tuple(sorted(rnd.categories))
            groups.setdefault(key, []).append((rnd, rnd.question_count))
        return OrderedDict(sorted(groups.items(), key=lambda item: len(item[0])))

    def assign_questions(self, rnd: Round, question_ids: Sequence[int]) -> List[RoundQuestion]:
        if rnd.questions:
            raise NotEditableError('round', rnd.id, rnd.status, 'reassign questions of')
        assigned = [
            RoundQuestion(round_id=rnd.id, question_id=qid, question_order=order)
            for order, qid in enumerate(question_ids, start=1)
        ]
        rnd.questions.extend(assigned)
        self.session.flush()
        return assigned

    def start_round(self, rnd: Round) -> Round:
        if rnd.status != RoundStatus.PENDING:
            raise InvalidTransitionError('round', rnd.id, rnd.status, RoundStatus.IN_PROGRESS.value)
        active = self.current_round(rnd.game)
        if active is not None and active.id != rnd.id:
            raise InvalidTransitionError('round', rnd.id, rnd.status, RoundStatus.IN_PROGRESS.value)
        rnd.status = RoundStatus.IN_PROGRESS.value
        rnd.start_time = utcnow()
        self.session.flush()
        logger.info(f"[start_round] game={rnd.game_id} round={rnd.round_number}")
        return rnd

    def complete_round(self, rnd: Round) -> Round:
        if rnd.status != RoundStatus.IN_PROGRESS:
            raise InvalidTransitionError('round', rnd.id, rnd.status, RoundStatus.COMPLETED.value)
        rnd.status = RoundStatus.COMPLETED.value
        rnd.end_time = utcnow()
        self.session.flush()
        logger.info(f"[complete_round] game={rnd.game_id} round={rnd.round_number}")
        return rnd

    def current_round(self, game: Game) -> Optional[Round]:
        return (
            self.session.query(Round)
            .filter(Round.game_id == game.id, Round.status == RoundStatus.IN_PROGRESS.value)
            .order_by(Round.round_number)
            .first()
        )

    def unfinished_rounds(self, game: Game) -> List[int]:
        return [rnd.round_number for rnd in game.rounds if rnd.status != RoundStatus.COMPLETED]

    def round_questions(self, rnd: Round) -> List[RoundQuestion]:
        return (
            self.session.query(RoundQuestion)
            .filter(RoundQuestion.round_id == rnd.id)
            .order_by(RoundQuestion.question_order)
            .all()
        )
