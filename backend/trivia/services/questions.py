"""Question allocation: pick bank questions a host has never been served."""

import logging
import random
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set

from sqlalchemy import func, insert
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from trivia.errors import (
    ConfigurationValidationError,
    InsufficientQuestionsError,
    NotEditableError,
    NotFoundError,
)
from trivia.models import HostUsedQuestion, Question, RoundQuestion, RoundStatus, User
from trivia.utils import utcnow

logger = logging.getLogger(__name__)


class SqlQuestionBank:
    """Question bank backed by the ``question`` table."""

    def __init__(self, session):
        self.session = session

    def fetch_by_categories(self, categories: Iterable[str], excluded_ids: Iterable[int] = ()) -> List[Question]:
        categories = list(categories)
        if not categories:
            return []
        query = self.session.query(Question).filter(Question.category.in_(categories))
        excluded_ids = list(excluded_ids)
        if excluded_ids:
            query = query.filter(Question.id.notin_(excluded_ids))
        return query.order_by(Question.id).all()

    def category_counts(self) -> Dict[str, int]:
        rows = (
            self.session.query(Question.category, func.count(Question.id))
            .group_by(Question.category)
            .order_by(Question.category)
            .all()
        )
        return {category: count for category, count in rows}


class QuestionAllocator:
    def __init__(self, session, question_bank, rng: Optional[random.Random] = None):
        self.session = session
        self.question_bank = question_bank
        self.rng = rng or random.Random()

    def used_question_ids(self, host_id: int) -> Set[int]:
        rows = self.session.query(HostUsedQuestion.question_id).filter(HostUsedQuestion.host_id == host_id).all()
        return {row[0] for row in rows}

    def _used_in_categories(self, host_id: int, categories: Sequence[str]) -> int:
        return (
            self.session.query(func.count(HostUsedQuestion.id))
            .join(Question, Question.id == HostUsedQuestion.question_id)
            .filter(HostUsedQuestion.host_id == host_id, Question.category.in_(list(categories)))
            .scalar()
        ) or 0

    def _lock_host(self, host_id: int) -> None:
        # Serializes allocations for one host; a no-op on SQLite.
        host = self.session.query(User).filter(User.id == host_id).with_for_update().first()
        if host is None:
            raise NotFoundError('host', host_id)

    def _candidates(self, host_id: int, categories: Sequence[str]) -> List[Question]:
        used = self.used_question_ids(host_id)
        return [q for q in self.question_bank.fetch_by_categories(categories, used) if q.id not in used]

    def get_available_questions(self, host_id: int, categories: Sequence[str], limit: Optional[int] = None) -> List[Question]:
        if limit is not None and limit < 0:
            raise ConfigurationValidationError({'limit': ['limit must be zero or greater']})
        candidates = self._candidates(host_id, categories)
        self.rng.shuffle(candidates)
        return candidates[:limit] if limit is not None else candidates

    def available_categories(self, host_id: int) -> List[Dict[str, Any]]:
        used = dict(
            self.session.query(Question.category, func.count(HostUsedQuestion.id))
            .join(HostUsedQuestion, HostUsedQuestion.question_id == Question.id)
            .filter(HostUsedQuestion.host_id == host_id)
            .group_by(Question.category)
            .all()
        )
        return [
            {'category': category, 'total': total, 'available': total - used.get(category, 0)}
            for category, total in self.question_bank.category_counts().items()
        ]

    def allocate(self, host_id: int, categories: Sequence[str], count: int) -> List[Question]:
        """Select ``count`` unused questions at random and mark them used for the host.

        Nothing is written unless the full count can be satisfied.
        """
        if count <= 0:
            return []
        categories = list(categories)
        self._lock_host(host_id)
        candidates = self._candidates(host_id, categories)
        if len(candidates) < count:
            duplicates = self._used_in_categories(host_id, categories)
            logger.info(
                f"[allocate-short] host={host_id} categories={categories} needed={count} available={len(candidates)}"
            )
            raise InsufficientQuestionsError(categories, count, len(candidates), duplicates)

        selected = self.rng.sample(candidates, count)
        inserted = self.mark_questions_used(host_id, [q.id for q in selected])
        if inserted != len(selected):
            # Another allocation for this host claimed some of the same questions.
            lost = len(selected) - inserted
            raise InsufficientQuestionsError(
                categories, count, len(candidates) - lost, self._used_in_categories(host_id, categories)
            )
        logger.info(f"[allocate] host={host_id} categories={categories} count={count} pool={len(candidates)}")
        return selected

    def mark_questions_used(self, host_id: int, question_ids: Iterable[int]) -> int:
        """Record (host, question) usage pairs as one batch.

        Pairs that already exist are skipped, so repeating a call is harmless.
        Returns the number of newly recorded pairs.
        """
        ids = list(dict.fromkeys(question_ids))
        if not ids:
            return 0
        known = {row[0] for row in self.session.query(Question.id).filter(Question.id.in_(ids)).all()}
        unknown = [qid for qid in ids if qid not in known]
        if unknown:
            raise ConfigurationValidationError({'question_ids': [f'unknown question ids: {unknown}']})
        now = utcnow()
        table = HostUsedQuestion.__table__
        dialect = self.session.get_bind().dialect.name
        if dialect in ('postgresql', 'sqlite'):
            dialect_insert = pg_insert if dialect == 'postgresql' else sqlite_insert
            rows = [{'host_id': host_id, 'question_id': qid, 'used_at': now} for qid in ids]
            stmt = dialect_insert(table).values(rows).on_conflict_do_nothing(
                index_elements=['host_id', 'question_id']
            )
        else:
            existing = self.used_question_ids(host_id)
            rows = [{'host_id': host_id, 'question_id': qid, 'used_at': now} for qid in ids if qid not in existing]
            if not rows:
                return 0
            stmt = insert(table).values(rows)
        result = self.session.execute(stmt)
        inserted = max(result.rowcount or 0, 0)
        logger.debug(f"[mark-used] host={host_id} requested={len(ids)} inserted={inserted}")
        return inserted

    def replace_question(self, round_question: RoundQuestion, host_id: int) -> RoundQuestion:
        """Swap the assigned question for a fresh one of the same category.

        The assignment keeps its id and position; only pending rounds can change.
        """
        rnd = round_question.round
        if rnd.status != RoundStatus.PENDING:
            raise NotEditableError('round', rnd.id, rnd.status, 'replace questions in')

        current = round_question.question
        self._lock_host(host_id)
        candidates = [q for q in self._candidates(host_id, [current.category]) if q.id != current.id]
        if not candidates:
            raise InsufficientQuestionsError(
                [current.category], 1, 0, self._used_in_categories(host_id, [current.category])
            )

        replacement = self.rng.choice(candidates)
        self.mark_questions_used(host_id, [replacement.id])
        old_question_id = round_question.question_id
        round_question.question_id = replacement.id
        round_question.question = replacement
        self.session.flush()
        logger.info(
            f"[replace-question] round_question={round_question.id} old={old_question_id} new={replacement.id}"
        )
        return round_question
