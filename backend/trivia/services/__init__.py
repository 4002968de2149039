"""Game orchestration services.

Components take the SQLAlchemy session (and, for allocation, a question bank)
as constructor arguments. ``GameLifecycleManager`` composes them and owns the
transaction boundary.
"""

from trivia.services.lifecycle import GameLifecycleManager
from trivia.services.questions import QuestionAllocator, SqlQuestionBank

__all__ = ['GameLifecycleManager', 'QuestionAllocator', 'SqlQuestionBank']
