"""Typed failures raised by the trivia core.

Every error carries a stable ``code``, the HTTP status the API layer should
answer with, and a ``details`` mapping with the ids, counts and field names a
caller needs to render an actionable message.
"""

from typing import Any, Dict, Iterable, List, Optional


class TriviaError(Exception):
    """Base class for every expected, caller-recoverable failure."""

    code = 'TRIVIA_ERROR'
    http_status = 400

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = details

    def to_dict(self) -> Dict[str, Any]:
        return {
            'error': self.message,
            'code': self.code,
            'details': self.details,
        }


class ConfigurationValidationError(TriviaError):
    code = 'CONFIGURATION_VALIDATION'
    http_status = 400

    def __init__(self, validation_errors: Dict[str, List[str]]):
        summary = '; '.join(
            f"{field}: {', '.join(messages)}" for field, messages in validation_errors.items()
        )
        super().__init__(f'Configuration validation failed: {summary}', validation_errors=validation_errors)
        self.validation_errors = validation_errors

    @property
    def fields(self) -> List[str]:
        return list(self.validation_errors)


class CapacityExceededError(TriviaError):
    code = 'CAPACITY_EXCEEDED'
    http_status = 409


class TeamCapacityExceededError(CapacityExceededError):
    code = 'TEAM_CAPACITY_EXCEEDED'

    def __init__(self, game_id: int, current_teams: int, max_teams: int):
        super().__init__(
            f'Cannot create team: {current_teams} teams already exist (maximum: {max_teams})',
            game_id=game_id, current_teams=current_teams, max_teams=max_teams,
        )


class TeamFullError(CapacityExceededError):
    code = 'TEAM_FULL'

    def __init__(self, team_id: int, current_players: int, max_players: int):
        super().__init__(
            f'Team {team_id} is full ({current_players}/{max_players} players)',
            team_id=team_id, current_players=current_players, max_players=max_players,
        )


class DuplicateNameError(TriviaError):
    code = 'DUPLICATE_NAME'
    http_status = 409

    def __init__(self, game_id: int, name: str):
        super().__init__(f'A team named "{name}" already exists in game {game_id}', game_id=game_id, name=name)


class DuplicateAnswerError(TriviaError):
    code = 'DUPLICATE_ANSWER'
    http_status = 409

    def __init__(self, team_id: int, round_question_id: int):
        super().__init__(
            f'Team {team_id} already answered round question {round_question_id}',
            team_id=team_id, round_question_id=round_question_id,
        )


class PlayerAlreadyAssignedError(TriviaError):
    code = 'PLAYER_ALREADY_ASSIGNED'
    http_status = 409

    def __init__(self, player_id: int, existing_team_id: Optional[int], game_id: Optional[int] = None):
        super().__init__(
            f'Player {player_id} is already assigned to team {existing_team_id}',
            player_id=player_id, existing_team_id=existing_team_id, game_id=game_id,
        )


class InsufficientQuestionsError(TriviaError):
    code = 'INSUFFICIENT_QUESTIONS'
    http_status = 409

    def __init__(self, categories: Iterable[str], needed: int, available: int, duplicates: int = 0):
        categories = sorted(set(categories))
        category = ', '.join(categories)
        super().__init__(
            f'Insufficient questions in category {category}: need {needed}, '
            f'have {available} unique ({duplicates} duplicates available)',
            category=category, categories=categories, needed=needed,
            available=available, duplicates=duplicates,
        )
        self.category = category
        self.needed = needed
        self.available = available
        self.duplicates = duplicates


class InvalidTransitionError(TriviaError):
    code = 'INVALID_TRANSITION'
    http_status = 409

    def __init__(self, entity: str, entity_id: Optional[int], from_status: str, to_status: str):
        super().__init__(
            f'Cannot move {entity} {entity_id} from {from_status} to {to_status}',
            entity=entity, entity_id=entity_id, from_status=from_status, to_status=to_status,
        )
        self.from_status = from_status
        self.to_status = to_status


class RoundsNotFinishedError(TriviaError):
    code = 'ROUNDS_NOT_FINISHED'
    http_status = 409

    def __init__(self, game_id: int, unfinished_rounds: List[int]):
        rounds = ', '.join(str(n) for n in unfinished_rounds)
        super().__init__(
            f'Game {game_id} cannot be completed: rounds {rounds} are not completed',
            game_id=game_id, unfinished_rounds=unfinished_rounds,
        )


class NotDeletableError(TriviaError):
    code = 'NOT_DELETABLE'
    http_status = 409

    def __init__(self, game_id: int, status: str, team_count: int):
        super().__init__(
            f'Game {game_id} cannot be deleted (status={status}, teams={team_count}); archive it instead',
            game_id=game_id, status=status, team_count=team_count, suggestion='archive',
        )


class NotEditableError(TriviaError):
    code = 'NOT_EDITABLE'
    http_status = 409

    def __init__(self, resource: str, resource_id: Optional[int], status: str, operation: str):
        super().__init__(
            f'Cannot {operation} {resource} {resource_id} in {status} status',
            resource=resource, resource_id=resource_id, status=status, operation=operation,
        )


class RoundNotActiveError(TriviaError):
    code = 'ROUND_NOT_ACTIVE'
    http_status = 409

    def __init__(self, round_id: int, status: str, operation: str = 'submit answers'):
        super().__init__(
            f'Cannot {operation} while round {round_id} is {status}',
            round_id=round_id, status=status, operation=operation,
        )


class TeamsNotReadyError(TriviaError):
    code = 'TEAMS_NOT_READY'
    http_status = 409

    def __init__(self, game_id: int, teams: List[Dict[str, Any]]):
        super().__init__(
            f'Game {game_id} cannot start until every team is within its roster bounds',
            game_id=game_id, teams=teams,
        )


class GameStateError(TriviaError):
    code = 'GAME_STATE'
    http_status = 409

    def __init__(self, game_id: int, status: str, operation: str):
        super().__init__(
            f'Cannot {operation} while game {game_id} is {status}',
            game_id=game_id, status=status, operation=operation,
        )


class UnauthorizedError(TriviaError):
    code = 'UNAUTHORIZED'
    http_status = 403

    def __init__(self, operation: str, resource: str, resource_id: Optional[int]):
        super().__init__(
            f'Unauthorized to perform {operation} on {resource} {resource_id}',
            operation=operation, resource=resource, resource_id=resource_id,
        )


class NotFoundError(TriviaError):
    code = 'NOT_FOUND'
    http_status = 404

    def __init__(self, resource: str, resource_id: Any):
        super().__init__(f'{resource} {resource_id} not found', resource=resource, resource_id=resource_id)


class StorageError(TriviaError):
    """Wraps a persistence failure (timeout, lost connection, ...) for the caller."""

    code = 'STORAGE_ERROR'
    http_status = 503

    def __init__(self, operation: str, cause: BaseException):
        super().__init__(
            f'Storage failure during {operation}: {cause}',
            operation=operation, cause=type(cause).__name__,
        )
        self.cause = cause
