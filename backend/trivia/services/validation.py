"""Validation of host-supplied game, round and team configuration.

Each validator collects every problem before raising, so a single
ConfigurationValidationError reports all offending fields at once.
"""

import re
from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Mapping, Optional

from trivia.errors import ConfigurationValidationError
from trivia.models import ANSWER_LABELS

HEX_COLOR = re.compile(r'^#[0-9A-Fa-f]{6}$')
DEFAULT_TEAM_COLOR = '#3B82F6'

GAME_FIELDS = (
    'title', 'location', 'scheduled_date', 'total_rounds', 'questions_per_round',
    'selected_categories', 'max_teams', 'max_players_per_team', 'min_players_per_team',
    'self_registration_enabled',
)

GAME_DEFAULTS = {
    'location': None,
    'scheduled_date': None,
    'max_teams': 20,
    'max_players_per_team': 4,
    'min_players_per_team': 1,
    'self_registration_enabled': True,
}


@dataclass(frozen=True)
class GameLimits:
    max_total_rounds: int = 10
    max_questions_per_round: int = 20
    max_teams: int = 20
    max_players_per_team: int = 8
    max_categories: int = 6

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> 'GameLimits':
        return cls(
            max_total_rounds=int(config.get('MAX_TOTAL_ROUNDS', 10)),
            max_questions_per_round=int(config.get('MAX_QUESTIONS_PER_ROUND', 20)),
            max_teams=int(config.get('MAX_TEAMS_LIMIT', 20)),
            max_players_per_team=int(config.get('MAX_PLAYERS_PER_TEAM_LIMIT', 8)),
            max_categories=int(config.get('MAX_CATEGORIES', 6)),
        )


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _check_int(errors, field, value, minimum, maximum):
    if not _is_int(value):
        errors[field].append(f'{field} must be a whole number')
        return False
    if value < minimum:
        errors[field].append(f'{field} must be at least {minimum}')
        return False
    if value > maximum:
        errors[field].append(f'{field} must not exceed {maximum}')
        return False
    return True


def _clean_categories(errors, field, value, limit) -> List[str]:
    if not isinstance(value, (list, tuple, set)):
        errors[field].append('categories must be a list of names')
        return []
    cleaned = []
    for item in value:
        if not isinstance(item, str) or not item.strip():
            errors[field].append('category names must be non-empty strings')
            continue
        name = item.strip()
        if name not in cleaned:
            cleaned.append(name)
    if not cleaned and not errors[field]:
        errors[field].append('at least one category must be selected')
    if len(cleaned) > limit:
        errors[field].append(f'at most {limit} categories can be selected')
    return cleaned


def _parse_date(errors, value) -> Optional[date]:
    if value is None or value == '':
        return None
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value)
        except ValueError:
            pass
    errors['scheduled_date'].append('scheduled_date must be an ISO date (YYYY-MM-DD)')
    return None


def validate_game_config(config: Mapping[str, Any], limits: GameLimits = GameLimits()) -> Dict[str, Any]:
    """Validate a full game configuration and return the normalized values."""
    errors = defaultdict(list)
    unknown = sorted(set(config) - set(GAME_FIELDS))
    for field in unknown:
        errors[field].append('unknown field')

    merged = dict(GAME_DEFAULTS)
    merged.update({k: v for k, v in config.items() if k in GAME_FIELDS})
    result: Dict[str, Any] = {}

    title = merged.get('title')
    if not isinstance(title, str) or not title.strip():
        errors['title'].append('title is required')
    elif len(title.strip()) > 100:
        errors['title'].append('title must not exceed 100 characters')
    else:
        result['title'] = title.strip()

    location = merged.get('location')
    if location is not None:
        if not isinstance(location, str):
            errors['location'].append('location must be text')
        elif len(location.strip()) > 200:
            errors['location'].append('location must not exceed 200 characters')
    result['location'] = (location.strip() or None) if isinstance(location, str) else None

    result['scheduled_date'] = _parse_date(errors, merged.get('scheduled_date'))

    for field, maximum in (
        ('total_rounds', limits.max_total_rounds),
        ('questions_per_round', limits.max_questions_per_round),
        ('max_teams', limits.max_teams),
        ('max_players_per_team', limits.max_players_per_team),
        ('min_players_per_team', limits.max_players_per_team),
    ):
        if field not in merged:
            errors[field].append(f'{field} is required')
        elif _check_int(errors, field, merged[field], 1, maximum):
            result[field] = merged[field]

    if 'min_players_per_team' in result and 'max_players_per_team' in result:
        if result['min_players_per_team'] > result['max_players_per_team']:
            errors['min_players_per_team'].append(
                'minimum players per team must not exceed maximum players per team'
            )

    result['selected_categories'] = _clean_categories(
        errors, 'selected_categories', merged.get('selected_categories'), limits.max_categories
    )

    registration = merged.get('self_registration_enabled')
    if not isinstance(registration, bool):
        errors['self_registration_enabled'].append('self_registration_enabled must be true or false')
    else:
        result['self_registration_enabled'] = registration

    if errors:
        raise ConfigurationValidationError(dict(errors))
    return result


def validate_round_overrides(custom_categories, questions_per_round, limits: GameLimits = GameLimits()):
    errors = defaultdict(list)
    categories = None
    if custom_categories is not None:
        categories = _clean_categories(errors, 'custom_categories', custom_categories, limits.max_categories)
    if questions_per_round is not None:
        _check_int(errors, 'questions_per_round', questions_per_round, 1, limits.max_questions_per_round)
    if errors:
        raise ConfigurationValidationError(dict(errors))
    return categories or None, questions_per_round


def validate_team_fields(name=None, color=None, require_name=True):
    errors = defaultdict(list)
    clean_name = None
    if name is None:
        if require_name:
            errors['name'].append('team name is required')
    elif not isinstance(name, str) or not name.strip():
        errors['name'].append('team name is required')
    elif len(name.strip()) > 50:
        errors['name'].append('team name must not exceed 50 characters')
    else:
        clean_name = name.strip()

    if color is not None and (not isinstance(color, str) or not HEX_COLOR.match(color)):
        errors['display_color'].append('display_color must be a hex color such as #FF5733')

    if errors:
        raise ConfigurationValidationError(dict(errors))
    return clean_name, color


def validate_answer_label(answer) -> str:
    label = answer.strip().upper() if isinstance(answer, str) else None
    if label not in ANSWER_LABELS:
        raise ConfigurationValidationError({'answer': [f"answer must be one of {', '.join(ANSWER_LABELS)}"]})
    return label
