"""Team membership: team creation, rosters and readiness."""

import logging
from typing import Any, Dict, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from trivia.errors import (
    DuplicateNameError,
    NotEditableError,
    PlayerAlreadyAssignedError,
    TeamCapacityExceededError,
    TeamFullError,
)
from trivia.models import Game, GameStatus, Team, TeamPlayer
from trivia.services.validation import DEFAULT_TEAM_COLOR, validate_team_fields

logger = logging.getLogger(__name__)


class TeamMembershipManager:
    def __init__(self, session):
        self.session = session

    def _lock_game(self, game: Game) -> Game:
        return self.session.query(Game).filter(Game.id == game.id).with_for_update().one()

    def _lock_team(self, team: Team) -> Team:
        return self.session.query(Team).filter(Team.id == team.id).with_for_update().one()

    def team_count(self, game_id: int) -> int:
        return self.session.query(func.count(Team.id)).filter(Team.game_id == game_id).scalar() or 0

    def member_count(self, team_id: int) -> int:
        return self.session.query(func.count(TeamPlayer.id)).filter(TeamPlayer.team_id == team_id).scalar() or 0

    def player_team(self, game_id: int, player_id: int) -> Optional[Team]:
        return (
            self.session.query(Team)
            .join(TeamPlayer, TeamPlayer.team_id == Team.id)
            .filter(TeamPlayer.game_id == game_id, TeamPlayer.player_id == player_id)
            .first()
        )

    def _name_taken(self, game_id: int, name: str, exclude_team_id: Optional[int] = None) -> bool:
        query = self.session.query(Team.id).filter(Team.game_id == game_id, Team.name == name)
        if exclude_team_id is not None:
            query = query.filter(Team.id != exclude_team_id)
        return query.first() is not None

    def create_team(self, game: Game, name, color=None) -> Team:
        if game.status != GameStatus.SETUP:
            raise NotEditableError('game', game.id, game.status, 'create teams in')
        name, color = validate_team_fields(name, color)
        game = self._lock_game(game)

        current = self.team_count(game.id)
        if current >= game.max_teams:
            raise TeamCapacityExceededError(game.id, current, game.max_teams)
        if self._name_taken(game.id, name):
            raise DuplicateNameError(game.id, name)

        team = Team(game_id=game.id, name=name, display_color=color or DEFAULT_TEAM_COLOR, current_score=0)
        game_id = game.id
        self.session.add(team)
        try:
            self.session.flush()
        except IntegrityError as exc:
            raise DuplicateNameError(game_id, name) from exc
        logger.info(f"[create_team] game={game.id} team={team.id} name={name!r} teams={current + 1}/{game.max_teams}")
        return team

    def update_team(self, team: Team, name=None, color=None) -> Team:
        game = team.game
        if game.status not in (GameStatus.SETUP, GameStatus.IN_PROGRESS):
            raise NotEditableError('team', team.id, game.status, 'update')
        name, color = validate_team_fields(name, color, require_name=False)
        if name is not None and name != team.name:
            if self._name_taken(game.id, name, exclude_team_id=team.id):
                raise DuplicateNameError(game.id, name)
            team.name = name
        if color is not None:
            team.display_color = color
        game_id = game.id
        try:
            self.session.flush()
        except IntegrityError as exc:
            raise DuplicateNameError(game_id, name) from exc
        return team

    def delete_team(self, team: Team) -> None:
        game = team.game
        if game.status != GameStatus.SETUP:
            raise NotEditableError('team', team.id, game.status, 'delete')
        self.session.delete(team)
        self.session.flush()
        logger.info(f"[delete_team] game={game.id} team={team.id}")

    def join_team(self, team: Team, player_id: int) -> TeamPlayer:
        game = team.game
        if game.status != GameStatus.SETUP:
            raise NotEditableError('team', team.id, game.status, 'join')
        team = self._lock_team(team)

        existing = self.player_team(game.id, player_id)
        if existing is not None:
            raise PlayerAlreadyAssignedError(player_id, existing.id, game.id)
        members = self.member_count(team.id)
        if members >= game.max_players_per_team:
            raise TeamFullError(team.id, members, game.max_players_per_team)

        game_id = game.id
        membership = TeamPlayer(team_id=team.id, game_id=game_id, player_id=player_id)
        self.session.add(membership)
        try:
            self.session.flush()
        except IntegrityError as exc:
            # Lost a race with a concurrent join for the same player.
            raise PlayerAlreadyAssignedError(player_id, None, game_id) from exc
        logger.info(
            f"[join_team] game={game.id} team={team.id} player={player_id} "
            f"members={members + 1}/{game.max_players_per_team}"
        )
        return membership

    def leave_team(self, team: Team, player_id: int) -> bool:
        """Remove a player from the team. Returns False when they were not a member."""
        game = team.game
        if game.status != GameStatus.SETUP:
            raise NotEditableError('team', team.id, game.status, 'leave')
        membership = (
            self.session.query(TeamPlayer)
            .filter(TeamPlayer.team_id == team.id, TeamPlayer.player_id == player_id)
            .first()
        )
        if membership is None:
            return False
        self.session.delete(membership)
        self.session.flush()
        logger.info(f"[leave_team] game={game.id} team={team.id} player={player_id}")
        return True

    def team_readiness(self, team: Team, game: Optional[Game] = None) -> Dict[str, Any]:
        game = game or team.game
        members = self.member_count(team.id)
        return {
            'team_id': team.id,
            'name': team.name,
            'player_count': members,
            'min_players': game.min_players_per_team,
            'max_players': game.max_players_per_team,
            'ready': game.min_players_per_team <= members <= game.max_players_per_team,
        }

    def game_readiness(self, game: Game) -> Dict[str, Any]:
        teams = [self.team_readiness(team, game) for team in game.teams]
        return {
            'game_id': game.id,
            'team_count': len(teams),
            'teams': teams,
            'ready': bool(teams) and all(t['ready'] for t in teams),
        }
