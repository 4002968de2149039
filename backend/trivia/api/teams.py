from flask import Blueprint, jsonify, request
from flask_login import login_required, current_user

from trivia.api import json_body, lifecycle_manager
from trivia.errors import ConfigurationValidationError


teams = Blueprint('teams', __name__)


@teams.route('/<int:team_id>', methods=['PATCH'])
@login_required
def update_team(team_id):
    data = json_body()
    team = lifecycle_manager().update_team(current_user.id, team_id, data.get('name'), data.get('display_color'))
    return jsonify(team.to_dict(include_players=True))


@teams.route('/<int:team_id>', methods=['DELETE'])
@login_required
def delete_team(team_id):
    lifecycle_manager().delete_team(current_user.id, team_id)
    return jsonify({'success': True})


@teams.route('/<int:team_id>/players', methods=['POST'])
@login_required
def join_team(team_id):
    data = json_body()
    if 'player_ids' in data:
        player_ids = data['player_ids']
        if not isinstance(player_ids, list) or not player_ids or not all(isinstance(p, int) for p in player_ids):
            raise ConfigurationValidationError({'player_ids': ['player_ids must be a non-empty list of integers']})
        memberships = lifecycle_manager().assign_players(current_user.id, team_id, player_ids)
        return jsonify({'players': [m.to_dict() for m in memberships]}), 201

    # Without a player_id the caller joins themselves
    player_id = data.get('player_id')
    membership = lifecycle_manager().join_team(current_user.id, team_id, player_id)
    return jsonify(membership.to_dict()), 201


@teams.route('/<int:team_id>/players/<int:player_id>', methods=['DELETE'])
@login_required
def leave_team(team_id, player_id):
    removed = lifecycle_manager().leave_team(current_user.id, team_id, player_id)
    return jsonify({'success': True, 'removed': removed})


@teams.route('/<int:team_id>/stats', methods=['GET'])
@login_required
def team_stats(team_id):
    return jsonify(lifecycle_manager().get_team_stats(team_id))


@teams.route('/<int:team_id>/answers', methods=['GET'])
@login_required
def team_answers(team_id):
    answers = lifecycle_manager().get_team_answers(current_user.id, team_id, request.args.get('round_id', type=int))
    return jsonify({'answers': [a.to_dict() for a in answers]})
