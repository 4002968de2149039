from flask import Blueprint, jsonify, current_app, request
from flask_login import login_required, current_user

from trivia.api import json_body, lifecycle_manager
from trivia.errors import ConfigurationValidationError


games = Blueprint('games', __name__)


@games.route('', methods=['GET'])
@login_required
def list_games():
    archived = request.args.get('archived')
    if archived is not None:
        if archived.lower() not in ('true', 'false'):
            raise ConfigurationValidationError({'archived': ['archived must be true or false']})
        archived = archived.lower() == 'true'
    found = lifecycle_manager().list_host_games(current_user.id, request.args.get('status'), archived)
    return jsonify({'games': [g.to_dict() for g in found], 'count': len(found)})


@games.route('', methods=['POST'])
@login_required
def create_game():
    game = lifecycle_manager().create_game(current_user.id, json_body())
    current_app.logger.info(f"[api:create_game] host={current_user.id} game={game.id}")
    return jsonify(game.to_dict(include_rounds=True)), 201


@games.route('/<int:game_id>', methods=['GET'])
@login_required
def get_game(game_id):
    game = lifecycle_manager().get_game(game_id)
    return jsonify(game.to_dict(include_teams=True, include_rounds=True))


@games.route('/<int:game_id>', methods=['PATCH'])
@login_required
def update_game(game_id):
    game = lifecycle_manager().update_game(current_user.id, game_id, json_body())
    return jsonify(game.to_dict(include_rounds=True))


@games.route('/<int:game_id>', methods=['DELETE'])
@login_required
def delete_game(game_id):
    lifecycle_manager().delete_game(current_user.id, game_id)
    return jsonify({'success': True})


@games.route('/<int:game_id>/archive', methods=['POST'])
@login_required
def archive_game(game_id):
    game = lifecycle_manager().archive_game(current_user.id, game_id)
    return jsonify(game.to_dict())


@games.route('/<int:game_id>/start', methods=['POST'])
@login_required
def start_game(game_id):
    game = lifecycle_manager().start_game(current_user.id, game_id)
    current_app.logger.info(f"[api:start_game] game={game.id}")
    return jsonify(game.to_dict(include_teams=True, include_rounds=True))


@games.route('/<int:game_id>/complete', methods=['POST'])
@login_required
def complete_game(game_id):
    summary = lifecycle_manager().complete_game(current_user.id, game_id)
    return jsonify(summary)


@games.route('/<int:game_id>/cancel', methods=['POST'])
@login_required
def cancel_game(game_id):
    game = lifecycle_manager().cancel_game(current_user.id, game_id)
    return jsonify(game.to_dict())


@games.route('/<int:game_id>/readiness', methods=['GET'])
@login_required
def game_readiness(game_id):
    return jsonify(lifecycle_manager().get_game_readiness(game_id))


@games.route('/<int:game_id>/summary', methods=['GET'])
@login_required
def game_summary(game_id):
    return jsonify(lifecycle_manager().get_game_summary(game_id))


@games.route('/<int:game_id>/teams', methods=['POST'])
@login_required
def create_team(game_id):
    data = json_body()
    team = lifecycle_manager().create_team(current_user.id, game_id, data.get('name'), data.get('display_color'))
    return jsonify(team.to_dict(include_players=True)), 201


@games.route('/<int:game_id>/current-round', methods=['GET'])
@login_required
def current_round(game_id):
    rnd = lifecycle_manager().get_current_round(game_id)
    return jsonify({'round': rnd.to_dict() if rnd is not None else None})
