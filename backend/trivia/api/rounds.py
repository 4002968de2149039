from flask import Blueprint, jsonify
from flask_login import login_required, current_user

from trivia.api import json_body, lifecycle_manager
from trivia.errors import ConfigurationValidationError


rounds = Blueprint('rounds', __name__)


@rounds.route('/rounds/<int:round_id>', methods=['PATCH'])
@login_required
def update_round(round_id):
    data = json_body()
    rnd = lifecycle_manager().update_round(
        current_user.id, round_id, data.get('custom_categories'), data.get('questions_per_round')
    )
    return jsonify(rnd.to_dict())


@rounds.route('/rounds/<int:round_id>/start', methods=['POST'])
@login_required
def start_round(round_id):
    rnd = lifecycle_manager().start_round(current_user.id, round_id)
    return jsonify(rnd.to_dict(include_questions=True))


@rounds.route('/rounds/<int:round_id>/complete', methods=['POST'])
@login_required
def complete_round(round_id):
    rnd = lifecycle_manager().complete_round(current_user.id, round_id)
    return jsonify(rnd.to_dict())


@rounds.route('/round-questions/<int:round_question_id>/answers', methods=['POST'])
@login_required
def submit_answer(round_question_id):
    data = json_body()
    if not isinstance(data.get('team_id'), int):
        raise ConfigurationValidationError({'team_id': ['team_id is required']})
    team_answer = lifecycle_manager().submit_answer(
        current_user.id, data.get('team_id'), round_question_id, data.get('answer')
    )
    return jsonify(team_answer.to_dict()), 201


@rounds.route('/round-questions/<int:round_question_id>/replace', methods=['POST'])
@login_required
def replace_question(round_question_id):
    round_question = lifecycle_manager().replace_question(current_user.id, round_question_id)
    return jsonify(round_question.to_dict())


@rounds.route('/rounds/<int:round_id>/questions', methods=['GET'])
@login_required
def round_questions(round_id):
    found = lifecycle_manager().get_round_questions(current_user.id, round_id)
    return jsonify({'questions': found, 'count': len(found)})


@rounds.route('/rounds/<int:round_id>/answers', methods=['GET'])
@login_required
def round_answers(round_id):
    answers = lifecycle_manager().get_round_answers(current_user.id, round_id)
    return jsonify({'answers': [a.to_dict() for a in answers]})
