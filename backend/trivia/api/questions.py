from flask import Blueprint, jsonify, request
from flask_login import login_required, current_user

from trivia.api import json_body, lifecycle_manager
from trivia.errors import ConfigurationValidationError


questions = Blueprint('questions', __name__)


@questions.route('/available', methods=['GET'])
@login_required
def available_questions():
    categories = [c for c in request.args.getlist('category') if c.strip()]
    if not categories:
        raise ConfigurationValidationError({'category': ['at least one category is required']})
    limit = request.args.get('limit', type=int)
    found = lifecycle_manager().get_available_questions_for_host(current_user.id, categories, limit)
    # The host previews prompts; answers stay hidden
    return jsonify({'questions': [q.to_dict() for q in found], 'count': len(found)})


@questions.route('/categories', methods=['GET'])
@login_required
def categories():
    return jsonify({'categories': lifecycle_manager().get_available_categories(current_user.id)})


@questions.route('/used', methods=['POST'])
@login_required
def mark_used():
    question_ids = json_body().get('question_ids')
    if not isinstance(question_ids, list) or not all(isinstance(q, int) for q in question_ids):
        raise ConfigurationValidationError({'question_ids': ['question_ids must be a list of integers']})
    inserted = lifecycle_manager().mark_questions_used(current_user.id, question_ids)
    return jsonify({'inserted': inserted})
