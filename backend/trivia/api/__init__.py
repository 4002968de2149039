from flask import current_app, request

from trivia import db
from trivia.services import GameLifecycleManager


def lifecycle_manager() -> GameLifecycleManager:
    """Build the per-request manager around the request's session."""
    return GameLifecycleManager.from_config(db.session, current_app.config)


def json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}
