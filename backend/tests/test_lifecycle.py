import random

import pytest
from sqlalchemy.exc import OperationalError

from trivia import db, signals
from trivia.errors import (
    ConfigurationValidationError,
    InsufficientQuestionsError,
    InvalidTransitionError,
    NotDeletableError,
    NotEditableError,
    NotFoundError,
    RoundsNotFinishedError,
    StorageError,
    TeamsNotReadyError,
    UnauthorizedError,
)
from trivia.models import Game, GameStatus, HostUsedQuestion, RoundQuestion, RoundStatus, Team
from trivia.services import GameLifecycleManager
from trivia.services.summary import GameSummaryAggregator
from trivia.services.teams import TeamMembershipManager


def test_create_game_reports_every_invalid_field(manager, users):
    with pytest.raises(ConfigurationValidationError) as excinfo:
        manager.create_game(users['host'], {
            'title': '',
            'total_rounds': 0,
            'questions_per_round': 50,
            'selected_categories': [],
            'max_teams': 4,
            'max_players_per_team': 2,
            'min_players_per_team': 3,
            'colour': 'red',
        })
    assert set(excinfo.value.fields) == {
        'title', 'total_rounds', 'questions_per_round', 'selected_categories',
        'min_players_per_team', 'colour',
    }
    assert Game.query.count() == 0


def test_create_game_defaults(make_game, users):
    game = make_game(selected_categories=['science', 'science', 'history'])
    assert game.status == GameStatus.SETUP
    assert game.host_id == users['host']
    assert game.categories == ['science', 'history']
    assert game.archived is False
    assert game.self_registration_enabled is True


def test_start_game_with_too_few_questions_rolls_back(manager, make_game, users, add_questions):
    add_questions('science', 5)
    game = make_game(total_rounds=2, questions_per_round=3, selected_categories=['science'])
    manager.create_team(users['host'], game.id, 'Owls')

    with pytest.raises(InsufficientQuestionsError) as excinfo:
        manager.start_game(users['host'], game.id)
    assert excinfo.value.needed == 6
    assert excinfo.value.available == 5

    game = db.session.get(Game, game.id)
    assert game.status == GameStatus.SETUP
    assert game.start_time is None
    assert all(r.status == RoundStatus.PENDING for r in game.rounds)
    assert RoundQuestion.query.count() == 0
    assert HostUsedQuestion.query.count() == 0


def test_start_game(manager, running_game, users):
    game = manager.get_game(running_game['game_id'])
    assert game.status == GameStatus.IN_PROGRESS
    assert game.start_time is not None
    assert HostUsedQuestion.query.filter_by(host_id=users['host']).count() == 6
    with pytest.raises(InvalidTransitionError) as excinfo:
        manager.start_game(users['host'], game.id)
    assert excinfo.value.from_status == 'in_progress'


def test_start_game_requires_ready_teams_when_configured(flask_app, make_game, users, add_questions):
    add_questions('science', 6)
    strict = GameLifecycleManager(db.session, require_teams_ready=True, rng=random.Random(3))
    game = make_game(min_players_per_team=2)
    team = strict.create_team(users['host'], game.id, 'Owls')
    strict.join_team(users['alice'], team.id)

    with pytest.raises(TeamsNotReadyError) as excinfo:
        strict.start_game(users['host'], game.id)
    assert excinfo.value.details['teams'][0]['player_count'] == 1
    assert db.session.get(Game, game.id).status == GameStatus.SETUP

    strict.join_team(users['bob'], team.id)
    assert strict.start_game(users['host'], game.id).status == GameStatus.IN_PROGRESS


def test_unready_teams_do_not_block_start_by_default(manager, make_game, users, add_questions):
    add_questions('science', 6)
    game = make_game(min_players_per_team=2)
    manager.create_team(users['host'], game.id, 'Owls')
    assert manager.start_game(users['host'], game.id).status == GameStatus.IN_PROGRESS


def test_delete_with_team_fails_but_archive_succeeds(manager, make_game, users):
    game = make_game()
    team = manager.create_team(users['host'], game.id, 'Owls')
    manager.join_team(users['alice'], team.id)

    with pytest.raises(NotDeletableError) as excinfo:
        manager.delete_game(users['host'], game.id)
    assert 'archive' in excinfo.value.message
    assert excinfo.value.details['suggestion'] == 'archive'

    archived = manager.archive_game(users['host'], game.id)
    assert archived.archived is True
    assert archived.status == GameStatus.SETUP
    assert [t.name for t in archived.teams] == ['Owls']
    assert len(archived.teams[0].players) == 1


def test_delete_empty_setup_game(manager, make_game, users):
    game = make_game()
    game_id = game.id
    manager.delete_game(users['host'], game_id)
    assert db.session.get(Game, game_id) is None
    with pytest.raises(NotFoundError):
        manager.get_game(game_id)


def test_complete_game_requires_finished_rounds(manager, running_game, users):
    game_id = running_game['game_id']
    first, second = manager.get_game(game_id).rounds
    for question, label in zip(first.questions, ['A', 'A', 'B']):
        manager.submit_answer(users['alice'], running_game['owls_id'], question.id, label)
    manager.submit_answer(users['bob'], running_game['foxes_id'], first.questions[0].id, 'D')
    manager.complete_round(users['host'], first.id)
    manager.start_round(users['host'], second.id)

    with pytest.raises(RoundsNotFinishedError) as excinfo:
        manager.complete_game(users['host'], game_id)
    assert excinfo.value.details['unfinished_rounds'] == [2]
    assert manager.get_game(game_id).status == GameStatus.IN_PROGRESS

    manager.complete_round(users['host'], second.id)
    summary = manager.complete_game(users['host'], game_id)

    overall = summary['overall']
    assert overall['total_questions'] == 4
    assert overall['total_correct_answers'] == 2
    assert overall['average_accuracy'] == pytest.approx(2 / 4 * 100)
    game = manager.get_game(game_id)
    assert game.status == GameStatus.COMPLETED
    assert game.end_time is not None


def test_terminal_games_reject_changes(manager, running_game, users):
    game_id = running_game['game_id']
    game = manager.cancel_game(users['host'], game_id)
    assert game.status == GameStatus.CANCELLED
    assert game.end_time is not None

    with pytest.raises(InvalidTransitionError):
        manager.cancel_game(users['host'], game_id)
    with pytest.raises(InvalidTransitionError):
        manager.complete_game(users['host'], game_id)
    with pytest.raises(NotEditableError):
        manager.update_game(users['host'], game_id, {'title': 'Renamed'})
    # Archiving is always allowed
    assert manager.archive_game(users['host'], game_id).archived is True


def test_cancel_setup_game_has_no_end_time(manager, make_game, users):
    game = manager.cancel_game(users['host'], make_game().id)
    assert game.status == GameStatus.CANCELLED
    assert game.end_time is None


def test_host_only_operations(manager, make_game, users):
    game = make_game()
    for operation in (manager.start_game, manager.cancel_game, manager.archive_game, manager.delete_game):
        with pytest.raises(UnauthorizedError):
            operation(users['other_host'], game.id)
    with pytest.raises(UnauthorizedError):
        manager.update_game(users['alice'], game.id, {'title': 'Mine now'})


def test_update_game_revalidates(manager, make_game, users):
    game = make_game()
    team = manager.create_team(users['host'], game.id, 'Owls')
    manager.create_team(users['host'], game.id, 'Foxes')
    manager.join_team(users['alice'], team.id)
    manager.join_team(users['bob'], team.id)

    with pytest.raises(ConfigurationValidationError) as excinfo:
        manager.update_game(users['host'], game.id, {'max_teams': 1, 'max_players_per_team': 1})
    assert set(excinfo.value.fields) == {'max_teams', 'max_players_per_team'}

    updated = manager.update_game(users['host'], game.id, {'title': ' Friday Quiz ', 'location': 'The Crown'})
    assert updated.title == 'Friday Quiz'
    assert updated.location == 'The Crown'
    assert updated.max_teams == 4


def test_storage_failure_is_wrapped_and_rolled_back(manager, make_game, users, monkeypatch):
    game = make_game()

    def lost_connection(self, *args, **kwargs):
        raise OperationalError('INSERT INTO team', {}, Exception('server closed the connection'))

    monkeypatch.setattr(TeamMembershipManager, 'create_team', lost_connection)
    with pytest.raises(StorageError) as excinfo:
        manager.create_team(users['host'], game.id, 'Owls')
    assert excinfo.value.details['operation'] == 'create_team'
    assert isinstance(excinfo.value.cause, OperationalError)
    assert Team.query.count() == 0


def test_status_signals_sent_after_commit(manager, make_game, users, add_questions):
    add_questions('science', 6)
    game = make_game()
    received = []

    def on_status(sender, **kwargs):
        received.append((sender.id, kwargs['from_status'], kwargs['to_status']))

    with signals.game_status_changed.connected_to(on_status):
        manager.start_game(users['host'], game.id)
        with pytest.raises(InvalidTransitionError):
            manager.start_game(users['host'], game.id)
    assert received == [(game.id, 'setup', 'in_progress')]


def test_roster_signals(manager, make_game, users):
    game = make_game()
    team = manager.create_team(users['host'], game.id, 'Owls')
    actions = []

    def on_roster(sender, **kwargs):
        actions.append((kwargs['action'], kwargs['player_id']))

    with signals.team_roster_changed.connected_to(on_roster):
        manager.join_team(users['alice'], team.id)
        manager.leave_team(users['alice'], team.id)
        manager.leave_team(users['alice'], team.id)
    assert actions == [('joined', users['alice']), ('left', users['alice'])]


def test_mark_questions_used_through_manager(manager, users, add_questions):
    ids = add_questions('history', 2)
    assert manager.mark_questions_used(users['host'], ids) == 2
    assert manager.mark_questions_used(users['host'], ids) == 0
    assert manager.get_available_questions_for_host(users['host'], ['history']) == []


class UnreachableQuestionBank:
    def fetch_by_categories(self, categories, excluded_ids=()):
        raise TimeoutError('question bank did not answer')


def test_question_bank_failure_leaves_game_in_setup(flask_app, make_game, users, add_questions):
    add_questions('science', 6)
    game = make_game()
    unreachable = GameLifecycleManager(db.session, question_bank=UnreachableQuestionBank())

    with pytest.raises(StorageError) as excinfo:
        unreachable.start_game(users['host'], game.id)
    assert excinfo.value.details['operation'] == 'start_game'
    assert isinstance(excinfo.value.cause, TimeoutError)

    # The next unit of work must not commit anything left over from the failed start
    make_game(title='Friday Quiz')
    game = db.session.get(Game, game.id)
    assert game.status == GameStatus.SETUP
    assert game.start_time is None
    assert RoundQuestion.query.count() == 0
    assert HostUsedQuestion.query.count() == 0


@pytest.mark.parametrize('seed', range(5))
def test_narrow_round_keeps_the_questions_it_needs(flask_app, make_game, users, add_questions, seed):
    science = set(add_questions('science', 3))
    history = set(add_questions('history', 3))
    seeded = GameLifecycleManager(db.session, rng=random.Random(seed))
    game = make_game(selected_categories=['science', 'history'])
    seeded.update_round(users['host'], game.rounds[1].id, custom_categories=['science'])

    seeded.start_game(users['host'], game.id)

    first, second = seeded.get_game(game.id).rounds
    assert {rq.question_id for rq in second.questions} == science
    assert {rq.question_id for rq in first.questions} == history


def test_complete_game_summary_failure_rolls_back(manager, running_game, users, monkeypatch):
    game_id = running_game['game_id']
    first, second = manager.get_game(game_id).rounds
    manager.complete_round(users['host'], first.id)
    manager.start_round(users['host'], second.id)
    manager.complete_round(users['host'], second.id)

    def lost_connection(self, game):
        raise OperationalError('SELECT team_answer', {}, Exception('server closed the connection'))

    monkeypatch.setattr(GameSummaryAggregator, 'summarize', lost_connection)
    with pytest.raises(StorageError) as excinfo:
        manager.complete_game(users['host'], game_id)
    assert excinfo.value.details['operation'] == 'complete_game'
    game = db.session.get(Game, game_id)
    assert game.status == GameStatus.IN_PROGRESS
    assert game.end_time is None


def test_list_host_games_filters(manager, make_game, users):
    first = make_game(title='First')
    second = make_game(title='Second')
    make_game(host='other_host', title='Not mine')
    manager.archive_game(users['host'], first.id)
    manager.cancel_game(users['host'], second.id)

    assert {g.title for g in manager.list_host_games(users['host'])} == {'First', 'Second'}
    assert [g.title for g in manager.list_host_games(users['host'], archived=False)] == ['Second']
    assert [g.title for g in manager.list_host_games(users['host'], archived=True)] == ['First']
    assert [g.title for g in manager.list_host_games(users['host'], status='cancelled')] == ['Second']
    with pytest.raises(ConfigurationValidationError) as excinfo:
        manager.list_host_games(users['host'], status='paused')
    assert excinfo.value.fields == ['status']
