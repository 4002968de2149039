"""End-of-game summary, recomputed from stored answers."""

from collections import defaultdict
from typing import Any, Dict, List

from trivia.errors import GameStateError
from trivia.models import Game, GameStatus, RoundQuestion, TeamAnswer
from trivia.utils import format_timestamp


def _accuracy(correct, total):
    return (correct / total) * 100 if total else 0


def dense_rank(scores: List[int]) -> List[int]:
    """Rank scores highest first; ties share a rank and no rank is skipped."""
    distinct = sorted(set(scores), reverse=True)
    positions = {score: index + 1 for index, score in enumerate(distinct)}
    return [positions[score] for score in scores]


class GameSummaryAggregator:
    def __init__(self, session):
        self.session = session

    def _answers(self, game: Game):
        return (
            self.session.query(TeamAnswer, RoundQuestion.round_id)
            .join(RoundQuestion, RoundQuestion.id == TeamAnswer.round_question_id)
            .filter(TeamAnswer.team_id.in_([team.id for team in game.teams]))
            .all()
        )

    def summarize(self, game: Game) -> Dict[str, Any]:
        if game.status != GameStatus.COMPLETED:
            raise GameStateError(game.id, game.status, 'summarize')

        per_team = defaultdict(lambda: {'points': 0, 'correct': 0, 'answered': 0})
        per_round = defaultdict(lambda: defaultdict(lambda: {'points': 0, 'correct': 0}))
        if game.teams:
            for answer, round_id in self._answers(game):
                totals = per_team[answer.team_id]
                totals['points'] += answer.points_earned
                totals['answered'] += 1
                round_totals = per_round[round_id][answer.team_id]
                round_totals['points'] += answer.points_earned
                if answer.is_correct:
                    totals['correct'] += 1
                    round_totals['correct'] += 1

        teams = []
        for team in game.teams:
            totals = per_team[team.id]
            teams.append({
                'team_id': team.id,
                'name': team.name,
                'display_color': team.display_color,
                'total_score': totals['points'],
                'correct_answers': totals['correct'],
                'total_questions': totals['answered'],
                'accuracy_percentage': _accuracy(totals['correct'], totals['answered']),
            })
        for entry, rank in zip(teams, dense_rank([t['total_score'] for t in teams])):
            entry['rank'] = rank
        teams.sort(key=lambda t: (t['rank'], t['name']))

        rounds = []
        for rnd in game.rounds:
            rounds.append({
                'round_id': rnd.id,
                'round_number': rnd.round_number,
                'status': rnd.status,
                'team_scores': [
                    {
                        'team_id': team.id,
                        'round_score': per_round[rnd.id][team.id]['points'],
                        'correct_answers': per_round[rnd.id][team.id]['correct'],
                    }
                    for team in game.teams
                ],
            })

        total_answered = sum(t['total_questions'] for t in teams)
        total_correct = sum(t['correct_answers'] for t in teams)
        duration_ms = None
        if game.start_time and game.end_time:
            duration_ms = int((game.end_time - game.start_time).total_seconds() * 1000)

        return {
            'game_id': game.id,
            'title': game.title,
            'status': game.status,
            'start_time': format_timestamp(game.start_time),
            'end_time': format_timestamp(game.end_time),
            'teams': teams,
            'rounds': rounds,
            'overall': {
                'total_questions': total_answered,
                'total_correct_answers': total_correct,
                'average_accuracy': _accuracy(total_correct, total_answered),
                'duration_ms': duration_ms,
                'duration_seconds': duration_ms // 1000 if duration_ms is not None else None,
            },
        }
