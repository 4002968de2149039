"""State-change notifications.

The core publishes on these signals after a change has been committed.
Fan-out to browsers or other observers is left to whoever connects to them.
"""

from blinker import Namespace

_signals = Namespace()

# sender: Game; kwargs: from_status, to_status
game_status_changed = _signals.signal('game-status-changed')

# sender: Round; kwargs: from_status, to_status
round_status_changed = _signals.signal('round-status-changed')

# sender: Team; kwargs: action ('created', 'updated', 'deleted', 'joined', 'left'), player_id
team_roster_changed = _signals.signal('team-roster-changed')

# sender: TeamAnswer; kwargs: team_id, points_earned
answer_submitted = _signals.signal('answer-submitted')
