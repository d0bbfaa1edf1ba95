"""
Team and player administration, including the multi-step deletes.

The store has no foreign-key cascades, so dependents are removed before the
entity itself, step by step. Each step is checked; the first failing step
stops the sequence and is reported by name. Steps already applied stay
applied.
"""
import logging

from league.errors import AssignmentFailed, CleanupFailed, Conflict, InvalidArgument, LeagueError
from league.models import Team

logger = logging.getLogger(__name__)


def _run_steps(subject, steps):
    """Run ``(name, callable)`` steps in order. Returns {step name: result}."""
    results = {}
    for name, step in steps:
        try:
            results[name] = step()
        except LeagueError as e:
            logger.error(f'{subject}: step "{name}" failed: {e.message}')
            raise CleanupFailed(name, e)
        logger.info(f'{subject}: step "{name}" done ({results[name]})')
    return results


def create_team(store, name, university='', group_label=None):
    for field, value in (('name', name), ('university', university), ('groupLabel', group_label)):
        if value is not None and not isinstance(value, str):
            raise InvalidArgument(f'{field} must be a string')
    name = (name or '').strip()
    if not name:
        raise InvalidArgument('Team name is required')
    existing = {t['name'].lower() for t in store.list('teams')}
    if name.lower() in existing:
        raise Conflict(f'Team "{name}" already exists')
    row = store.insert('teams', Team(name, (university or '').strip(), group_label or None).to_dict())
    logger.info(f'Team {row["id"]} created: {name}')
    return row


def delete_team(store, team_id):
    """
    Delete a team and everything that points at it.

    Order: unassign its players, delete goals of its matches, delete its
    matches, delete the team.

    Returns: {'unassign_players': n, 'delete_goals': n, 'delete_matches': n,
              'delete_team': None}
    """
    store.get('teams', team_id)

    def delete_goals():
        matches = store.list('matches', {'home_team_id': team_id}) + \
            store.list('matches', {'away_team_id': team_id})
        match_ids = [m['id'] for m in matches]
        if not match_ids:
            return 0
        return store.delete_where('goals', {'match_id': match_ids})

    def delete_matches():
        return (store.delete_where('matches', {'home_team_id': team_id}) +
                store.delete_where('matches', {'away_team_id': team_id}))

    return _run_steps(f'Delete team {team_id}', [
        ('unassign_players', lambda: store.update_where('players', {'team_id': team_id}, {'team_id': None})),
        ('delete_goals', delete_goals),
        ('delete_matches', delete_matches),
        ('delete_team', lambda: store.delete('teams', team_id)),
    ])


def delete_player(store, player_id):
    """Delete a player's goals, then the player."""
    store.get('players', player_id)
    return _run_steps(f'Delete player {player_id}', [
        ('delete_goals', lambda: store.delete_where('goals', {'player_id': player_id})),
        ('delete_player', lambda: store.delete('players', player_id)),
    ])


def delete_match(store, match_id):
    """Delete a match's goals, then the match."""
    store.get('matches', match_id)
    return _run_steps(f'Delete match {match_id}', [
        ('delete_goals', lambda: store.delete_where('goals', {'match_id': match_id})),
        ('delete_match', lambda: store.delete('matches', match_id)),
    ])


def assign_players(store, updates):
    """
    Point each player at a team (or at no team with ``team_id`` None).

    Args:
        updates: [{'id': player_id, 'team_id': team_id or None}, ...]
                 Entries without an id are skipped.

    Updates are applied in order; the first failure stops the rest and is
    raised as AssignmentFailed. Returns the updated player rows.
    """
    if not isinstance(updates, list):
        raise InvalidArgument('Invalid payload: updates must be a list')

    applied = []
    for index, update in enumerate(updates):
        if not isinstance(update, dict) or not update.get('id'):
            continue
        player_id = update['id']
        team_id = update.get('team_id') or None
        try:
            if team_id is not None:
                store.get('teams', team_id)
            applied.append(store.update('players', player_id, {'team_id': team_id}))
        except LeagueError as e:
            logger.error(f'Player assignment {index} ({player_id}) failed: {e.message}')
            raise AssignmentFailed(index, player_id, len(applied), e)

    logger.info(f'Reassigned {len(applied)} player(s)')
    return applied
