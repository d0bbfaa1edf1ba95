"""
Match lifecycle: status transitions, score edits and the goal log.

Status only moves forward, UPCOMING -> LIVE -> DONE. Scores and goals are
kept independently: recording a goal never changes ``home_score`` or
``away_score``. ``reconcile_score`` is the explicit step that derives the
score from the goal log when an operator asks for it.
"""
import logging

from league.errors import Conflict, InvalidArgument
from league.models import (MATCH_STATUS_ORDER, Goal, Match, MatchStatus, normalize_timestamp,
                           parse_timestamp, utc_now)

logger = logging.getLogger(__name__)

# Fields update_match writes without going through a transition
PLAIN_MATCH_FIELDS = ('venue', 'starts_at', 'group_label')
MATCH_PATCH_FIELDS = PLAIN_MATCH_FIELDS + ('status', 'home_score', 'away_score')


def _validate_count(value, name):
    # bool is an int subclass; True is not a score
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidArgument(f'{name} must be a whole number', details={name: value})
    if value < 0:
        raise InvalidArgument(f'{name} must not be negative', details={name: value})
    return value


def _validate_status(value):
    if value not in MATCH_STATUS_ORDER:
        raise InvalidArgument(f'Unknown match status: {value}',
                              details={'allowed': MATCH_STATUS_ORDER})
    return value


def _check_transition(current, target) -> bool:
    """Return True if moving ``current`` -> ``target`` needs a write.

    Staying in place is a no-op. Raises Conflict on a backward move and on
    ending a match that never started.
    """
    if current == target:
        return False
    if MATCH_STATUS_ORDER.index(target) < MATCH_STATUS_ORDER.index(current):
        raise Conflict(f'Match status cannot go from {current} back to {target}')
    if current == MatchStatus.UPCOMING and target == MatchStatus.DONE:
        raise Conflict('Match must be started before it can be ended')
    return True


def create_match(store, home_team_id, away_team_id, starts_at, venue, group_label=None):
    """Schedule a new UPCOMING match with a 0-0 score."""
    if not home_team_id or not away_team_id or not starts_at or not venue:
        raise InvalidArgument('Missing required fields',
                              details={'required': ['homeTeamId', 'awayTeamId', 'startsAt', 'venue']})
    if not isinstance(venue, str) or (group_label is not None and not isinstance(group_label, str)):
        raise InvalidArgument('venue and groupLabel must be strings')
    if home_team_id == away_team_id:
        raise InvalidArgument('Home and away team must be different')
    try:
        starts_at = normalize_timestamp(starts_at)
    except ValueError:
        raise InvalidArgument(f'Invalid start time: {starts_at}')

    # Both teams must exist; raises NotFound
    store.get('teams', home_team_id)
    store.get('teams', away_team_id)

    match = Match(home_team_id, away_team_id, starts_at, venue, group_label=group_label or None)
    row = store.insert('matches', match.to_dict())
    logger.info(f'Match {row["id"]} scheduled: {home_team_id} vs {away_team_id} at {starts_at}')
    return row


def start_match(store, match_id):
    """UPCOMING -> LIVE. Starting a LIVE match again changes nothing."""
    match = store.get('matches', match_id)
    if not _check_transition(match['status'], MatchStatus.LIVE.value):
        return match
    row = store.update('matches', match_id, {'status': MatchStatus.LIVE.value})
    logger.info(f'Match {match_id} is LIVE')
    return row


def end_match(store, match_id):
    """LIVE -> DONE, keeping the last score. Ending a DONE match changes nothing."""
    match = store.get('matches', match_id)
    if not _check_transition(match['status'], MatchStatus.DONE.value):
        return match
    row = store.update('matches', match_id, {'status': MatchStatus.DONE.value})
    logger.info(f'Match {match_id} is DONE at {row["home_score"]}-{row["away_score"]}')
    return row


def update_score(store, match_id, home_score, away_score):
    """Overwrite both scores in one write. Only LIVE and DONE matches have a score."""
    _validate_count(home_score, 'home_score')
    _validate_count(away_score, 'away_score')

    match = store.get('matches', match_id)
    if match['status'] == MatchStatus.UPCOMING:
        raise Conflict('Score cannot be set before the match has started')

    row = store.update('matches', match_id, {'home_score': home_score, 'away_score': away_score})
    logger.info(f'Match {match_id} score set to {home_score}-{away_score}')
    return row


def record_goal(store, match_id, player_id, minute=0, own_goal=False):
    """Append a goal to the log. The match score is left untouched.

    The scorer must currently play for the home or the away team.
    """
    if not match_id or not player_id:
        raise InvalidArgument('Missing matchId or playerId')
    if minute is None:
        minute = 0
    _validate_count(minute, 'minute')
    if own_goal is None:
        own_goal = False
    if not isinstance(own_goal, bool):
        raise InvalidArgument('ownGoal must be true or false', details={'own_goal': own_goal})

    match = store.get('matches', match_id)
    player = store.get('players', player_id)
    if player.get('team_id') not in (match['home_team_id'], match['away_team_id']):
        raise InvalidArgument('Player is not on either team in this match',
                              details={'player_id': player_id, 'team_id': player.get('team_id')})

    row = store.insert('goals', Goal(match_id, player_id, minute, own_goal).to_dict())
    logger.info(f'Goal recorded for player {player_id} in match {match_id} at {minute}\'')
    return row


def update_match(store, match_id, patch):
    """
    Apply a partial update to a match.

    ``status`` moves follow the lifecycle rules, scores follow the
    ``update_score`` rules (checked against the status the patch leaves the
    match in), and venue/start time/group label are written as given. The
    whole patch is validated first and then written in a single update.
    """
    if not isinstance(patch, dict) or not patch:
        raise InvalidArgument('Patch must be a non-empty object')
    unknown = sorted(set(patch) - set(MATCH_PATCH_FIELDS))
    if unknown:
        raise InvalidArgument(f'Unknown match fields: {", ".join(unknown)}',
                              details={'allowed': list(MATCH_PATCH_FIELDS)})

    changes = {}
    if 'status' in patch:
        _validate_status(patch['status'])
    for name in ('home_score', 'away_score'):
        if name in patch:
            changes[name] = _validate_count(patch[name], name)
    if 'venue' in patch:
        if not patch['venue'] or not isinstance(patch['venue'], str):
            raise InvalidArgument('venue must be a non-empty string')
        changes['venue'] = patch['venue']
    if 'starts_at' in patch:
        try:
            changes['starts_at'] = normalize_timestamp(patch['starts_at'])
        except ValueError:
            raise InvalidArgument(f'Invalid start time: {patch["starts_at"]}')
    if 'group_label' in patch:
        changes['group_label'] = patch['group_label'] or None

    match = store.get('matches', match_id)
    status = match['status']
    if 'status' in patch and _check_transition(status, patch['status']):
        status = patch['status']
        changes['status'] = status
    if ('home_score' in changes or 'away_score' in changes) and status == MatchStatus.UPCOMING:
        raise Conflict('Score cannot be set before the match has started')

    if not changes:
        return match
    row = store.update('matches', match_id, changes)
    logger.info(f'Match {match_id} updated: {", ".join(sorted(changes))}')
    return row


def auto_start_due_matches(store, now=None):
    """Promote every UPCOMING match whose kick-off time has passed to LIVE.

    Returns the promoted rows.
    """
    now = now or utc_now()
    promoted = []
    for match in store.list('matches', {'status': MatchStatus.UPCOMING.value}):
        try:
            starts_at = parse_timestamp(match.get('starts_at'))
        except ValueError:
            logger.warning(f'Match {match["id"]} has an unreadable start time: {match.get("starts_at")!r}')
            continue
        if starts_at <= now:
            promoted.append(store.update('matches', match['id'], {'status': MatchStatus.LIVE.value}))
    if promoted:
        logger.info(f'Auto-started {len(promoted)} match(es)')
    return promoted


def score_from_goals(match, goals, players):
    """Derive (home_score, away_score, unattributed) from the goal log.

    A goal counts for the side of the scorer's current team, or for the other
    side when it is an own goal. Goals by players who have since moved to
    neither team are counted as unattributed and left out of the score.
    """
    team_of = {p['id']: p.get('team_id') for p in players}
    home = away = unattributed = 0

    for goal in goals:
        if goal.get('match_id') != match['id']:
            continue
        team_id = team_of.get(goal['player_id'])
        if team_id == match['home_team_id']:
            for_home = True
        elif team_id == match['away_team_id']:
            for_home = False
        else:
            unattributed += 1
            continue
        if goal.get('own_goal'):
            for_home = not for_home
        if for_home:
            home += 1
        else:
            away += 1

    return home, away, unattributed


def reconcile_score(store, match_id):
    """Overwrite the match score with the one derived from its goal log.

    Returns (updated match row, number of unattributed goals).
    """
    match = store.get('matches', match_id)
    goals = store.list('goals', {'match_id': match_id})
    players = store.list('players')
    home, away, unattributed = score_from_goals(match, goals, players)
    if unattributed:
        logger.warning(f'Match {match_id}: {unattributed} goal(s) by players outside both teams')
    row = update_score(store, match_id, home, away)
    return row, unattributed
