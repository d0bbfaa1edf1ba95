"""
Top-scorer table from the goal log.
"""
NO_TEAM = 'No Team'
UNKNOWN_PLAYER = 'Unknown Player'
DEFAULT_LIMIT = 10


def compute_top_scorers(goals, players, profiles, teams, limit=DEFAULT_LIMIT):
    """
    Count goals per scoring player.

    Every goal counts, whatever its match status, and own goals stay with
    the player recorded as scoring them.

    Returns: [{'player_id', 'player_name', 'team_name', 'goals'}, ...]
    sorted by goals (desc) -> player name -> player id, at most ``limit`` long.
    """
    if limit is None or limit <= 0:
        return []

    players_by_id = {p['id']: p for p in players}
    profiles_by_id = {p['id']: p for p in profiles}
    teams_by_id = {t['id']: t for t in teams}

    scorer_counts = {}
    for goal in goals:
        player_id = goal['player_id']
        if player_id in scorer_counts:
            scorer_counts[player_id]['goals'] += 1
            continue

        player = players_by_id.get(player_id) or {}
        profile = profiles_by_id.get(player.get('profile_id')) or {}
        team = teams_by_id.get(player.get('team_id'))
        scorer_counts[player_id] = {
            'player_id': player_id,
            'player_name': profile.get('full_name') or UNKNOWN_PLAYER,
            'team_name': team['name'] if team else NO_TEAM,
            'goals': 1,
        }

    ranked = sorted(
        scorer_counts.values(),
        key=lambda x: (-x['goals'], x['player_name'].lower(), x['player_id'])
    )
    return ranked[:limit]
