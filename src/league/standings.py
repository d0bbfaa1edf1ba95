"""
League table computation from completed matches.
"""
from league.models import MatchStatus

POINTS_FOR_WIN = 3
POINTS_FOR_DRAW = 1


def _new_record(team_id, team):
    return {
        'team_id': team_id,
        'team_name': team.get('name', '') if team else '',
        'university': team.get('university', '') if team else '',
        'group_label': (team.get('group_label') or '') if team else '',
        'matches_played': 0,
        'wins': 0,
        'draws': 0,
        'losses': 0,
        'goals_for': 0,
        'goals_against': 0,
        'points': 0,
    }


def _rank(records):
    # points (desc) -> goal difference (desc) -> team name -> team id
    return sorted(
        records,
        key=lambda x: (-x['points'], -x['goal_difference'], x['team_name'].lower(), x['team_id'])
    )


def compute_standings(teams, matches):
    """
    Calculate the league table from DONE matches.

    Args:
        teams: Team rows (used for names, university and group label).
        matches: Match rows of any status; only DONE matches count.

    Returns: [{'team_id', 'team_name', 'university', 'group_label',
               'matches_played', 'wins', 'draws', 'losses', 'goals_for',
               'goals_against', 'goal_difference', 'points'}, ...]

    A team only appears once it has played a DONE match.
    Ranking: points -> goal difference -> team name -> team id
    """
    teams_by_id = {t['id']: t for t in teams}
    team_stats = {}

    for match in matches:
        if match.get('status') != MatchStatus.DONE:
            continue

        home_id = match['home_team_id']
        away_id = match['away_team_id']
        home_score = match.get('home_score') or 0
        away_score = match.get('away_score') or 0

        for team_id in (home_id, away_id):
            if team_id not in team_stats:
                team_stats[team_id] = _new_record(team_id, teams_by_id.get(team_id))

        home = team_stats[home_id]
        away = team_stats[away_id]

        home['matches_played'] += 1
        away['matches_played'] += 1
        home['goals_for'] += home_score
        home['goals_against'] += away_score
        away['goals_for'] += away_score
        away['goals_against'] += home_score

        if home_score > away_score:
            home['wins'] += 1
            home['points'] += POINTS_FOR_WIN
            away['losses'] += 1
        elif home_score < away_score:
            away['wins'] += 1
            away['points'] += POINTS_FOR_WIN
            home['losses'] += 1
        else:
            home['draws'] += 1
            away['draws'] += 1
            home['points'] += POINTS_FOR_DRAW
            away['points'] += POINTS_FOR_DRAW

    for record in team_stats.values():
        record['goal_difference'] = record['goals_for'] - record['goals_against']

    return _rank(team_stats.values())


def compute_group_standings(teams, matches):
    """Split the league table by the teams' group label.

    Returns: {group_label: [record, ...]}; teams without a label go under ''.
    Each group keeps the overall ranking order.
    """
    groups = {}
    for record in compute_standings(teams, matches):
        groups.setdefault(record['group_label'], []).append(record)
    return groups


def summarize_matches(matches):
    """Aggregate figures for the leaderboard header.

    Returns a dict with per-status counts, goals scored in DONE matches and
    the biggest win (largest margin, None when no DONE match was decisive).
    """
    counts = {status.value: 0 for status in MatchStatus}
    total_goals = 0
    biggest = None

    for match in matches:
        status = match.get('status')
        if status in counts:
            counts[status] += 1
        if status != MatchStatus.DONE:
            continue
        home_score = match.get('home_score') or 0
        away_score = match.get('away_score') or 0
        total_goals += home_score + away_score
        margin = abs(home_score - away_score)
        if margin and (biggest is None or margin > biggest['margin']):
            biggest = {
                'match_id': match['id'],
                'home_team_id': match['home_team_id'],
                'away_team_id': match['away_team_id'],
                'score': f'{home_score}-{away_score}',
                'margin': margin,
            }

    return {
        'matches_by_status': counts,
        'matches_completed': counts[MatchStatus.DONE.value],
        'total_goals': total_goals,
        'biggest_win': biggest,
    }
