# Command-line leaderboard for a league data directory

import argparse
import os
import sys

from league.errors import LeagueError
from league.scorers import compute_top_scorers, DEFAULT_LIMIT
from league.standings import compute_standings
from league.store import YamlStore


def format_standings(standings):
    lines = [f"{'#':>2}  {'Team':<24} {'P':>2} {'W':>2} {'D':>2} {'L':>2} {'GF':>3} {'GA':>3} {'GD':>4} {'Pts':>3}"]
    for position, row in enumerate(standings, start=1):
        lines.append(
            f"{position:>2}  {row['team_name'][:24]:<24} {row['matches_played']:>2} {row['wins']:>2} "
            f"{row['draws']:>2} {row['losses']:>2} {row['goals_for']:>3} {row['goals_against']:>3} "
            f"{row['goal_difference']:>+4} {row['points']:>3}"
        )
    return lines


def format_top_scorers(scorers):
    return [f"{position:>2}  {row['player_name']} ({row['team_name']}) - {row['goals']}"
            for position, row in enumerate(scorers, start=1)]


def main(argv=None):
    base_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    parser = argparse.ArgumentParser(description='Print league standings and top scorers.')
    parser.add_argument('--data-dir', default=os.environ.get('LEAGUE_DATA_DIR', os.path.join(base_dir, 'data')))
    parser.add_argument('--limit', type=int, default=DEFAULT_LIMIT, help='number of top scorers to show')
    args = parser.parse_args(argv)

    store = YamlStore(os.path.join(args.data_dir, 'league.yaml'))
    try:
        teams = store.list('teams')
        standings = compute_standings(teams, store.list('matches'))
        scorers = compute_top_scorers(store.list('goals'), store.list('players'),
                                      store.list('profiles'), teams, limit=args.limit)
    except LeagueError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1

    print("\n--- Standings ---")
    if standings:
        print("\n".join(format_standings(standings)))
    else:
        print("No completed matches yet.")

    print("\n--- Top Scorers ---")
    if scorers:
        print("\n".join(format_top_scorers(scorers)))
    else:
        print("No goals recorded yet.")
    return 0


if __name__ == '__main__':
    sys.exit(main())
