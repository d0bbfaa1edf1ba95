#!/usr/bin/env python3
"""
League Demo Data Seeder

Fills a league data directory with an admin account, four teams in two
groups, one player per team, two upcoming matches and one finished match
with its goals.

Usage:
    python scripts/seed.py --data-dir data
    python scripts/seed.py --data-dir data --admin-password secret --force

Exit codes:
    0: Success
    1: Data directory already holds league data (use --force to replace it)
    3: League data could not be written
"""
import argparse
import os
import sys
from datetime import timedelta

from werkzeug.security import generate_password_hash

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from league.cleanup import create_team  # noqa: E402
from league.errors import LeagueError  # noqa: E402
from league.lifecycle import create_match, start_match, update_score, end_match, record_goal  # noqa: E402
from league.models import Profile, Player, Role, utc_now  # noqa: E402
from league.store import YamlStore  # noqa: E402

TEAMS = [
    ('Tech Titans', 'University of Technology', 'A'),
    ('Digital Dragons', 'Digital University', 'A'),
    ('Code Crushers', 'Coding Institute', 'B'),
    ('Byte Busters', 'Byte University', 'B'),
]

PLAYERS = [
    ('john_doe', 'John Doe', 'University of Technology'),
    ('jane_smith', 'Jane Smith', 'Digital University'),
    ('bob_wilson', 'Bob Wilson', 'Coding Institute'),
    ('alice_brown', 'Alice Brown', 'Byte University'),
]


def seed(store, admin_password, player_password):
    """Create the demo rows. Returns a dict of created row counts."""
    store.insert('profiles', Profile(
        'admin', 'Tournament Admin', 'University of Technology', role=Role.ADMIN,
        password_hash=generate_password_hash(admin_password)).to_dict())

    teams = [create_team(store, name, university, group) for name, university, group in TEAMS]

    players = []
    for (username, full_name, university), team in zip(PLAYERS, teams):
        profile = store.insert('profiles', Profile(
            username, full_name, university,
            password_hash=generate_password_hash(player_password)).to_dict())
        players.append(store.insert('players', Player(profile['id'], team['id']).to_dict()))

    now = utc_now()
    create_match(store, teams[0]['id'], teams[1]['id'], now + timedelta(days=1), 'Main Stadium', 'A')
    create_match(store, teams[2]['id'], teams[3]['id'], now + timedelta(days=2), 'Training Ground', 'B')
    played = create_match(store, teams[0]['id'], teams[2]['id'], now - timedelta(hours=2), 'Main Stadium', 'A')

    start_match(store, played['id'])
    record_goal(store, played['id'], players[0]['id'], 15)
    record_goal(store, played['id'], players[0]['id'], 67)
    record_goal(store, played['id'], players[2]['id'], 89)
    update_score(store, played['id'], 2, 1)
    end_match(store, played['id'])

    return {'teams': len(teams), 'players': len(players), 'matches': 3, 'goals': 3}


def main():
    base_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    parser = argparse.ArgumentParser(
        description='Seed a league data directory with demo teams, players and matches'
    )
    parser.add_argument(
        '--data-dir',
        default=os.environ.get('LEAGUE_DATA_DIR', os.path.join(base_dir, 'data')),
        help='League data directory (default: $LEAGUE_DATA_DIR or ./data)'
    )
    parser.add_argument('--admin-password', default='admin123', help='Password for the admin account')
    parser.add_argument('--player-password', default='player123', help='Password for the player accounts')
    parser.add_argument('--force', action='store_true', help='Replace existing league data')

    args = parser.parse_args()

    league_file = os.path.join(args.data_dir, 'league.yaml')
    if os.path.exists(league_file):
        if not args.force:
            print(f"Error: {league_file} already exists. Use --force to replace it.", file=sys.stderr)
            return 1
        os.remove(league_file)

    print(f"Seeding league data in {args.data_dir}...")
    try:
        counts = seed(YamlStore(league_file), args.admin_password, args.player_password)
    except LeagueError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        if e.details:
            print(f"Details: {e.details}", file=sys.stderr)
        return 3

    print("\nLeague seeded successfully!")
    print(f"Created {counts['teams']} teams, {counts['players']} players, "
          f"{counts['matches']} matches, {counts['goals']} goals")
    return 0


if __name__ == '__main__':
    sys.exit(main())
