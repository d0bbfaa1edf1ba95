"""
Tests for scripts/seed.py, the demo data seeder.
"""
import pytest
import sys
import os
from unittest.mock import patch

from werkzeug.security import check_password_hash

# Add scripts directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'scripts'))
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

import seed
from league.errors import UpstreamFailure
from league.scorers import compute_top_scorers
from league.standings import compute_standings
from league.store import MemoryStore, YamlStore


class TestSeed:
    """Tests for the seed() function."""

    def test_counts(self):
        store = MemoryStore()
        counts = seed.seed(store, 'admin-pass', 'player-pass')
        assert counts == {'teams': 4, 'players': 4, 'matches': 3, 'goals': 3}
        assert len(store.list('profiles')) == 5
        assert len(store.list('goals')) == 3

    def test_one_admin_with_hashed_password(self):
        store = MemoryStore()
        seed.seed(store, 'admin-pass', 'player-pass')
        admins = store.list('profiles', {'role': 'ADMIN'})
        assert [a['username'] for a in admins] == ['admin']
        assert check_password_hash(admins[0]['password_hash'], 'admin-pass')

    def test_finished_match_drives_tables(self):
        """The finished match gives Tech Titans three points and John Doe two goals."""
        store = MemoryStore()
        seed.seed(store, 'admin-pass', 'player-pass')
        teams = store.list('teams')

        standings = compute_standings(teams, store.list('matches'))
        assert [row['team_name'] for row in standings] == ['Tech Titans', 'Code Crushers']
        assert standings[0]['points'] == 3

        scorers = compute_top_scorers(store.list('goals'), store.list('players'), store.list('profiles'), teams)
        assert [(s['player_name'], s['goals']) for s in scorers] == [('John Doe', 2), ('Bob Wilson', 1)]

    def test_match_statuses(self):
        store = MemoryStore()
        seed.seed(store, 'admin-pass', 'player-pass')
        statuses = sorted(m['status'] for m in store.list('matches'))
        assert statuses == ['DONE', 'UPCOMING', 'UPCOMING']


@pytest.mark.slow
class TestSeedMain:
    """Tests for the seed.py command line."""

    def test_seeds_empty_directory(self, tmp_path, capsys):
        with patch('sys.argv', ['seed.py', '--data-dir', str(tmp_path)]):
            assert seed.main() == 0
        assert (tmp_path / 'league.yaml').exists()
        assert 'seeded successfully' in capsys.readouterr().out
        assert len(YamlStore(str(tmp_path / 'league.yaml')).list('teams')) == 4

    def test_refuses_existing_data(self, tmp_path, capsys):
        (tmp_path / 'league.yaml').write_text('teams: []\n')
        with patch('sys.argv', ['seed.py', '--data-dir', str(tmp_path)]):
            assert seed.main() == 1
        assert 'already exists' in capsys.readouterr().err
        assert (tmp_path / 'league.yaml').read_text() == 'teams: []\n'

    def test_force_replaces_existing_data(self, tmp_path):
        (tmp_path / 'league.yaml').write_text('teams: []\n')
        with patch('sys.argv', ['seed.py', '--data-dir', str(tmp_path), '--force']):
            assert seed.main() == 0
        assert len(YamlStore(str(tmp_path / 'league.yaml')).list('teams')) == 4

    def test_write_failure_exit_code(self, tmp_path, capsys):
        with patch('sys.argv', ['seed.py', '--data-dir', str(tmp_path)]), \
                patch.object(seed, 'seed', side_effect=UpstreamFailure('Failed to write league data')):
            assert seed.main() == 3
        assert 'Failed to write league data' in capsys.readouterr().err
