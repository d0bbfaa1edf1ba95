"""
Shared pytest fixtures for league tracker tests.

Running tests:
    pytest tests/                  - full suite
    pytest tests/ -m "not slow"   - skip the CLI end-to-end tests
"""
import pytest
import sys
import os

# Add src directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

# Keep the app from persisting a generated key while under test
os.environ.setdefault('SECRET_KEY', 'test-secret-key')

from league.cleanup import create_team
from league.models import Profile, Player, Role
from league.store import MemoryStore, YamlStore


@pytest.fixture
def store():
    """Empty in-memory entity store."""
    return MemoryStore()


@pytest.fixture
def league(store):
    """Four teams (A, B in group A; C, D in group B), one player per team,
    one admin profile and one player without a team.

    Returns a dict with the store and the created rows keyed by letter.
    """
    admin = store.insert('profiles', Profile(
        'admin', 'Tournament Admin', 'University of Technology', role=Role.ADMIN).to_dict())

    teams = {}
    for letter, group in (('A', 'A'), ('B', 'A'), ('C', 'B'), ('D', 'B')):
        teams[letter] = create_team(store, f'Team {letter}', f'University {letter}', group)

    profiles = {}
    players = {}
    for letter in 'ABCD':
        profiles[letter] = store.insert('profiles', Profile(
            f'player_{letter.lower()}', f'Player {letter}', f'University {letter}').to_dict())
        players[letter] = store.insert('players', Player(profiles[letter]['id'], teams[letter]['id']).to_dict())

    free_profile = store.insert('profiles', Profile('free_agent', 'Free Agent', 'Open University').to_dict())
    free_player = store.insert('players', Player(free_profile['id']).to_dict())

    return {
        'store': store,
        'admin': admin,
        'teams': teams,
        'profiles': profiles,
        'players': players,
        'free_profile': free_profile,
        'free_player': free_player,
    }


@pytest.fixture
def temp_data_dir(tmp_path, monkeypatch):
    """Point the app at an empty temporary data directory."""
    import app as app_module
    monkeypatch.setattr(app_module, 'DATA_DIR', str(tmp_path))
    return tmp_path


@pytest.fixture
def yaml_store(temp_data_dir):
    """YAML store backed by the same file the app reads."""
    return YamlStore(str(temp_data_dir / 'league.yaml'))


@pytest.fixture
def client(temp_data_dir):
    """Create an unauthenticated test client."""
    from app import app
    app.config['TESTING'] = True
    with app.test_client() as client:
        yield client


def login(client, user_id):
    """Mark ``user_id`` as the logged-in user of ``client``."""
    with client.session_transaction() as sess:
        sess['user'] = user_id
