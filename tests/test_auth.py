"""
Tests for registration, login and the session user.
"""
import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from app import create_user, authenticate_user
from conftest import login
from league.errors import Conflict, InvalidArgument


class TestUserCreation:
    """Tests for create_user."""

    def test_create_user_success(self, yaml_store):
        """Valid details create a PLAYER profile and an unassigned player row."""
        profile, player = create_user(yaml_store, 'alice', 'pass1234', 'Alice Brown', 'Byte University')
        assert profile['role'] == 'PLAYER'
        assert profile['password_hash'] != 'pass1234'
        assert player['profile_id'] == profile['id']
        assert player['team_id'] is None
        assert yaml_store.list('profiles', {'username': 'alice'})

    def test_create_user_short_username(self, yaml_store):
        """Username shorter than 2 chars is rejected."""
        with pytest.raises(InvalidArgument):
            create_user(yaml_store, 'a', 'pass1234', 'A', '')

    def test_create_user_invalid_chars(self, yaml_store):
        """Username with invalid characters is rejected."""
        with pytest.raises(InvalidArgument):
            create_user(yaml_store, 'al ice', 'pass1234', 'Alice', '')

    def test_create_user_short_password(self, yaml_store):
        """Password shorter than 4 chars is rejected."""
        with pytest.raises(InvalidArgument):
            create_user(yaml_store, 'alice', 'abc', 'Alice', '')

    def test_create_user_requires_full_name(self, yaml_store):
        with pytest.raises(InvalidArgument):
            create_user(yaml_store, 'alice', 'pass1234', '  ', '')

    @pytest.mark.parametrize('field', ['username', 'password', 'full_name', 'university'])
    def test_create_user_non_string_field(self, yaml_store, field):
        """Numbers in place of text are rejected and nothing is written."""
        args = {'username': 'alice', 'password': 'pass1234', 'full_name': 'Alice Brown', 'university': ''}
        args[field] = 12345
        with pytest.raises(InvalidArgument):
            create_user(yaml_store, **args)
        assert yaml_store.list('profiles') == []

    def test_create_user_case_insensitive(self, yaml_store):
        """Usernames are case-insensitive (lowercased)."""
        create_user(yaml_store, 'Alice', 'pass1234', 'Alice Brown', '')
        with pytest.raises(Conflict):
            create_user(yaml_store, 'alice', 'otherpass', 'Alice Again', '')


class TestAuthenticate:
    """Tests for authenticate_user."""

    def test_correct_password(self, yaml_store):
        create_user(yaml_store, 'alice', 'pass1234', 'Alice Brown', '')
        assert authenticate_user(yaml_store, 'ALICE', 'pass1234')['username'] == 'alice'

    def test_wrong_password(self, yaml_store):
        create_user(yaml_store, 'alice', 'pass1234', 'Alice Brown', '')
        assert authenticate_user(yaml_store, 'alice', 'wrong') is None

    def test_unknown_user(self, yaml_store):
        assert authenticate_user(yaml_store, 'nobody', 'pass1234') is None

    def test_non_string_credentials(self, yaml_store):
        create_user(yaml_store, 'alice', 'pass1234', 'Alice Brown', '')
        assert authenticate_user(yaml_store, 5, 'pass1234') is None
        assert authenticate_user(yaml_store, 'alice', 1234) is None


class TestAuthRoutes:
    """Tests for /api/register, /api/login, /api/logout and /api/me."""

    def test_register_logs_in(self, client):
        response = client.post('/api/register', json={
            'username': 'bob', 'password': 'secret', 'fullName': 'Bob Wilson', 'university': 'Coding Institute'})
        assert response.status_code == 200
        assert 'password_hash' not in response.get_json()['profile']
        me = client.get('/api/me').get_json()
        assert me['profile']['username'] == 'bob'
        assert me['is_admin'] is False
        assert me['admin_request'] is None

    def test_register_invalid(self, client):
        response = client.post('/api/register', json={'username': 'b', 'password': 'secret', 'fullName': 'B'})
        assert response.status_code == 400
        assert response.get_json()['error']

    @pytest.mark.parametrize('payload', [
        {'username': 12345, 'password': 'secret', 'fullName': 'Bob Wilson'},
        {'username': 'bob', 'password': 'secret', 'fullName': 42},
        {'username': 'bob', 'password': 'secret', 'fullName': 'Bob Wilson', 'university': ['Coding Institute']},
    ])
    def test_register_non_string_fields(self, client, payload):
        response = client.post('/api/register', json=payload)
        assert response.status_code == 400
        assert client.get('/api/me').status_code == 401

    def test_login_non_string_username(self, client):
        response = client.post('/api/login', json={'username': 5, 'password': 'secret'})
        assert response.status_code == 401

    def test_login_and_logout(self, client, yaml_store):
        create_user(yaml_store, 'bob', 'secret', 'Bob Wilson', '')
        assert client.post('/api/login', json={'username': 'bob', 'password': 'secret'}).status_code == 200
        assert client.get('/api/me').status_code == 200
        client.post('/api/logout')
        assert client.get('/api/me').status_code == 401

    def test_login_bad_password(self, client, yaml_store):
        create_user(yaml_store, 'bob', 'secret', 'Bob Wilson', '')
        response = client.post('/api/login', json={'username': 'bob', 'password': 'nope'})
        assert response.status_code == 401

    def test_me_requires_login(self, client):
        assert client.get('/api/me').status_code == 401

    def test_session_user_from_yaml_store(self, client, yaml_store):
        """The app reads the same league file the fixture writes."""
        profile, _ = create_user(yaml_store, 'carol', 'secret', 'Carol Diaz', '')
        login(client, profile['id'])
        assert client.get('/api/me').get_json()['profile']['full_name'] == 'Carol Diaz'
