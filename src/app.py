"""
Flask web application for the football league tracker.
"""
import os
import re
import time
import logging
from datetime import timedelta
from functools import wraps

import yaml
from flask import Flask, request, jsonify, Response, stream_with_context, session, g
from werkzeug.security import generate_password_hash, check_password_hash

from league.access import (load_caller, require_user, require_admin, request_admin, latest_request,
                           list_requests, approve_request, reject_request)
from league.cleanup import create_team, delete_team, delete_player, delete_match, assign_players
from league.errors import LeagueError, InvalidArgument, Conflict, Unauthorized, UpstreamFailure
from league.lifecycle import create_match, update_match, record_goal, reconcile_score, auto_start_due_matches
from league.models import Profile, Player
from league.scorers import compute_top_scorers, DEFAULT_LIMIT
from league.standings import compute_standings, compute_group_standings, summarize_matches
from league.store import YamlStore

app = Flask(__name__)


def _get_or_create_secret_key() -> bytes:
    """Get SECRET_KEY from env, or generate and persist to file."""
    env_key = os.environ.get('SECRET_KEY')
    if env_key:
        return env_key.encode() if isinstance(env_key, str) else env_key
    key_file = os.path.join(DATA_DIR, '.secret_key')
    if os.path.exists(key_file):
        with open(key_file, 'rb') as f:
            return f.read()
    key = os.urandom(24)
    os.makedirs(os.path.dirname(key_file), exist_ok=True)
    with open(key_file, 'wb') as f:
        f.write(key)
    return key


BASE_DIR = os.path.dirname(os.path.dirname(__file__))
DATA_DIR = os.environ.get('LEAGUE_DATA_DIR', os.path.join(BASE_DIR, 'data'))
STREAM_INTERVAL = float(os.environ.get('LEAGUE_STREAM_INTERVAL', '3'))

app.secret_key = _get_or_create_secret_key()
app.config['PERMANENT_SESSION_LIFETIME'] = timedelta(days=30)

LEAGUE_FILE_NAME = 'league.yaml'
SETTINGS_FILE_NAME = 'settings.yaml'

DEFAULT_SETTINGS = {
    'tournament_name': 'Campus Football League',
    'top_scorers_limit': DEFAULT_LIMIT,
    'auto_start_matches': True,
}

# JSON request keys -> stored match fields
MATCH_PATCH_KEYS = {
    'status': 'status',
    'homeScore': 'home_score',
    'awayScore': 'away_score',
    'venue': 'venue',
    'startsAt': 'starts_at',
    'groupLabel': 'group_label',
}


def get_store():
    """Return the entity store for this request.

    Tests may inject one through ``app.config['LEAGUE_STORE']``; otherwise the
    YAML store in DATA_DIR is used.
    """
    store = app.config.get('LEAGUE_STORE')
    if store is not None:
        return store
    if 'store' not in g:
        g.store = YamlStore(os.path.join(DATA_DIR, LEAGUE_FILE_NAME))
    return g.store


def load_settings() -> dict:
    """Load league settings from YAML, merged over the defaults."""
    path = os.path.join(DATA_DIR, SETTINGS_FILE_NAME)
    if not os.path.exists(path):
        return dict(DEFAULT_SETTINGS)
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        app.logger.warning(f'Failed to parse {path}: {e}')
        return dict(DEFAULT_SETTINGS)
    if not isinstance(data, dict):
        return dict(DEFAULT_SETTINGS)
    settings = dict(DEFAULT_SETTINGS)
    for key, value in data.items():
        if key not in DEFAULT_SETTINGS:
            continue
        try:
            validate_setting(key, value)
        except InvalidArgument as e:
            app.logger.warning(f'Ignoring {key} in {path}: {e.message}')
            continue
        settings[key] = value
    return settings


def validate_setting(key, value):
    """Raise InvalidArgument unless ``value`` is acceptable for setting ``key``."""
    if key not in DEFAULT_SETTINGS:
        raise InvalidArgument(f'Unknown setting: {key}')
    if key == 'top_scorers_limit':
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            raise InvalidArgument('top_scorers_limit must be a positive whole number')
    elif key == 'auto_start_matches':
        if not isinstance(value, bool):
            raise InvalidArgument('auto_start_matches must be true or false')
    elif key == 'tournament_name':
        if not isinstance(value, str) or not value.strip():
            raise InvalidArgument('tournament_name must be a non-empty string')


def save_settings(settings: dict):
    """Save league settings to YAML."""
    os.makedirs(DATA_DIR, exist_ok=True)
    with open(os.path.join(DATA_DIR, SETTINGS_FILE_NAME), 'w', encoding='utf-8') as f:
        yaml.safe_dump(settings, f, default_flow_style=False)


def current_caller():
    """Caller for this request, refreshed from the stored profile once per request."""
    if 'caller' not in g:
        g.caller = load_caller(get_store(), session.get('user'))
    return g.caller


def login_required(f):
    """Reject the request with 401 if no user is logged in."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        require_user(current_caller())
        return f(*args, **kwargs)
    return decorated_function


def admin_required(f):
    """Reject the request with 401/403 unless the caller is an ADMIN."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        require_admin(current_caller())
        return f(*args, **kwargs)
    return decorated_function


@app.errorhandler(LeagueError)
def handle_league_error(e):
    if isinstance(e, UpstreamFailure):
        app.logger.error(f'{request.path}: {e.message} ({e.details})')
    else:
        app.logger.info(f'{request.path}: {e.status_code} {e.message}')
    return jsonify(e.to_dict()), e.status_code


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise InvalidArgument('Invalid payload')
    return data


def _public_profile(profile):
    """Profile row without credentials."""
    return {k: v for k, v in profile.items() if k != 'password_hash'}


def create_user(store, username: str, password: str, full_name: str, university: str):
    """Create a profile and its player row. Returns (profile, player)."""
    for name, value in (('username', username), ('password', password),
                        ('fullName', full_name), ('university', university)):
        if value is not None and not isinstance(value, str):
            raise InvalidArgument(f'{name} must be a string.')
    username = (username or '').lower().strip()
    if not re.match(r'^[a-z0-9][a-z0-9_-]*$', username) or len(username) < 2:
        raise InvalidArgument('Username must be at least 2 characters: letters, numbers, hyphens, underscores.')
    if len(password or '') < 4:
        raise InvalidArgument('Password must be at least 4 characters.')
    if not (full_name or '').strip():
        raise InvalidArgument('Full name is required.')
    if store.list('profiles', {'username': username}):
        raise Conflict('Username already taken.')

    profile = store.insert('profiles', Profile(
        username, full_name.strip(), (university or '').strip(),
        password_hash=generate_password_hash(password)).to_dict())
    player = store.insert('players', Player(profile['id']).to_dict())
    app.logger.info(f'User {username} registered')
    return profile, player


def authenticate_user(store, username: str, password: str):
    """Check username/password. Returns the profile row, or None."""
    if not isinstance(username, str) or not isinstance(password, str):
        return None
    rows = store.list('profiles', {'username': username.lower().strip()})
    if rows and rows[0].get('password_hash') and check_password_hash(rows[0]['password_hash'], password):
        return rows[0]
    return None


def _sweep_due_matches(store):
    """Auto-start due matches when enabled in settings."""
    if load_settings().get('auto_start_matches'):
        auto_start_due_matches(store)


# --- Auth ---

@app.route('/api/register', methods=['POST'])
def api_register():
    """Register a player account and log it in."""
    data = _json_body()
    profile, player = create_user(get_store(), data.get('username'), data.get('password'),
                                  data.get('fullName'), data.get('university'))
    session['user'] = profile['id']
    session.permanent = True
    return jsonify({'success': True, 'profile': _public_profile(profile), 'player': player})


@app.route('/api/login', methods=['POST'])
def api_login():
    data = _json_body()
    profile = authenticate_user(get_store(), data.get('username'), data.get('password'))
    if profile is None:
        raise Unauthorized('Invalid username or password.')
    session['user'] = profile['id']
    session.permanent = True
    app.logger.info(f'User {profile["username"]} logged in')
    return jsonify({'success': True, 'profile': _public_profile(profile)})


@app.route('/api/logout', methods=['POST'])
def api_logout():
    session.clear()
    return jsonify({'success': True})


@app.route('/api/me')
@login_required
def api_me():
    """Current user with role and latest admin request."""
    store = get_store()
    caller = current_caller()
    profile = store.get('profiles', caller.user_id)
    return jsonify({
        'profile': _public_profile(profile),
        'is_admin': caller.is_admin,
        'admin_request': latest_request(store, caller.user_id),
    })


# --- Reads ---

@app.route('/api/teams')
def api_teams():
    return jsonify({'teams': get_store().list('teams', order='name')})


@app.route('/api/players')
def api_players():
    """Players joined with their profile name and team name."""
    store = get_store()
    profiles = {p['id']: p for p in store.list('profiles')}
    teams = {t['id']: t for t in store.list('teams')}
    players = []
    for player in store.list('players'):
        profile = profiles.get(player.get('profile_id'), {})
        team = teams.get(player.get('team_id'))
        players.append({
            **player,
            'full_name': profile.get('full_name'),
            'university': profile.get('university'),
            'team_name': team['name'] if team else None,
        })
    players.sort(key=lambda p: ((p['full_name'] or '').lower(), p['id']))
    return jsonify({'players': players})


@app.route('/api/matches')
def api_matches():
    """Matches ordered by kick-off time; optional ?status= filter."""
    store = get_store()
    _sweep_due_matches(store)
    status = request.args.get('status')
    filters = {'status': status} if status else None
    return jsonify({'matches': store.list('matches', filters, order='starts_at')})


def _get_leaderboard_data() -> dict:
    """Build the leaderboard payload from the current rows."""
    store = get_store()
    settings = load_settings()
    _sweep_due_matches(store)

    teams = store.list('teams')
    matches = store.list('matches')
    top_scorers = compute_top_scorers(
        store.list('goals'), store.list('players'), store.list('profiles'), teams,
        limit=settings.get('top_scorers_limit', DEFAULT_LIMIT))

    return {
        'tournament_name': settings.get('tournament_name'),
        'standings': compute_standings(teams, matches),
        'groups': compute_group_standings(teams, matches),
        'top_scorers': top_scorers,
        'summary': summarize_matches(matches),
    }


@app.route('/api/leaderboard')
def api_leaderboard():
    """Standings and top scorers; an empty board if the data cannot be read."""
    try:
        return jsonify(_get_leaderboard_data())
    except UpstreamFailure as e:
        app.logger.warning(f'Leaderboard unavailable: {e.message}')
        return jsonify({'standings': [], 'groups': {}, 'top_scorers': [], 'summary': None,
                        'error': 'Leaderboard is temporarily unavailable'})


@app.route('/api/leaderboard/stream')
def api_leaderboard_stream():
    """Server-Sent Events stream that notifies clients when league data changes."""
    store = get_store()

    def generate():
        """Yield SSE events, checking the store version every STREAM_INTERVAL seconds."""
        yield "event: connected\ndata: ok\n\n"

        last_version = store.version()
        idle = 0.0

        while True:
            time.sleep(STREAM_INTERVAL)
            idle += STREAM_INTERVAL

            current_version = store.version()
            if current_version != last_version:
                last_version = current_version
                idle = 0.0
                yield f"event: update\ndata: {time.time()}\n\n"

            # Heartbeat keeps proxies from closing an idle connection
            if idle >= 15:
                idle = 0.0
                yield ": heartbeat\n\n"

    return Response(
        stream_with_context(generate()),
        mimetype='text/event-stream',
        headers={
            'Cache-Control': 'no-cache',
            'X-Accel-Buffering': 'no',
        },
    )


# --- Admin mutations ---

@app.route('/api/admin/teams/create', methods=['POST'])
@admin_required
def api_create_team():
    data = _json_body()
    team = create_team(get_store(), data.get('name'), data.get('university'), data.get('groupLabel'))
    return jsonify({'success': True, 'team': team})


@app.route('/api/admin/matches/create', methods=['POST'])
@admin_required
def api_create_match():
    data = _json_body()
    match = create_match(get_store(), data.get('homeTeamId'), data.get('awayTeamId'),
                         data.get('startsAt'), data.get('venue'), data.get('groupLabel'))
    return jsonify({'success': True, 'match': match})


@app.route('/api/admin/matches/update', methods=['POST'])
@admin_required
def api_update_match():
    """Apply a patch ({status, homeScore, awayScore, venue, startsAt, groupLabel}) to a match."""
    data = _json_body()
    match_id = data.get('id')
    patch = data.get('patch')
    if not match_id or not isinstance(patch, dict):
        raise InvalidArgument('Invalid payload')
    converted = {MATCH_PATCH_KEYS.get(key, key): value for key, value in patch.items()}
    match = update_match(get_store(), match_id, converted)
    app.logger.info(f'Match {match_id} updated by {current_caller().user_id}')
    return jsonify({'success': True, 'match': match})


@app.route('/api/admin/matches/reconcile', methods=['POST'])
@admin_required
def api_reconcile_match():
    """Set a match score from its goal log."""
    match_id = _json_body().get('id')
    if not match_id:
        raise InvalidArgument('Missing match id')
    match, unattributed = reconcile_score(get_store(), match_id)
    return jsonify({'success': True, 'match': match, 'unattributed_goals': unattributed})


@app.route('/api/admin/matches/delete', methods=['POST'])
@admin_required
def api_delete_match():
    match_id = _json_body().get('id')
    if not match_id:
        raise InvalidArgument('Missing match id')
    steps = delete_match(get_store(), match_id)
    app.logger.info(f'Match {match_id} deleted by {current_caller().user_id}')
    return jsonify({'success': True, 'steps': steps})


@app.route('/api/admin/players/assign', methods=['POST'])
@admin_required
def api_assign_players():
    """Reassign players: {updates: [{id, teamId|null}, ...]}."""
    updates = _json_body().get('updates')
    if not isinstance(updates, list):
        raise InvalidArgument('Invalid payload')
    converted = [
        {'id': u.get('id'), 'team_id': u.get('teamId')} if isinstance(u, dict) else u
        for u in updates
    ]
    players = assign_players(get_store(), converted)
    return jsonify({'success': True, 'players': players})


@app.route('/api/admin/goals/add', methods=['POST'])
@admin_required
def api_add_goal():
    """Record a goal. The match score is updated separately."""
    data = _json_body()
    goal = record_goal(get_store(), data.get('matchId'), data.get('playerId'),
                       data.get('minute'), data.get('ownGoal', False))
    return jsonify({'success': True, 'goal': goal})


@app.route('/api/admin/teams/delete', methods=['POST'])
@admin_required
def api_delete_team():
    team_id = _json_body().get('id')
    if not team_id:
        raise InvalidArgument('Missing team id')
    steps = delete_team(get_store(), team_id)
    app.logger.info(f'Team {team_id} deleted by {current_caller().user_id}')
    return jsonify({'success': True, 'steps': steps})


@app.route('/api/admin/players/delete', methods=['POST'])
@admin_required
def api_delete_player():
    player_id = _json_body().get('id')
    if not player_id:
        raise InvalidArgument('Missing player id')
    steps = delete_player(get_store(), player_id)
    app.logger.info(f'Player {player_id} deleted by {current_caller().user_id}')
    return jsonify({'success': True, 'steps': steps})


@app.route('/api/admin/settings', methods=['GET', 'POST'])
@admin_required
def api_settings():
    """Read or update league settings."""
    settings = load_settings()
    if request.method == 'POST':
        data = _json_body()
        unknown = sorted(set(data) - set(DEFAULT_SETTINGS))
        if unknown:
            raise InvalidArgument(f'Unknown settings: {", ".join(unknown)}')
        for key, value in data.items():
            validate_setting(key, value)
        settings.update(data)
        save_settings(settings)
    return jsonify({'settings': settings})


# --- Admin requests ---

@app.route('/api/admin/request', methods=['GET'])
@login_required
def api_my_admin_request():
    return jsonify({'adminRequest': latest_request(get_store(), current_caller().user_id)})


@app.route('/api/admin/request', methods=['POST'])
@login_required
def api_request_admin():
    reason = _json_body().get('reason')
    row = request_admin(get_store(), current_caller().user_id, reason=reason)
    return jsonify({'success': True, 'adminRequest': row,
                    'message': 'Admin request submitted. An admin will review it.'})


@app.route('/api/admin/requests')
@admin_required
def api_list_admin_requests():
    rows = list_requests(get_store(), current_caller(), status=request.args.get('status'))
    return jsonify({'requests': rows})


@app.route('/api/admin/requests/approve', methods=['POST'])
@admin_required
def api_approve_admin_request():
    request_id = _json_body().get('id')
    if not request_id:
        raise InvalidArgument('Missing request id')
    row = approve_request(get_store(), current_caller(), request_id)
    return jsonify({'success': True, 'adminRequest': row})


@app.route('/api/admin/requests/reject', methods=['POST'])
@admin_required
def api_reject_admin_request():
    data = _json_body()
    if not data.get('id'):
        raise InvalidArgument('Missing request id')
    row = reject_request(get_store(), current_caller(), data['id'], reason=data.get('reason'))
    return jsonify({'success': True, 'adminRequest': row})


if __name__ == '__main__':
    logging.basicConfig(level=os.environ.get('LOG_LEVEL', 'INFO'))
    app.run(debug=os.environ.get('FLASK_DEBUG') == '1')
