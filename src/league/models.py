import uuid
from datetime import datetime, timezone
from enum import Enum


class Role(str, Enum):
    PLAYER = 'PLAYER'
    ADMIN = 'ADMIN'


class MatchStatus(str, Enum):
    UPCOMING = 'UPCOMING'
    LIVE = 'LIVE'
    DONE = 'DONE'


class RequestStatus(str, Enum):
    PENDING = 'PENDING'
    APPROVED = 'APPROVED'
    REJECTED = 'REJECTED'


# Forward order of the match lifecycle
MATCH_STATUS_ORDER = [MatchStatus.UPCOMING.value, MatchStatus.LIVE.value, MatchStatus.DONE.value]


def new_id() -> str:
    return str(uuid.uuid4())


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value) -> datetime:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC.

    Raises ValueError on anything unparseable.
    """
    if isinstance(value, datetime):
        parsed = value
    else:
        if not isinstance(value, str) or not value.strip():
            raise ValueError(f'Invalid timestamp: {value!r}')
        text = value.strip()
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def normalize_timestamp(value) -> str:
    """Parse ``value`` and return it as a UTC ISO-8601 string."""
    return parse_timestamp(value).astimezone(timezone.utc).isoformat()


class Profile:
    def __init__(self, username, full_name, university, role=Role.PLAYER, password_hash=None):
        self.username = username
        self.full_name = full_name
        self.university = university
        self.role = Role(role)
        self.password_hash = password_hash

    def to_dict(self):
        return {
            'username': self.username,
            'full_name': self.full_name,
            'university': self.university,
            'role': self.role.value,
            'password_hash': self.password_hash,
        }

    def __repr__(self):
        return f"Profile(username={self.username}, role={self.role.value})"


class Team:
    def __init__(self, name, university='', group_label=None):
        self.name = name
        self.university = university
        self.group_label = group_label

    def to_dict(self):
        return {'name': self.name, 'university': self.university, 'group_label': self.group_label}

    def __repr__(self):
        return f"Team(name={self.name}, group_label={self.group_label})"


class Player:
    def __init__(self, profile_id, team_id=None):
        self.profile_id = profile_id
        self.team_id = team_id

    def to_dict(self):
        return {'profile_id': self.profile_id, 'team_id': self.team_id}

    def __repr__(self):
        return f"Player(profile_id={self.profile_id}, team_id={self.team_id})"


class Match:
    def __init__(self, home_team_id, away_team_id, starts_at, venue, group_label=None):
        self.home_team_id = home_team_id
        self.away_team_id = away_team_id
        self.starts_at = starts_at
        self.venue = venue
        self.group_label = group_label
        self.status = MatchStatus.UPCOMING
        self.home_score = 0
        self.away_score = 0

    def to_dict(self):
        return {
            'home_team_id': self.home_team_id,
            'away_team_id': self.away_team_id,
            'starts_at': self.starts_at,
            'venue': self.venue,
            'group_label': self.group_label,
            'status': self.status.value,
            'home_score': self.home_score,
            'away_score': self.away_score,
        }

    def __repr__(self):
        return (f"Match(home={self.home_team_id}, away={self.away_team_id}, "
                f"status={self.status.value}, score={self.home_score}-{self.away_score})")


class Goal:
    def __init__(self, match_id, player_id, minute=0, own_goal=False):
        self.match_id = match_id
        self.player_id = player_id
        self.minute = minute
        self.own_goal = own_goal

    def to_dict(self):
        return {
            'match_id': self.match_id,
            'player_id': self.player_id,
            'minute': self.minute,
            'own_goal': self.own_goal,
        }

    def __repr__(self):
        return f"Goal(match={self.match_id}, player={self.player_id}, minute={self.minute})"


class AdminRequest:
    def __init__(self, user_id, reason=None):
        self.user_id = user_id
        self.reason = reason
        self.status = RequestStatus.PENDING
        self.requested_at = utc_now().isoformat()

    def to_dict(self):
        return {
            'user_id': self.user_id,
            'status': self.status.value,
            'requested_at': self.requested_at,
            'reviewed_by': None,
            'reviewed_at': None,
            'reason': self.reason,
        }

    def __repr__(self):
        return f"AdminRequest(user_id={self.user_id}, status={self.status.value})"
