"""
Error taxonomy for league operations.

Every error carries the HTTP status the web layer answers with and an
optional ``details`` payload that is passed through to the caller verbatim.
"""


class LeagueError(Exception):
    """Base class for all league errors."""
    status_code = 500

    def __init__(self, message, details=None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self):
        payload = {'error': self.message}
        if self.details is not None:
            payload['details'] = self.details
        return payload


class InvalidArgument(LeagueError):
    """Malformed input: missing field, identical teams, negative score."""
    status_code = 400


class Unauthorized(LeagueError):
    """No authenticated caller."""
    status_code = 401


class Forbidden(LeagueError):
    """Caller lacks the ADMIN role."""
    status_code = 403


class NotFound(LeagueError):
    """Referenced entity does not exist."""
    status_code = 404


class Conflict(LeagueError):
    """Operation not allowed in the entity's current state."""
    status_code = 409


class AlreadyPending(Conflict):
    """The user already has an open admin request."""


class UpstreamFailure(LeagueError):
    """The entity store itself failed."""
    status_code = 502


class CleanupFailed(UpstreamFailure):
    """A step of a multi-write cleanup sequence failed.

    ``step`` names the failed step; steps before it were applied and are
    not rolled back.
    """

    def __init__(self, step, cause):
        super().__init__(f'Cleanup failed at step "{step}": {cause}',
                         details=getattr(cause, 'details', None))
        self.step = step
        self.cause = cause

    def to_dict(self):
        payload = super().to_dict()
        payload['step'] = self.step
        return payload


class AssignmentFailed(UpstreamFailure):
    """A player reassignment failed; the remaining updates were not applied."""

    def __init__(self, index, player_id, applied, cause):
        super().__init__(f'Update {index} (player {player_id}) failed: {cause}',
                         details=getattr(cause, 'details', None))
        self.index = index
        self.player_id = player_id
        self.applied = applied
        self.cause = cause
        # Inherit the cause's status so a missing team still reads as 404.
        if isinstance(cause, LeagueError):
            self.status_code = cause.status_code

    def to_dict(self):
        payload = super().to_dict()
        payload.update({'index': self.index, 'id': self.player_id, 'applied': self.applied})
        return payload
