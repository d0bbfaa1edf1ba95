"""
Caller context and the admin-access gate.

The caller's role is always read from the stored profile; nothing a client
sends is trusted as proof of ADMIN rights. ``load_caller`` is run once per
request so role changes made elsewhere take effect on the next request.
"""
import logging

from league.errors import AlreadyPending, Conflict, Forbidden, NotFound, Unauthorized
from league.models import AdminRequest, RequestStatus, Role, utc_now

logger = logging.getLogger(__name__)


class Caller:
    """Identity and role of whoever is invoking an operation."""

    def __init__(self, user_id=None, role=None, username=None):
        self.user_id = user_id
        self.role = role
        self.username = username

    @property
    def is_authenticated(self):
        return self.user_id is not None

    @property
    def is_admin(self):
        return self.role == Role.ADMIN

    def __repr__(self):
        return f"Caller(user_id={self.user_id}, role={self.role})"


ANONYMOUS = Caller()


def load_caller(store, user_id):
    """Build a Caller from the stored profile. Unknown users are anonymous."""
    if not user_id:
        return ANONYMOUS
    try:
        profile = store.get('profiles', user_id)
    except NotFound:
        return ANONYMOUS
    return Caller(profile['id'], profile.get('role', Role.PLAYER.value), profile.get('username'))


def is_admin(store, user_id) -> bool:
    return load_caller(store, user_id).is_admin


def require_user(caller):
    if caller is None or not caller.is_authenticated:
        raise Unauthorized('Unauthorized')


def require_admin(caller):
    require_user(caller)
    if not caller.is_admin:
        raise Forbidden('Forbidden')


def request_admin(store, user_id, reason=None):
    """Open a PENDING admin request for ``user_id``.

    At most one PENDING request per user; a second one raises AlreadyPending.
    """
    profile = store.get('profiles', user_id)
    if profile.get('role') == Role.ADMIN:
        raise Conflict('User is already an admin')
    if store.list('admin_requests', {'user_id': user_id, 'status': RequestStatus.PENDING.value}):
        raise AlreadyPending('An admin request is already pending for this user')

    row = store.insert('admin_requests', AdminRequest(user_id, reason=reason).to_dict())
    logger.info(f'Admin request {row["id"]} opened by {user_id}')
    return row


def latest_request(store, user_id):
    """Most recent admin request of ``user_id``, or None."""
    rows = store.list('admin_requests', {'user_id': user_id}, order='-requested_at')
    return rows[0] if rows else None


def list_requests(store, caller, status=None):
    require_admin(caller)
    filters = {'status': status} if status else None
    return store.list('admin_requests', filters, order='-requested_at')


def _pending_request(store, request_id):
    row = store.get('admin_requests', request_id)
    if row['status'] != RequestStatus.PENDING:
        raise Conflict(f'Admin request is already {row["status"]}',
                       details={'status': row['status']})
    return row


def approve_request(store, caller, request_id):
    """PENDING -> APPROVED; the requester becomes ADMIN in the same write."""
    require_admin(caller)
    row = _pending_request(store, request_id)
    reviewed = {
        'status': RequestStatus.APPROVED.value,
        'reviewed_by': caller.user_id,
        'reviewed_at': utc_now().isoformat(),
    }
    updated, _ = store.apply([
        ('admin_requests', request_id, reviewed),
        ('profiles', row['user_id'], {'role': Role.ADMIN.value}),
    ])
    logger.info(f'Admin request {request_id} approved by {caller.user_id}; {row["user_id"]} is now ADMIN')
    return updated


def reject_request(store, caller, request_id, reason=None):
    """PENDING -> REJECTED."""
    require_admin(caller)
    row = _pending_request(store, request_id)
    patch = {
        'status': RequestStatus.REJECTED.value,
        'reviewed_by': caller.user_id,
        'reviewed_at': utc_now().isoformat(),
    }
    if reason:
        patch['reason'] = reason
    updated = store.update('admin_requests', request_id, patch)
    logger.info(f'Admin request {request_id} rejected by {caller.user_id}')
    return updated
