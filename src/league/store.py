"""
Entity store: the data-access collaborator every league operation calls into.

Rows are plain dicts keyed by ``id``. Two implementations share the same
operations:

- ``MemoryStore`` keeps collections in process memory (tests, CLI dry runs).
- ``YamlStore`` keeps every collection in one YAML document on disk. Each
  call loads, mutates and saves the document under a file lock, and saves go
  through a temp file so a half-written document is never observable.
"""
import copy
import logging
import os
import tempfile
import threading

import yaml
from filelock import FileLock, Timeout

from league.errors import Conflict, InvalidArgument, NotFound, UpstreamFailure
from league.models import new_id, utc_now

logger = logging.getLogger(__name__)

ENTITIES = ('profiles', 'teams', 'players', 'matches', 'goals', 'admin_requests')


def _check_entity(entity):
    if entity not in ENTITIES:
        raise InvalidArgument(f'Unknown entity: {entity}')


def _matches_filters(row, filters):
    for field, expected in (filters or {}).items():
        value = row.get(field)
        if isinstance(expected, (list, tuple, set)):
            if value not in expected:
                return False
        elif value != expected:
            return False
    return True


def _sort_rows(rows, order):
    if not order:
        return rows
    descending = order.startswith('-')
    field = order.lstrip('-')
    # None sorts last in ascending order
    def sort_key(row):
        value = row.get(field)
        return (value is None, value if value is not None else '')
    return sorted(rows, key=sort_key, reverse=descending)


class EntityStore:
    """Operations over the entity collections.

    Subclasses provide ``_locked()``, ``_load()`` and ``_save(data)``; every
    public operation runs load-mutate-save inside the lock.
    """

    def _locked(self):
        raise NotImplementedError

    def _load(self) -> dict:
        raise NotImplementedError

    def _save(self, data: dict):
        raise NotImplementedError

    def version(self):
        """Token that changes whenever stored data changes."""
        raise NotImplementedError

    def list(self, entity, filters=None, order=None) -> list:
        _check_entity(entity)
        with self._locked():
            data = self._load()
            rows = [copy.deepcopy(r) for r in data.get(entity, []) if _matches_filters(r, filters)]
        return _sort_rows(rows, order)

    def get(self, entity, row_id) -> dict:
        _check_entity(entity)
        with self._locked():
            data = self._load()
            for row in data.get(entity, []):
                if row.get('id') == row_id:
                    return copy.deepcopy(row)
        raise NotFound(f'{entity} {row_id} not found')

    def insert(self, entity, row) -> dict:
        _check_entity(entity)
        row = copy.deepcopy(row)
        row.setdefault('id', new_id())
        row.setdefault('created_at', utc_now().isoformat())
        with self._locked():
            data = self._load()
            rows = data.setdefault(entity, [])
            if any(r.get('id') == row['id'] for r in rows):
                raise Conflict(f'{entity} {row["id"]} already exists')
            rows.append(row)
            self._save(data)
        return copy.deepcopy(row)

    def update(self, entity, row_id, patch) -> dict:
        _check_entity(entity)
        with self._locked():
            data = self._load()
            row = self._find(data, entity, row_id)
            row.update(copy.deepcopy(patch))
            row['id'] = row_id
            self._save(data)
            return copy.deepcopy(row)

    def delete(self, entity, row_id):
        _check_entity(entity)
        with self._locked():
            data = self._load()
            row = self._find(data, entity, row_id)
            data[entity].remove(row)
            self._save(data)

    def update_where(self, entity, filters, patch) -> int:
        """Patch every row matching ``filters``. Returns the number of rows changed."""
        _check_entity(entity)
        with self._locked():
            data = self._load()
            count = 0
            for row in data.get(entity, []):
                if _matches_filters(row, filters):
                    row.update(copy.deepcopy(patch))
                    count += 1
            if count:
                self._save(data)
            return count

    def delete_where(self, entity, filters) -> int:
        """Delete every row matching ``filters``. Returns the number of rows removed."""
        _check_entity(entity)
        with self._locked():
            data = self._load()
            rows = data.get(entity, [])
            kept = [r for r in rows if not _matches_filters(r, filters)]
            removed = len(rows) - len(kept)
            if removed:
                data[entity] = kept
                self._save(data)
            return removed

    def apply(self, changes):
        """Apply several ``(entity, id, patch)`` updates as one unit.

        Every target is checked before anything is written, and the result
        is saved once, so either all changes land or none do.
        """
        for entity, _, _ in changes:
            _check_entity(entity)
        with self._locked():
            data = self._load()
            targets = [(self._find(data, entity, row_id), patch) for entity, row_id, patch in changes]
            for row, patch in targets:
                row.update(copy.deepcopy(patch))
            self._save(data)
            return [copy.deepcopy(row) for row, _ in targets]

    @staticmethod
    def _find(data, entity, row_id):
        for row in data.get(entity, []):
            if row.get('id') == row_id:
                return row
        raise NotFound(f'{entity} {row_id} not found')


class MemoryStore(EntityStore):
    """In-process store. Thread-safe; data is lost with the process."""

    def __init__(self, data=None):
        self._data = {entity: [] for entity in ENTITIES}
        for entity, rows in (data or {}).items():
            _check_entity(entity)
            self._data[entity] = copy.deepcopy(rows)
        self._lock = threading.RLock()
        self._version = 0

    def _locked(self):
        return self._lock

    def _load(self):
        return self._data

    def _save(self, data):
        self._data = data
        self._version += 1

    def version(self):
        return self._version


class YamlStore(EntityStore):
    """Store backed by a single YAML document."""

    def __init__(self, path, lock_timeout=10):
        self.path = path
        os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
        self._lock = FileLock(path + '.lock', timeout=lock_timeout)

    def _locked(self):
        return _UpstreamGuard(self._lock, self.path)

    def _load(self):
        if not os.path.exists(self.path):
            return {entity: [] for entity in ENTITIES}
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            logger.error(f'Failed to read {self.path}: {e}')
            raise UpstreamFailure('Failed to read league data', details=str(e))
        if not data:
            data = {}
        if not isinstance(data, dict):
            raise UpstreamFailure('League data is malformed',
                                  details=f'expected a mapping, got {type(data).__name__}')
        for entity in ENTITIES:
            if not data.get(entity):
                data[entity] = []
        return data

    def _save(self, data):
        directory = os.path.dirname(os.path.abspath(self.path))
        try:
            os.makedirs(directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=directory, prefix='.league-', suffix='.yaml')
            try:
                with os.fdopen(fd, 'w', encoding='utf-8') as f:
                    yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.remove(tmp_path)
                raise
        except (OSError, yaml.YAMLError) as e:
            logger.error(f'Failed to write {self.path}: {e}')
            raise UpstreamFailure('Failed to write league data', details=str(e))

    def version(self):
        return os.path.getmtime(self.path) if os.path.exists(self.path) else 0.0


class _UpstreamGuard:
    """Acquire the file lock, reporting a lock timeout as an upstream failure."""

    def __init__(self, lock, path):
        self._lock = lock
        self._path = path

    def __enter__(self):
        try:
            self._lock.acquire()
        except Timeout as e:
            logger.error(f'Timed out waiting for lock on {self._path}')
            raise UpstreamFailure('League data is busy, try again', details=str(e))
        return self

    def __exit__(self, exc_type, exc, tb):
        self._lock.release()
        return False
