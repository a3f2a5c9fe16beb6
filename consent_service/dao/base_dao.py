import datetime
import json
import logging
import secrets
import string

from base64 import urlsafe_b64decode, urlsafe_b64encode

import backoff
from sqlalchemy import and_, or_
from werkzeug.exceptions import BadRequest, NotFound, PreconditionFailed, ServiceUnavailable

from consent_service.dao import database_factory
from consent_service.exceptions import InvalidEntity

MAX_INSERT_ATTEMPTS = 50

RANDOM_ID_LENGTH = 24
_RANDOM_ID_ALPHABET = string.ascii_letters + string.digits


class _KeyCollision(Exception):
    ...


class Results:
    """One page of a listing. pagination_token resumes the listing after the last item."""

    def __init__(self, items, pagination_token=None, more_available=False, total=None):
        self.items = items
        self.pagination_token = pagination_token
        self.more_available = more_available
        self.total = total


class BaseDao(object):
    """Reads and inserts one model type.

  Entities that can change after creation use UpdatableDao instead. The *_with_session methods
  join the caller's transaction; the others open and commit a session of their own.
  """

    def __init__(self, model_type, db=None):
        self.model_type = model_type
        self._database = db or database_factory.get_database()

    def session(self):
        return self._database.session()

    def _validate_model(self, session, obj):
        """Hook run before every write of obj."""

    def _validate_insert(self, session, obj):
        self._validate_model(session, obj)

    def insert_with_session(self, session, obj):
        self._validate_insert(session, obj)
        session.add(obj)
        return obj

    def insert(self, obj):
        with self.session() as session:
            return self.insert_with_session(session, obj)

    def get_id(self, obj):
        """The primary key of obj: a scalar, or a tuple for composite keys."""
        raise NotImplementedError

    def get_with_session(self, session, obj_id, for_update=False):
        query = session.query(self.model_type)
        if for_update:
            query = query.with_for_update()
        return query.get(obj_id)

    def get(self, obj_id):
        """Returns the entity with the given key, or None."""
        with self.session() as session:
            return self.get_with_session(session, obj_id)

    def get_or_404_with_session(self, session, obj_id):
        obj = self.get_with_session(session, obj_id)
        if obj is None:
            raise NotFound(f"{self.model_type.__name__} not found.")
        return obj

    def get_all(self):
        with self.session() as session:
            return session.query(self.model_type).all()

    def count(self):
        with self.session() as session:
            return session.query(self.model_type).count()

    @staticmethod
    def _make_pagination_token(key_values):
        return urlsafe_b64encode(json.dumps(key_values, default=json_serial).encode()).decode()

    @staticmethod
    def _unpack_page_token(token):
        try:
            return json.loads(urlsafe_b64decode(str(token)))
        except (TypeError, ValueError):
            raise BadRequest(f"Invalid pagination token: {token}.")

    def _page_by_key(self, query, key_columns, page_size, offset_key=None):
        """Returns a page of the query ordered by the key columns, starting after the row encoded
    in offset_key. The total counts every row the query matches, not just the page."""
        total = query.order_by(None).count()

        if offset_key:
            decoded_vals = self._unpack_page_token(offset_key)
            if not isinstance(decoded_vals, list) or len(decoded_vals) != len(key_columns):
                raise BadRequest(f"Invalid pagination token: {offset_key}.")
            query = query.filter(self._after_key_filter(key_columns, decoded_vals))

        items = query.order_by(*key_columns).limit(page_size + 1).all()
        if len(items) <= page_size:
            return Results(items, None, more_available=False, total=total)

        items = items[:page_size]
        token = self._make_pagination_token([getattr(items[-1], column.key) for column in key_columns])
        return Results(items, token, more_available=True, total=total)

    @staticmethod
    def _after_key_filter(key_columns, key_values):
        """(a, b, c) > (x, y, z) expanded for databases without row value comparisons."""
        clauses = []
        for index, column in enumerate(key_columns):
            equal_prefix = [key_columns[i] == key_values[i] for i in range(index)]
            clauses.append(and_(*equal_prefix, column > key_values[index]))
        return or_(*clauses)

    def insert_with_random_id(self, session, obj, field, length=RANDOM_ID_LENGTH):
        """Inserts an entity under a randomly generated string key, drawing a new key whenever the
    drawn one is already taken."""
        try:
            return self._insert_with_random_id(session, obj, field, length)
        except _KeyCollision:
            logging.warning(f"No free {field} for {self.model_type.__name__} after {MAX_INSERT_ATTEMPTS} draws.")
            raise ServiceUnavailable(f"Could not allocate an identifier after {MAX_INSERT_ATTEMPTS} attempts.")

    @backoff.on_exception(backoff.constant, _KeyCollision, max_tries=MAX_INSERT_ATTEMPTS, interval=0, jitter=None)
    def _insert_with_random_id(self, session, obj, field, length):
        new_key = self.get_random_id(length)
        key_column = getattr(self.model_type, field)
        if session.query(key_column).filter(key_column == new_key).first() is not None:
            raise _KeyCollision(f"{self.model_type.__name__} already exists with {field} {new_key}")
        setattr(obj, field, new_key)
        return self.insert_with_session(session, obj)

    @staticmethod
    def get_random_id(length=RANDOM_ID_LENGTH):
        return ''.join(secrets.choice(_RANDOM_ID_ALPHABET) for _ in range(length))

    def to_client_json(self, model):
        raise NotImplementedError()

    def from_client_json(self, resource, **kwargs):
        """Builds a model from a request body.

    Implementations accept app_id for app-scoped entities, plus id_ and expected_version when the
    body updates an existing entity.
    """
        raise NotImplementedError()


class UpdatableDao(BaseDao):
    """A DAO for versioned entities.

  Models carry an integer version starting at 1. An update naming a version that differs from the
  stored one is rejected with 412 unless validate_version_match is turned off.
  """

    validate_version_match = True

    def insert_with_session(self, session, obj):
        obj.version = 1
        return super(UpdatableDao, self).insert_with_session(session, obj)

    def _validate_update(self, session, obj, existing_obj):
        if not existing_obj:
            raise NotFound(f"{self.model_type.__name__} with id {self.get_id(obj)} does not exist")
        if self.validate_version_match and obj.version is not None and existing_obj.version != obj.version:
            raise PreconditionFailed(
                f"Update was based on version {obj.version} but version {existing_obj.version} is stored"
            )
        self._validate_model(session, obj)

    # pylint: disable=unused-argument
    def _do_update(self, session, obj, existing_obj):
        obj.version = existing_obj.version + 1
        return session.merge(obj)

    def get_for_update(self, session, obj_id):
        return self.get_with_session(session, obj_id, for_update=True)

    def update_with_session(self, session, obj):
        """Writes obj over the stored entity with the same key and bumps its version."""
        existing_obj = self.get_for_update(session, self.get_id(obj))
        self._validate_update(session, obj, existing_obj)
        return self._do_update(session, obj, existing_obj)

    def update(self, obj):
        with self.session() as session:
            return self.update_with_session(session, obj)


def json_serial(obj):
    """json.dumps default for dates, sets and enums."""
    if isinstance(obj, (datetime.datetime, datetime.date)):
        return obj.isoformat()
    if isinstance(obj, set):
        return sorted(obj)
    if hasattr(obj, "name"):
        return obj.name
    raise TypeError(f"{type(obj).__name__} is not JSON serializable")


def escape_like(value):
    """Escapes LIKE wildcards so value only matches itself. Use with escape='\\'."""
    return value.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')


def required_field(resource, field_name):
    """Returns a non-blank field of a client JSON object, or raises InvalidEntity."""
    value = resource.get(field_name) if isinstance(resource, dict) else None
    if value is None or (isinstance(value, str) and not value.strip()):
        raise InvalidEntity(f"{field_name} is required")
    return value
