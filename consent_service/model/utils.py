"""Column types shared by the models."""
import pytz
from sqlalchemy import DateTime, JSON, SmallInteger
from sqlalchemy.types import TypeDecorator

from consent_service.logic.criteria import Criteria


class Enum(TypeDecorator):
    """A type for a SQLAlchemy column based on a python Enum, stored as its integer value."""

    impl = SmallInteger
    cache_ok = True

    def __init__(self, enum_type):
        super(Enum, self).__init__()
        self.enum_type = enum_type

    def __repr__(self):
        return "Enum(%s)" % self.enum_type.__name__

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if not isinstance(value, self.enum_type):
            value = self.enum_type.from_name(value)
        return value.value

    def process_result_value(self, value, dialect):
        return self.enum_type(value) if value is not None else None


class CriteriaType(TypeDecorator):
    """Stores a Criteria value object as JSON."""

    impl = JSON
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, dict):
            value = Criteria.from_json(value)
        return value.to_json()

    def process_result_value(self, value, dialect):
        return Criteria.from_json(value) if value is not None else None


class UTCDateTime(TypeDecorator):
    """Stores datetimes as naive UTC, converting timezone aware values on the way in."""

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None and value.tzinfo is not None:
            value = value.astimezone(pytz.utc).replace(tzinfo=None)
        return value
