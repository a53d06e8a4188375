"""Column types shared by the SQLModel tables."""
from sqlalchemy import DateTime, Integer
from sqlalchemy.types import TypeDecorator

from tasktrack.clock import to_utc


class IntEnumType(TypeDecorator):
    """Persist an IntEnum as its integer value and load it back as the member."""

    impl = Integer
    cache_ok = True

    def __init__(self, enum_class, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.enum_class = enum_class

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return int(self.enum_class.parse(value))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return self.enum_class(value)


class UTCDateTime(TypeDecorator):
    """
    Store datetimes as UTC without an offset and load them back as aware UTC.

    SQLite keeps no zone information, so the offset is stripped on the way in
    and reattached on the way out. Naive input is taken to be UTC.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return to_utc(value).replace(tzinfo=None)

    def process_result_value(self, value, dialect):
        return to_utc(value)
