"""Task enums, stored as integers and exposed to clients by label."""
from enum import IntEnum


class LabelledIntEnum(IntEnum):
    """IntEnum that also parses from and renders to a human label."""

    @property
    def label(self) -> str:
        return self.name.capitalize()

    @classmethod
    def parse(cls, value):
        """
        Accept a member, its integer value, or its label (case-insensitive).

        Raises:
            ValueError: If the value does not name a member
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, bool):
            raise ValueError(f"{value!r} is not a valid {cls.__name__}")
        if isinstance(value, int):
            return cls(value)
        if isinstance(value, str):
            text = value.strip()
            if text.isdigit():
                return cls(int(text))
            try:
                return cls[text.upper()]
            except KeyError:
                pass
        raise ValueError(f"{value!r} is not a valid {cls.__name__}")

    @classmethod
    def labels(cls):
        return [member.label for member in cls]


class Priority(LabelledIntEnum):
    LOW = 1
    MEDIUM = 2
    HIGH = 3
    CRITICAL = 4


class Category(LabelledIntEnum):
    GENERAL = 1
    WORK = 2
    PERSONAL = 3
    HEALTH = 4
    FINANCE = 5
    EDUCATION = 6
    SHOPPING = 7
    TRAVEL = 8
