"""Language enums."""

from enum import Enum


class Language(str, Enum):
    HINDI = "hi"
    ENGLISH = "en"

    @classmethod
    def has_value(cls, value: str) -> bool:
        return value in cls._value2member_map_


DEFAULT_LANGUAGE = Language.HINDI
