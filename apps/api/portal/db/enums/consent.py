"""Consent enums and the purposes shown to citizens."""

from enum import Enum

from portal.db.enums.language import Language


class ConsentType(str, Enum):
    SESSION = "session"
    DATA_FETCH = "data_fetch"
    SUBMISSION = "submission"
    GRIEVANCE = "grievance"
    DATA_SHARE = "data_share"

    @classmethod
    def has_value(cls, value: str) -> bool:
        return value in cls._value2member_map_


_PURPOSES: dict[ConsentType, dict[Language, str]] = {
    ConsentType.SESSION: {
        Language.HINDI: "सत्र सहमति",
        Language.ENGLISH: "Session consent",
    },
    ConsentType.DATA_FETCH: {
        Language.HINDI: "आपकी जन आधार जानकारी प्राप्त करने के लिए आपकी अनुमति आवश्यक है",
        Language.ENGLISH: "Your permission is required to fetch your Jan Aadhaar information",
    },
    ConsentType.SUBMISSION: {
        Language.HINDI: "आवेदन जमा करने की सहमति",
        Language.ENGLISH: "Application submission consent",
    },
    ConsentType.GRIEVANCE: {
        Language.HINDI: "इस शिकायत को दर्ज करने के लिए आपकी अनुमति आवश्यक है",
        Language.ENGLISH: "Your permission is required to register this grievance",
    },
    ConsentType.DATA_SHARE: {
        Language.HINDI: "आपकी जानकारी संबंधित विभाग के साथ साझा करने के लिए अनुमति आवश्यक है",
        Language.ENGLISH: "Your permission is required to share your information with the relevant department",
    },
}


def default_purpose(consent_type: ConsentType, language: str | None) -> str:
    """Purpose text for ``consent_type`` in ``language`` (Hindi when unknown)."""
    lang = Language(language) if language and Language.has_value(language) else Language.HINDI
    return _PURPOSES[consent_type][lang]


def default_purposes(consent_type: ConsentType) -> tuple[str, str]:
    """(hindi, english) purpose pair for ``consent_type``."""
    texts = _PURPOSES[consent_type]
    return texts[Language.HINDI], texts[Language.ENGLISH]
