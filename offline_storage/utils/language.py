"""
Language tag helpers used when choosing which audio language to store.
"""

from enum import Enum


class MatchType(Enum):
    """How closely a candidate language tag must match a preference."""

    EXACT = "exact"
    BASE_LANGUAGE_OKAY = "base_language_okay"
    OTHER_SUB_LANGUAGE_OKAY = "other_sub_language_okay"


def normalize(language: str | None) -> str:
    """Lower-cases a language tag and uses '-' as the subtag separator."""
    if not language:
        return ""
    return language.strip().replace("_", "-").lower()


def base_language(language: str) -> str:
    """Returns the primary subtag, e.g. 'en' for 'en-US'."""
    return normalize(language).split("-", 1)[0]


def match(match_type: MatchType, preference: str, candidate: str) -> bool:
    """
    Checks a candidate language against a preference for one match type.

    EXACT requires identical tags. BASE_LANGUAGE_OKAY accepts a candidate that
    is exactly the preference's base language ('en' for 'en-AU').
    OTHER_SUB_LANGUAGE_OKAY accepts any candidate sharing the base language
    ('fr-CA' for 'fr-FR').
    """
    preference = normalize(preference)
    candidate = normalize(candidate)
    if not preference or not candidate:
        return False

    if match_type is MatchType.EXACT:
        return preference == candidate
    if match_type is MatchType.BASE_LANGUAGE_OKAY:
        return base_language(preference) == candidate
    if match_type is MatchType.OTHER_SUB_LANGUAGE_OKAY:
        return base_language(preference) == base_language(candidate)
    return False
