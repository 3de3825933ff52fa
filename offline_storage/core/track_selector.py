"""
The built-in policy for choosing which tracks of a period to store.
"""

import logging

from offline_storage.models.config import DEFAULT_MAX_SD_HEIGHT
from offline_storage.models.tracks import TEXT, VARIANT, Track
from offline_storage.utils import language as language_utils

log = logging.getLogger(__name__)

_MATCH_TIERS = (
    language_utils.MatchType.EXACT,
    language_utils.MatchType.BASE_LANGUAGE_OKAY,
    language_utils.MatchType.OTHER_SUB_LANGUAGE_OKAY,
)


def _filter_by_language(variants: list[Track], preferred_language: str) -> list[Track]:
    """
    Returns the variants of the best available language tier: exact, base
    language, sibling sub-language, then primary. Falls back to every variant,
    with a warning, when no tier matches.
    """
    for match_type in _MATCH_TIERS:
        matches = [
            t
            for t in variants
            if language_utils.match(match_type, preferred_language, t.language)
        ]
        if matches:
            return matches

    primary = [t for t in variants if t.primary]
    if primary:
        return primary

    log.warning(
        "[yellow]No variant matches the preferred language "
        f"'{preferred_language}' and none is primary; storing an arbitrary one.[/yellow]"
    )
    return list(variants)


def _pick_resolution_and_bandwidth(variants: list[Track], max_sd_height: int) -> Track:
    """
    Picks the tallest variant at or below the SD cutoff (or the shortest one if
    none fits), then the middle bandwidth among variants of that height.
    """
    by_height = sorted(variants, key=lambda t: t.height or 0)
    sd_variants = [t for t in by_height if (t.height or 0) <= max_sd_height]
    if sd_variants:
        selected_height = sd_variants[-1].height or 0
    else:
        selected_height = by_height[0].height or 0

    candidates = [t for t in by_height if (t.height or 0) == selected_height]
    candidates.sort(key=lambda t: t.bandwidth)
    return candidates[len(candidates) // 2]


def select_tracks(
    tracks: list[Track],
    preferred_language: str = "",
    max_sd_height: int = DEFAULT_MAX_SD_HEIGHT,
) -> list[Track]:
    """
    Chooses one variant track plus every text track.

    Args:
        tracks: All variant and text tracks of a period.
        preferred_language: The preferred audio language tag.
        max_sd_height: The tallest video height considered standard definition.

    Returns:
        The selected variant (if any) followed by all text tracks.
    """
    variants = [t for t in tracks if t.type == VARIANT]
    selected: list[Track] = []

    if variants:
        variants = _filter_by_language(variants, preferred_language)
        selected.append(_pick_resolution_and_bandwidth(variants, max_sd_height))

    selected.extend(t for t in tracks if t.type == TEXT)
    return selected
