"""
Encodes stored record ids as offline URIs and parses them back.

Offline URIs are the only identifiers callers ever see for stored content:
``offline:manifest/<id>`` for a stored manifest and ``offline:segment/<id>``
for a stored segment.
"""

import re
from typing import Optional

SCHEME = "offline"

_URI_PATTERN = re.compile(r"offline:(?P<kind>manifest|segment)/(?P<id>0|[1-9][0-9]*)")


def _parse(uri: str, kind: str) -> Optional[int]:
    if not isinstance(uri, str):
        return None
    match = _URI_PATTERN.fullmatch(uri)
    if not match or match.group("kind") != kind:
        return None
    return int(match.group("id"))


def manifest_id_to_uri(manifest_id: int) -> str:
    """Returns the offline URI for a stored manifest id."""
    return f"{SCHEME}:manifest/{manifest_id}"


def uri_to_manifest_id(uri: str) -> Optional[int]:
    """Returns the manifest id encoded in an offline URI, or None if malformed."""
    return _parse(uri, "manifest")


def segment_id_to_uri(segment_id: int) -> str:
    """Returns the offline URI for a stored segment id."""
    return f"{SCHEME}:segment/{segment_id}"


def uri_to_segment_id(uri: str) -> Optional[int]:
    """Returns the segment id encoded in an offline URI, or None if malformed."""
    return _parse(uri, "segment")
