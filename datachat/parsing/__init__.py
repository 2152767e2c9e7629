"""Message content decoding.

Turns assistant replies into structured segments for rendering.

Responsibilities:
    - Locating ``<<<figure>>>`` markers in free text
    - Splitting text and figure references in document order
    - Treating malformed markers as literal text

Pure functions only; no network or session state.
"""

from datachat.parsing.content_parser import (
    ContentSegments,
    ResourceSegment,
    Segment,
    TextSegment,
    iter_segments,
    render_content,
    resource_names,
)

__all__ = [
    "ContentSegments",
    "ResourceSegment",
    "Segment",
    "TextSegment",
    "iter_segments",
    "render_content",
    "resource_names",
]
