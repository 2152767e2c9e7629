"""Decoder for figure references embedded in assistant replies.

The analysis backend writes figure references inline as ``<<<name.png>>>``.
This module splits such text into ordered text and resource segments.
"""

import re
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import TypeVar

T = TypeVar("T")

# <<<name>>> where name has no '>' characters
RESOURCE_MARKER = re.compile(r"<<<([^>]+)>>>")


@dataclass(frozen=True)
class TextSegment:
    """Plain text between figure references."""

    text: str


@dataclass(frozen=True)
class ResourceSegment:
    """Reference to an out-of-band artifact such as a chart image."""

    filename: str


Segment = TextSegment | ResourceSegment


class ContentSegments:
    """Lazy view over the segments of a message.

    Iteration scans the content on demand and can be repeated; nothing is
    cached between passes.
    """

    def __init__(self, content: str) -> None:
        self._content = content or ""

    def __iter__(self) -> Iterator[Segment]:
        content = self._content
        cursor = 0
        for match in RESOURCE_MARKER.finditer(content):
            filename = match.group(1).strip()
            if not filename:
                # Blank marker stays part of the surrounding text
                continue
            text = content[cursor : match.start()].strip()
            if text:
                yield TextSegment(text)
            yield ResourceSegment(filename)
            cursor = match.end()
        tail = content[cursor:].strip()
        if tail:
            yield TextSegment(tail)

    def __repr__(self) -> str:
        return f"ContentSegments({self._content!r})"


def iter_segments(content: str) -> ContentSegments:
    """Split message content into text and resource segments.

    Args:
        content: Raw message text.

    Returns:
        A restartable iterable of TextSegment and ResourceSegment items in
        document order. Unterminated or empty markers are left as text.
    """
    return ContentSegments(content)


def resource_names(content: str) -> list[str]:
    """Return referenced filenames in the order they appear."""
    return [s.filename for s in iter_segments(content) if isinstance(s, ResourceSegment)]


def render_content(
    content: str,
    render_text: Callable[[str], T],
    render_resource: Callable[[str], T],
) -> list[T]:
    """Render each segment of ``content`` with the matching callback.

    ``render_resource`` is called exactly once per figure reference, in
    document order.

    Args:
        content: Raw message text.
        render_text: Called with the text of each text segment.
        render_resource: Called with the filename of each resource segment.

    Returns:
        Callback results in document order.
    """
    rendered: list[T] = []
    for segment in iter_segments(content):
        if isinstance(segment, ResourceSegment):
            rendered.append(render_resource(segment.filename))
        else:
            rendered.append(render_text(segment.text))
    return rendered
