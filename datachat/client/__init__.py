"""HTTP access to the data-analysis backend.

Responsibilities:
    - Multipart submissions of prompts and data files
    - Server-sent event stream consumption
    - Figure URL resolution with placeholder fallback
"""

from datachat.client.backend import (
    STREAM_SENTINEL,
    BackendClient,
    BackendError,
    BackendRejected,
    BackendUnavailable,
    build_form,
)

__all__ = [
    "STREAM_SENTINEL",
    "BackendClient",
    "BackendError",
    "BackendRejected",
    "BackendUnavailable",
    "build_form",
]
