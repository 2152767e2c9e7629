"""Unit tests for individual components in isolation.

Coverage:
    - parsing/: figure marker decoding
    - session/: append-only store semantics
    - stream/: frame classification and connection state machine
    - chat/: submission validation and orchestration

Uses scripted event sources and mocks instead of HTTP.
"""
