"""Integration tests for components working together over HTTP.

Coverage:
    - Backend client against a fake analysis backend
    - Submission proxy endpoint
    - Full submit -> stream -> message log flow
"""
