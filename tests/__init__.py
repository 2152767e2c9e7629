"""Test package for the Data Analyst chat front end.

Structure:
    - unit/: decoder, store, stream manager and orchestrator in isolation
    - integration/: backend client and proxy over real HTTP (ASGI transport)

Integration tests run against an in-process fake of the analysis backend.
"""
