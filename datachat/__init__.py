"""Data Analyst Chat - streaming chat front end for a data-analysis backend.

Combines FastAPI for the submission proxy, httpx for backend access and
server-sent event consumption, NiceGUI for the chat interface, and Pydantic
for data validation.

Components:
    - parsing: figure reference decoding in assistant replies
    - session: per-tab keyed message logs
    - stream: per-session event stream connections
    - chat: submission orchestration
    - client: backend HTTP client
    - api: FastAPI proxy endpoints
    - ui: web interface
    - models: data and wire schemas
"""

__version__ = "0.1.0"
