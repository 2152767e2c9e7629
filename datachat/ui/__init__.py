"""NiceGUI interface - thin visualization layer for the analyst chat.

Responsibilities:
    - Landing page with prompt box, file picker and starter suggestions
    - Chat panel rendering the session's message log
    - Live status line while an analysis streams
    - Figure cards with placeholder fallback and zoom view

Contains minimal business logic. Delegates to the chat orchestrator,
the stream manager and the session store.
"""
