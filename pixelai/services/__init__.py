"""
SERVICES PACKAGE
=================

Stateful logic lives here. The terminal client (pixelai.cli) calls these
services; they don't print or prompt, only manage conversation state.

MODULES:
    store            - PersistentStore (JSON files) and MemoryStore, namespaced key-value.
    inference_client - HTTP boundary: POST /ask, GET /sessions, GET /history/{id}.
    history_index    - Per-namespace session list, newest first, capped.
    mode_machine     - Active assistant mode and which transitions clear the transcript.
    identity         - Guest/authenticated namespace and credential, with change listeners.
    conversation     - ConversationController: turn-taking, binding, persistence.
"""
