"""
PIXELAI CLIENT PACKAGE
======================

This directory is the main Python package for the PixelAI conversational
client. It owns the conversation/session state engine: message sequencing,
optimistic updates, guest vs authenticated persistence, session id binding,
and the per-namespace history list.

  from pixelai.services.conversation import ConversationController
  from pixelai.models import Message, SessionRecord

FILE STRUCTURE:
  pixelai/
    __init__.py   - This file; marks 'pixelai' as a package.
    models.py     - Pydantic models for messages, session records, and API payloads.
    errors.py     - Error taxonomy (empty input, network, malformed reply, ...).
    cli.py        - Interactive terminal client (presentation only).
    services/     - Stateful components: store, inference client, history, modes, identity, controller.
    utils/        - Helpers: UTC timestamps, markdown export.
"""
