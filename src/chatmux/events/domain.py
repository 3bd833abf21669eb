"""Event names published by the conversation engine and their payloads."""

from __future__ import annotations

from dataclasses import dataclass

MESSAGE_APPENDED = "message.appended"
MESSAGE_WITHDRAWN = "message.withdrawn"
TITLE_UPDATED = "title.updated"
CONVERSATION_CREATED = "conversation.created"
CONVERSATION_DELETED = "conversation.deleted"
CONVERSATION_RESET = "conversation.reset"
CONVERSATION_LOADED = "conversation.loaded"
INFLIGHT_STARTED = "inflight.started"
INFLIGHT_FINISHED = "inflight.finished"
ERROR_OCCURRED = "error.occurred"
STATUS_TEMPORARY = "status.temporary"


@dataclass
class TitleUpdated:
    conversation_id: str
    title: str


@dataclass
class ErrorOccurred:
    source: str  # "store", "provider", "search", "enhancer"
    message: str
