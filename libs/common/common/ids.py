from __future__ import annotations

from typing import NewType
from uuid import uuid4

HandId = NewType("HandId", str)
EventId = NewType("EventId", str)


def new_hand_id() -> HandId:
    return HandId(uuid4().hex)


def new_event_id() -> EventId:
    return EventId(uuid4().hex)
