"""
Destination labels: general room, group ids, private conversation keys.
"""
import random
import time
from enum import Enum
from typing import List

from app.core.config import settings


class Destination(str, Enum):
    GENERAL = "general"
    GROUP = "group"
    DIRECT = "direct"


def get_private_chat_key(a: str, b: str) -> str:
    """Same key from either side: smaller id first."""
    first, second = sorted((a, b))
    return f"{first}{settings.CONVERSATION_KEY_SEPARATOR}{second}"


def split_conversation_key(label: str) -> List[str]:
    """Participant ids of a private key. A bare connection id yields itself."""
    return [part for part in label.split(settings.CONVERSATION_KEY_SEPARATOR) if part]


def is_group_id(label: str) -> bool:
    return label.startswith(settings.GROUP_ID_PREFIX)


def classify_destination(label: str) -> Destination:
    """First match wins: general, then group prefix, then direct."""
    if label == settings.GENERAL_ROOM:
        return Destination.GENERAL
    if is_group_id(label):
        return Destination.GROUP
    return Destination.DIRECT


def new_group_id() -> str:
    return f"{settings.GROUP_ID_PREFIX}{int(time.time() * 1000)}-{random.randint(0, 999)}"
