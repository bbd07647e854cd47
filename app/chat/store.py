"""
Membership store: presence table, group records, message authorship.

The router owns one store instance. The in-memory store is the default;
the Redis store keeps the same tables in Redis.
"""
import json
import logging
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Dict, Iterator, List, Optional

import redis

from app.schema.chat import Group

logger = logging.getLogger(__name__)


class MembershipStore(ABC):
    """get / set / delete / iterate over connections, groups and message authors."""

    # --- presence ---

    @abstractmethod
    def add_connection(self, connection_id: str) -> None:
        """Record a live connection that has not registered a name yet."""

    @abstractmethod
    def has_connection(self, connection_id: str) -> bool:
        ...

    @abstractmethod
    def set_user(self, connection_id: str, name: str) -> None:
        ...

    @abstractmethod
    def get_user(self, connection_id: str) -> Optional[str]:
        ...

    @abstractmethod
    def delete_user(self, connection_id: str) -> None:
        """Forget the connection and its name."""

    @abstractmethod
    def iter_users(self) -> Dict[str, str]:
        """connection id -> display name, registered connections only."""

    # --- groups ---

    @abstractmethod
    def get_group(self, group_id: str) -> Optional[Group]:
        """Returns a copy; call save_group to persist changes."""

    @abstractmethod
    def save_group(self, group: Group) -> None:
        ...

    @abstractmethod
    def delete_group(self, group_id: str) -> None:
        ...

    @abstractmethod
    def iter_groups(self) -> Iterator[Group]:
        ...

    # --- authorship ---

    @abstractmethod
    def claim_author(self, message_id: str, connection_id: str) -> bool:
        """First sender of an id owns it. True when connection_id is (now) the owner."""

    @abstractmethod
    def get_author(self, message_id: str) -> Optional[str]:
        ...

    @abstractmethod
    def forget_author(self, message_id: str) -> None:
        ...

    @abstractmethod
    def forget_authored_by(self, connection_id: str) -> None:
        """Drop every authorship record held by a connection."""

    @abstractmethod
    def clear(self) -> None:
        """Forget everything. Connection ids do not survive a restart."""


class InMemoryMembershipStore(MembershipStore):
    def __init__(self, max_author_records: int = 10000) -> None:
        # connection_id -> name (None until register)
        self._users: Dict[str, Optional[str]] = {}
        self._groups: Dict[str, Group] = {}
        # message_id -> author, oldest first; capped at max_author_records
        self._authors: "OrderedDict[str, str]" = OrderedDict()
        self._max_author_records = max_author_records

    def add_connection(self, connection_id: str) -> None:
        self._users.setdefault(connection_id, None)

    def has_connection(self, connection_id: str) -> bool:
        return connection_id in self._users

    def set_user(self, connection_id: str, name: str) -> None:
        self._users[connection_id] = name

    def get_user(self, connection_id: str) -> Optional[str]:
        return self._users.get(connection_id)

    def delete_user(self, connection_id: str) -> None:
        self._users.pop(connection_id, None)

    def iter_users(self) -> Dict[str, str]:
        return {cid: name for cid, name in self._users.items() if name is not None}

    def get_group(self, group_id: str) -> Optional[Group]:
        group = self._groups.get(group_id)
        return group.model_copy(deep=True) if group else None

    def save_group(self, group: Group) -> None:
        self._groups[group.id] = group.model_copy(deep=True)

    def delete_group(self, group_id: str) -> None:
        self._groups.pop(group_id, None)

    def iter_groups(self) -> Iterator[Group]:
        for group in list(self._groups.values()):
            yield group.model_copy(deep=True)

    def claim_author(self, message_id: str, connection_id: str) -> bool:
        owner = self._authors.setdefault(message_id, connection_id)
        while len(self._authors) > self._max_author_records:
            self._authors.popitem(last=False)
        return owner == connection_id

    def get_author(self, message_id: str) -> Optional[str]:
        return self._authors.get(message_id)

    def forget_author(self, message_id: str) -> None:
        self._authors.pop(message_id, None)

    def forget_authored_by(self, connection_id: str) -> None:
        for mid in [m for m, cid in self._authors.items() if cid == connection_id]:
            del self._authors[mid]

    def clear(self) -> None:
        self._users.clear()
        self._groups.clear()
        self._authors.clear()


class RedisMembershipStore(MembershipStore):
    """
    Presence and groups as Redis hashes: <prefix>:users, <prefix>:groups.
    Authorship as one key per message, <prefix>:author:<message_id>, expiring
    after author_ttl seconds, indexed per connection in <prefix>:authored:<connection_id>.
    """

    def __init__(self, client: redis.Redis, key_prefix: str = "chat", author_ttl: int = 86400) -> None:
        self._client = client
        self._prefix = key_prefix
        self._users_key = f"{key_prefix}:users"
        self._groups_key = f"{key_prefix}:groups"
        self._author_ttl = author_ttl

    def _author_key(self, message_id: str) -> str:
        return f"{self._prefix}:author:{message_id}"

    def _authored_key(self, connection_id: str) -> str:
        return f"{self._prefix}:authored:{connection_id}"

    @classmethod
    def from_settings(cls, host: str, port: int, db: int, key_prefix: str, author_ttl: int) -> "RedisMembershipStore":
        pool = redis.ConnectionPool(
            host=host,
            port=port,
            db=db,
            decode_responses=True,
            max_connections=10,
        )
        logger.info(f"Redis membership store: {host}:{port}/{db}, prefix: {key_prefix}")
        return cls(redis.Redis(connection_pool=pool), key_prefix=key_prefix, author_ttl=author_ttl)

    def add_connection(self, connection_id: str) -> None:
        self._client.hsetnx(self._users_key, connection_id, json.dumps(None))

    def has_connection(self, connection_id: str) -> bool:
        return bool(self._client.hexists(self._users_key, connection_id))

    def set_user(self, connection_id: str, name: str) -> None:
        self._client.hset(self._users_key, connection_id, json.dumps(name))

    def get_user(self, connection_id: str) -> Optional[str]:
        raw = self._client.hget(self._users_key, connection_id)
        return json.loads(raw) if raw is not None else None

    def delete_user(self, connection_id: str) -> None:
        self._client.hdel(self._users_key, connection_id)

    def iter_users(self) -> Dict[str, str]:
        users = {}
        for cid, raw in self._client.hgetall(self._users_key).items():
            name = json.loads(raw)
            if name is not None:
                users[cid] = name
        return users

    def get_group(self, group_id: str) -> Optional[Group]:
        raw = self._client.hget(self._groups_key, group_id)
        return Group.model_validate_json(raw) if raw is not None else None

    def save_group(self, group: Group) -> None:
        self._client.hset(self._groups_key, group.id, group.model_dump_json(by_alias=True))

    def delete_group(self, group_id: str) -> None:
        self._client.hdel(self._groups_key, group_id)

    def iter_groups(self) -> Iterator[Group]:
        raws: List[str] = list(self._client.hgetall(self._groups_key).values())
        for raw in raws:
            yield Group.model_validate_json(raw)

    def claim_author(self, message_id: str, connection_id: str) -> bool:
        key = self._author_key(message_id)
        if self._client.set(key, connection_id, nx=True, ex=self._author_ttl):
            index = self._authored_key(connection_id)
            self._client.sadd(index, message_id)
            self._client.expire(index, self._author_ttl)
            return True
        return self._client.get(key) == connection_id

    def get_author(self, message_id: str) -> Optional[str]:
        return self._client.get(self._author_key(message_id))

    def forget_author(self, message_id: str) -> None:
        key = self._author_key(message_id)
        owner = self._client.get(key)
        self._client.delete(key)
        if owner is not None:
            self._client.srem(self._authored_key(owner), message_id)

    def forget_authored_by(self, connection_id: str) -> None:
        index = self._authored_key(connection_id)
        for mid in self._client.smembers(index):
            # An expired id may since have been claimed by someone else
            if self._client.get(self._author_key(mid)) == connection_id:
                self._client.delete(self._author_key(mid))
        self._client.delete(index)

    def clear(self) -> None:
        self._client.delete(self._users_key, self._groups_key)
        for pattern in (f"{self._prefix}:author:*", f"{self._prefix}:authored:*"):
            stale = list(self._client.scan_iter(match=pattern))
            if stale:
                self._client.delete(*stale)


def build_store(settings) -> MembershipStore:
    """Store selected by CHAT_STORE_BACKEND."""
    if settings.use_redis_store:
        return RedisMembershipStore.from_settings(
            host=settings.REDIS_HOST,
            port=settings.REDIS_PORT,
            db=settings.REDIS_DB,
            key_prefix=settings.REDIS_KEY_PREFIX,
            author_ttl=settings.AUTHOR_RECORD_TTL_SECONDS,
        )
    return InMemoryMembershipStore(max_author_records=settings.MAX_AUTHOR_RECORDS)
