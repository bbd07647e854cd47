"""
Event router: turns one inbound chat event into the outbound events it causes.

Handlers are synchronous. Each one finishes its state change before the
next event is handled and returns a list of Emit instructions; delivery to
sockets happens afterwards in the connection manager.

Invalid input is never an error on this boundary: unknown events, payloads
that fail validation, unknown groups, non-members, non-hosts and non-authors
all produce no events.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple, Type

from pydantic import BaseModel, ValidationError

from app.chat.conversation import (
    Destination,
    classify_destination,
    new_group_id,
    split_conversation_key,
)
from app.chat.store import MembershipStore
from app.core.config import settings
from app.schema.chat import (
    AcceptJoinGroupBody,
    ChatConfig,
    ChatConfigUpdate,
    ChatMessageOut,
    CreateGroupBody,
    DeleteMessageBody,
    EditMessageBody,
    Group,
    GroupMessageBody,
    JoinGroupBody,
    SendMediaBody,
    SendMessageBody,
    TypingBody,
)

logger = logging.getLogger(__name__)


@dataclass
class Emit:
    """One outbound event. to=None means every live connection."""
    event: str
    payload: Any
    to: Optional[List[str]] = None
    exclude: Optional[str] = None


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class EventRouter:
    """Routes chat events between connections. Owns the membership store and the chat config."""

    def __init__(self, store: MembershipStore, config: Optional[ChatConfig] = None) -> None:
        self.store = store
        self.config = config or ChatConfig()
        self._handlers: Dict[str, Tuple[Callable[[str, Any], List[Emit]], Optional[Type[BaseModel]]]] = {
            "register": (self.register, None),
            "updateConfig": (self.update_config, None),
            "sendMessage": (self.send_message, SendMessageBody),
            "sendMedia": (self.send_media, SendMediaBody),
            "deleteMessage": (self.delete_message, DeleteMessageBody),
            "editMessage": (self.edit_message, EditMessageBody),
            "typing": (self.typing, TypingBody),
            "stopTyping": (self.stop_typing, TypingBody),
            "createGroup": (self.create_group, CreateGroupBody),
            "requestJoinGroup": (self.request_join_group, JoinGroupBody),
            "acceptJoinGroup": (self.accept_join_group, AcceptJoinGroupBody),
            "sendGroupMessage": (self.send_group_message, GroupMessageBody),
        }

    def dispatch(self, connection_id: str, event: str, data: Any) -> List[Emit]:
        """Validate and handle one inbound event."""
        entry = self._handlers.get(event)
        if entry is None:
            logger.warning("Unknown event %r from %s", event, connection_id)
            return []
        handler, schema = entry
        body = data
        if schema is not None:
            try:
                body = schema.model_validate(data if data is not None else {})
            except ValidationError as e:
                logger.warning("Dropped %s from %s: invalid payload (%s)", event, connection_id, e.error_count())
                return []
        try:
            return handler(connection_id, body)
        except Exception:
            logger.exception("Handler for %s failed (connection %s)", event, connection_id)
            return []

    # --- helpers ---

    def _targets(self, label: str) -> Optional[List[str]]:
        """Connections behind a destination label. None means everyone."""
        destination = classify_destination(label)
        if destination is Destination.GENERAL:
            return None
        if destination is Destination.GROUP:
            group = self.store.get_group(label)
            if group is None:
                logger.debug("No group %s; dropping", label)
                return []
            return list(group.members)
        return split_conversation_key(label)

    def _fanout(self, event: str, payload: Any, label: str, exclude: Optional[str] = None) -> List[Emit]:
        targets = self._targets(label)
        if targets is None:
            return [Emit(event, payload, exclude=exclude)]
        targets = [cid for cid in dict.fromkeys(targets) if cid != exclude]
        return [Emit(event, payload, to=targets)] if targets else []

    def _can_send(self, destination: Destination) -> bool:
        if not self.config.chat_enabled:
            return False
        if self.config.general_only and destination is not Destination.GENERAL:
            return False
        return True

    def _claim(self, connection_id: str, message_id: Any) -> bool:
        """Message ids belong to their first sender; reuse by anyone else is dropped."""
        if self.store.claim_author(str(message_id), connection_id):
            return True
        logger.warning("Dropped message %s from %s: id belongs to another sender", message_id, connection_id)
        return False

    def _is_author(self, connection_id: str, message_id: Any) -> bool:
        return self.store.get_author(str(message_id)) == connection_id

    def _config_changed(self) -> Emit:
        return Emit("configChanged", self.config.model_dump(by_alias=True))

    def _users_changed(self) -> Emit:
        return Emit("updateUsers", self.store.iter_users())

    # --- lifecycle ---

    def connect(self, connection_id: str) -> List[Emit]:
        """New connection: it gets its id, the current groups and the config."""
        self.store.add_connection(connection_id)
        me = [connection_id]
        return [
            Emit("connected", {"connectionId": connection_id}, to=me),
            Emit("existingGroups", [g.to_payload() for g in self.store.iter_groups()], to=me),
            Emit("configChanged", self.config.model_dump(by_alias=True), to=me),
        ]

    def disconnect(self, connection_id: str) -> List[Emit]:
        """Drop presence and authorship; delete hosted groups, leave the rest."""
        self.store.delete_user(connection_id)
        self.store.forget_authored_by(connection_id)
        emits = [self._users_changed()]
        for group in list(self.store.iter_groups()):
            if group.host == connection_id:
                self.store.delete_group(group.id)
                logger.info("Group %s deleted: host %s left", group.id, connection_id)
                emits.append(Emit("groupDeleted", {"groupId": group.id}))
                continue
            # The host is always a member, so a group reaching here never ends up empty.
            if group.remove_member(connection_id):
                self.store.save_group(group)
                emits.append(Emit("groupUpdated", group.to_payload()))
        return emits

    # --- presence & config ---

    def register(self, connection_id: str, name: Any) -> List[Emit]:
        if not isinstance(name, str):
            logger.warning("Dropped register from %s: name must be a string", connection_id)
            return []
        self.store.set_user(connection_id, name)
        return [self._users_changed()]

    def update_config(self, connection_id: str, partial: Any) -> List[Emit]:
        """Merge known fields; any unknown field rejects the whole update."""
        try:
            update = ChatConfigUpdate.model_validate(partial if partial is not None else {})
        except ValidationError as e:
            logger.warning("Rejected config update from %s: %s", connection_id, e.errors())
            return []
        self.config = self.config.model_copy(update=update.model_dump(exclude_none=True))
        logger.info("Chat config updated: %s", self.config.model_dump(by_alias=True))
        return [self._config_changed()]

    def set_chat_enabled(self, enabled: bool) -> List[Emit]:
        """Admin toggle."""
        self.config = self.config.model_copy(update={"chat_enabled": enabled})
        logger.info("Chat %s by admin", "enabled" if enabled else "disabled")
        return [self._config_changed()]

    # --- messages ---

    def _route_message(self, connection_id: str, to: str, message: ChatMessageOut) -> List[Emit]:
        """General: everyone gets one copy. Direct: recipient plus a separate echo for the sender."""
        if classify_destination(to) is Destination.GENERAL:
            return [Emit("receiveGeneralMessage", message.to_payload())]
        message.to = to
        payload = message.to_payload()
        return [
            Emit("receivePrivateMessage", payload, to=[to]),
            Emit("privateMessageSent", payload, to=[connection_id]),
        ]

    def send_message(self, connection_id: str, body: SendMessageBody) -> List[Emit]:
        if not self._can_send(classify_destination(body.to)):
            return []
        if not self._claim(connection_id, body.id):
            return []
        message = ChatMessageOut(
            id=body.id,
            sender=self.store.get_user(connection_id),
            from_socket_id=connection_id,
            message=body.message,
            type="text",
            timestamp=_now(),
        )
        return self._route_message(connection_id, body.to, message)

    def send_media(self, connection_id: str, body: SendMediaBody) -> List[Emit]:
        if not self._can_send(classify_destination(body.to)):
            return []
        if not self._claim(connection_id, body.id):
            return []
        message = ChatMessageOut(
            id=body.id,
            sender=self.store.get_user(connection_id),
            from_socket_id=connection_id,
            message=body.file_url,
            type=body.file_type,
            filename=body.filename,
            timestamp=_now(),
        )
        return self._route_message(connection_id, body.to, message)

    def delete_message(self, connection_id: str, body: DeleteMessageBody) -> List[Emit]:
        if not self._is_author(connection_id, body.id):
            logger.debug("Dropped delete of %s by non-author %s", body.id, connection_id)
            return []
        self.store.forget_author(str(body.id))
        return self._fanout("messageDeleted", {"id": body.id, "chat": body.to}, body.to)

    def edit_message(self, connection_id: str, body: EditMessageBody) -> List[Emit]:
        if not self.config.chat_enabled:
            return []
        if not self._is_author(connection_id, body.id):
            logger.debug("Dropped edit of %s by non-author %s", body.id, connection_id)
            return []
        payload = {
            "id": body.id,
            "from": self.store.get_user(connection_id),
            "newMessage": body.new_message,
            "edited": True,
            "type": "text",
            "timestamp": _now(),
            "chat": body.to,
        }
        return self._fanout("messageEdited", payload, body.to)

    # --- typing ---

    def _typing(self, event: str, connection_id: str, body: TypingBody) -> List[Emit]:
        if classify_destination(body.to) is not Destination.DIRECT:
            payload = {
                "from": self.store.get_user(connection_id),
                "conversation": body.to,
                "socketId": connection_id,
            }
            return self._fanout(event, payload, body.to, exclude=connection_id)
        # Direct: the conversation key only names the chat; it never widens the audience.
        conversation = body.conversation
        if (
            not conversation
            or classify_destination(conversation) is not Destination.DIRECT
            or connection_id not in split_conversation_key(conversation)
        ):
            conversation = body.to
        payload = {
            "from": self.store.get_user(connection_id),
            "conversation": conversation,
            "socketId": connection_id,
        }
        if body.to == connection_id:
            return []
        return [Emit(event, payload, to=[body.to])]

    def typing(self, connection_id: str, body: TypingBody) -> List[Emit]:
        return self._typing("displayTyping", connection_id, body)

    def stop_typing(self, connection_id: str, body: TypingBody) -> List[Emit]:
        return self._typing("removeTyping", connection_id, body)

    # --- groups ---

    def create_group(self, connection_id: str, body: CreateGroupBody) -> List[Emit]:
        if not self._can_send(Destination.GROUP) or not self.config.allow_group_creation:
            logger.debug("Group creation disabled; dropped request from %s", connection_id)
            return []
        group_id = new_group_id()
        while self.store.get_group(group_id) is not None:
            group_id = new_group_id()
        group = Group(
            id=group_id,
            host=connection_id,
            host_name=self.store.get_user(connection_id),
            name=body.group_name,
            open=body.open,
            members=[connection_id],
        )
        self.store.save_group(group)
        logger.info("Group %s (%s) created by %s", group.id, group.name, connection_id)
        return [Emit("groupCreated", group.to_payload())]

    def request_join_group(self, connection_id: str, body: JoinGroupBody) -> List[Emit]:
        group = self.store.get_group(body.group_id)
        if group is None:
            return []
        if group.open:
            group.add_member(connection_id)
            self.store.save_group(group)
            payload = group.to_payload()
            return [
                Emit("joinedGroup", payload, to=[connection_id]),
                Emit("groupUpdated", payload),
            ]
        if group.has_member(connection_id):
            return []
        request = {
            "groupId": group.id,
            "requesterId": connection_id,
            "requesterName": self.store.get_user(connection_id),
        }
        return [Emit("joinGroupRequest", request, to=[group.host])]

    def accept_join_group(self, connection_id: str, body: AcceptJoinGroupBody) -> List[Emit]:
        group = self.store.get_group(body.group_id)
        if group is None or group.host != connection_id:
            logger.debug("Dropped accept for %s from non-host %s", body.group_id, connection_id)
            return []
        if not self.store.has_connection(body.requester_id):
            logger.debug("Dropped accept for %s: requester %s is gone", body.group_id, body.requester_id)
            return []
        group.add_member(body.requester_id)
        self.store.save_group(group)
        payload = group.to_payload()
        return [
            Emit("joinedGroup", payload, to=[body.requester_id]),
            Emit("groupUpdated", payload),
        ]

    def send_group_message(self, connection_id: str, body: GroupMessageBody) -> List[Emit]:
        if not self._can_send(Destination.GROUP):
            return []
        group = self.store.get_group(body.group_id)
        if group is None or not group.has_member(connection_id):
            return []
        if not self._claim(connection_id, body.id):
            return []
        message = ChatMessageOut(
            id=body.id,
            sender=self.store.get_user(connection_id),
            from_socket_id=connection_id,
            message=body.message,
            type=body.type,
            group_id=group.id,
            timestamp=_now(),
        )
        return [Emit("receiveGroupMessage", message.to_payload(), to=list(group.members))]


def build_router(store: MembershipStore) -> EventRouter:
    """Router with the initial config from settings."""
    config = ChatConfig(
        chat_enabled=settings.CHAT_ENABLED,
        general_only=settings.CHAT_GENERAL_ONLY,
        allow_group_creation=settings.CHAT_ALLOW_GROUP_CREATION,
    )
    return EventRouter(store, config)
