"""
Chat schemas: inbound event payloads, group record, config, outbound messages.
Wire names are camelCase; Python attributes are snake_case.
"""
from typing import List, Optional, Union
from pydantic import BaseModel, Field

# Client-generated (time + random); may arrive as a number or a string.
MessageId = Union[int, str]


class _Inbound(BaseModel):
    class Config:
        populate_by_name = True
        extra = "ignore"


# --- Config ---


class ChatConfig(BaseModel):
    """Process-wide chat switches, broadcast on every change and on connect."""
    chat_enabled: bool = Field(True, alias="chatEnabled", description="Master switch for sending.")
    general_only: bool = Field(False, alias="generalOnly", description="Only the general room is usable.")
    allow_group_creation: bool = Field(True, alias="allowGroupCreation", description="createGroup is honoured.")

    class Config:
        populate_by_name = True
        extra = "forbid"


class ChatConfigUpdate(BaseModel):
    """Partial config; unknown fields fail validation."""
    chat_enabled: Optional[bool] = Field(None, alias="chatEnabled")
    general_only: Optional[bool] = Field(None, alias="generalOnly")
    allow_group_creation: Optional[bool] = Field(None, alias="allowGroupCreation")

    class Config:
        populate_by_name = True
        extra = "forbid"


# --- Group ---


class Group(BaseModel):
    """Ad-hoc group. Host is a member from creation."""
    id: str
    host: str
    host_name: Optional[str] = Field(None, alias="hostName")
    name: str
    open: bool = False
    members: List[str] = Field(default_factory=list)

    class Config:
        populate_by_name = True

    def has_member(self, connection_id: str) -> bool:
        return connection_id in self.members

    def add_member(self, connection_id: str) -> bool:
        """Add once. Returns False when already a member."""
        if connection_id in self.members:
            return False
        self.members.append(connection_id)
        return True

    def remove_member(self, connection_id: str) -> bool:
        if connection_id not in self.members:
            return False
        self.members = [m for m in self.members if m != connection_id]
        return True

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True)


# --- Inbound events ---


class SendMessageBody(_Inbound):
    """sendMessage: text to 'general' or to a connection id."""
    id: MessageId
    to: str
    message: str


class SendMediaBody(_Inbound):
    """sendMedia: fileUrl comes from the upload endpoint."""
    id: MessageId
    to: str
    file_url: str = Field(..., alias="fileUrl")
    file_type: str = Field(..., alias="fileType")
    filename: Optional[str] = None


class DeleteMessageBody(_Inbound):
    id: MessageId
    to: str


class EditMessageBody(_Inbound):
    id: MessageId
    to: str
    new_message: str = Field(..., alias="newMessage")


class TypingBody(_Inbound):
    """typing / stopTyping. conversation is the private key for 1:1 chats."""
    to: str
    conversation: Optional[str] = None


class CreateGroupBody(_Inbound):
    group_name: str = Field(..., alias="groupName")
    open: bool = False


class JoinGroupBody(_Inbound):
    group_id: str = Field(..., alias="groupId")


class AcceptJoinGroupBody(_Inbound):
    group_id: str = Field(..., alias="groupId")
    requester_id: str = Field(..., alias="requesterId")


class GroupMessageBody(_Inbound):
    id: MessageId
    group_id: str = Field(..., alias="groupId")
    message: str
    type: str = "text"


# --- Outbound ---


class ChatMessageOut(BaseModel):
    """Payload of receiveGeneralMessage / receivePrivateMessage / privateMessageSent / receiveGroupMessage."""
    id: MessageId
    sender: Optional[str] = Field(None, alias="from")
    from_socket_id: str = Field(..., alias="fromSocketId")
    to: Optional[str] = None
    message: str
    type: str = "text"
    filename: Optional[str] = None
    group_id: Optional[str] = Field(None, alias="groupId")
    timestamp: str

    class Config:
        populate_by_name = True

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


# --- HTTP ---


class UploadResponse(BaseModel):
    """Result of POST /uploads."""
    file_url: str = Field(..., alias="fileUrl")
    filename: str

    class Config:
        populate_by_name = True


class ChatToggleBody(BaseModel):
    disabled: bool


class ChatToggleResponse(BaseModel):
    disabled: bool
