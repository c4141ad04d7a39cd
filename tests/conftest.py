"""
Test configuration and fixtures.

In-memory stand-ins for the Discord platform and the Sunshine Conversations
client so the lifecycle, relay and ingress can run without network access.
"""
import itertools
from typing import Any, Optional

import pytest

from app.core.chat import (
    ChatAttachment,
    ChatButton,
    ChatCard,
    ChatRoom,
    ChatUser,
    RoomKind,
)
from app.core.deletion import PendingDeletionRegistry
from app.core.errors import RemoteApiError
from app.core.lifecycle import ConversationLifecycleManager
from app.core.models import (
    Author,
    ConversationList,
    MessageEnvelope,
    SunshineConversation,
    SunshineUser,
    UploadedAttachment,
)
from app.core.relay import MessageRelay

GUILD_ID = "900"


class FakeChatPlatform:
    def __init__(self):
        self.rooms: dict[str, ChatRoom] = {}
        self.sent: list[dict[str, Any]] = []
        self.replies: list[tuple[str, str, str]] = []
        self.granted: list[tuple[str, str]] = []
        self.locked: list[tuple[str, str]] = []
        self.deleted: list[str] = []
        self.files: dict[str, bytes] = {}
        self.fail_delete: set[str] = set()
        self.fail_fetch: set[str] = set()
        self._ids = itertools.count(1000)

    def add_room(self, room: ChatRoom) -> ChatRoom:
        self.rooms[room.id] = room
        return room

    async def fetch_room(self, room_id: str) -> Optional[ChatRoom]:
        if room_id in self.fail_fetch:
            raise RuntimeError(f"fetch failed for {room_id}")
        return self.rooms.get(room_id)

    async def create_room(self, name: str, topic: str, reason: str) -> ChatRoom:
        room = ChatRoom(
            id=str(next(self._ids)),
            kind=RoomKind.TEXT,
            name=name,
            topic=topic,
            guild_id=GUILD_ID,
        )
        return self.add_room(room)

    async def grant_view(self, room_id: str, user_id: str, reason: str) -> None:
        self.granted.append((room_id, user_id))

    async def lock_room(self, room_id: str, owner_id: str) -> None:
        self.locked.append((room_id, owner_id))

    async def delete_room(self, room_id: str, reason: str) -> None:
        if room_id in self.fail_delete:
            raise RuntimeError(f"Missing permissions for {room_id}")
        self.rooms.pop(room_id, None)
        self.deleted.append(room_id)

    async def send(
        self,
        room_id: str,
        content: Optional[str] = None,
        buttons: Optional[list[ChatButton]] = None,
        card: Optional[ChatCard] = None,
    ) -> None:
        self.sent.append({"room_id": room_id, "content": content, "buttons": buttons, "card": card})

    async def reply(self, room_id: str, message_id: str, content: str) -> None:
        self.replies.append((room_id, message_id, content))

    async def download_attachment(self, attachment: ChatAttachment) -> bytes:
        if attachment.url not in self.files:
            raise RuntimeError(f"404 for {attachment.url}")
        return self.files[attachment.url]

    def mention_user(self, user_id: str) -> str:
        return f"<@{user_id}>"

    def mention_room(self, room_id: str) -> str:
        return f"<#{room_id}>"


class FakeSunshineClient:
    def __init__(self):
        self.users: list[SunshineUser] = []
        self.conversations: dict[str, SunshineConversation] = {}
        self.owners: dict[str, str] = {}
        self.messages: list[tuple[str, MessageEnvelope]] = []
        self.activities: list[tuple[str, Author, str]] = []
        self.passed: list[str] = []
        self.deleted: list[str] = []
        self.uploads: list[tuple[str, str, bytes]] = []
        self.fail_upload: dict[str, Exception] = {}
        self.fail_message_types: set[str] = set()
        self.fail_delete: set[str] = set()
        self._ids = itertools.count(1)

    def add_conversation(self, external_id: str, metadata: Optional[dict] = None, is_default: bool = False):
        conversation = SunshineConversation(
            id=f"conv-{next(self._ids)}",
            is_default=is_default,
            metadata=metadata,
        )
        self.conversations[conversation.id] = conversation
        self.owners[conversation.id] = external_id
        return conversation

    async def upsert_user(self, user: SunshineUser):
        self.users.append(user)

    async def list_conversations(self, external_user_id: str) -> ConversationList:
        return ConversationList(conversations=[
            convo for convo_id, convo in self.conversations.items()
            if self.owners.get(convo_id) == external_user_id
        ])

    async def create_conversation(self, participants, metadata=None, conversation_type="personal", display_name=None):
        return self.add_conversation(participants[0]["userExternalId"], metadata=dict(metadata or {}))

    async def update_conversation(self, conversation_id, metadata=None, display_name=None, description=None):
        current = self.conversations[conversation_id]
        merged = {**(current.metadata or {}), **(metadata or {})}
        updated = current.model_copy(update={"metadata": merged})
        self.conversations[conversation_id] = updated
        return updated

    async def delete_conversation(self, conversation_id: str) -> bool:
        if conversation_id in self.fail_delete:
            raise RemoteApiError("Failed to delete conversation", status_code=500, codes=["internal"])
        self.conversations.pop(conversation_id, None)
        self.deleted.append(conversation_id)
        return True

    async def pass_control(self, conversation_id: str, switchboard_integration: str = "next", metadata=None) -> bool:
        self.passed.append(conversation_id)
        return True

    async def post_message(self, conversation_id: str, envelope: MessageEnvelope) -> dict:
        if envelope.content.type in self.fail_message_types:
            raise RemoteApiError("Couldn't create message", status_code=400, codes=["bad_request"])
        self.messages.append((conversation_id, envelope))
        return {"messages": []}

    async def post_activity(self, conversation_id: str, author: Author, activity_type: str) -> bool:
        self.activities.append((conversation_id, author, activity_type))
        return True

    async def upload_attachment(self, conversation_id, filename, file_buffer, content_type=None):
        if filename in self.fail_upload:
            raise self.fail_upload[filename]
        self.uploads.append((conversation_id, filename, bytes(file_buffer)))
        return UploadedAttachment(
            media_url=f"https://media.example.com/{filename}",
            media_type=content_type or "application/octet-stream",
        )


class FakeInteraction:
    def __init__(self, user: ChatUser, room_id: str = "500", in_guild: bool = True):
        self.user = user
        self.room_id = room_id
        self.in_guild = in_guild
        self.deferred = False
        self.replies: list[dict[str, Any]] = []
        self.edits: list[dict[str, Any]] = []

    def is_done(self) -> bool:
        return self.deferred or bool(self.replies)

    async def defer(self, ephemeral: bool = True) -> None:
        self.deferred = True

    async def reply(self, content: str, ephemeral: bool = True, buttons=None) -> None:
        self.replies.append({"content": content, "ephemeral": ephemeral, "buttons": buttons})

    async def edit_reply(self, content: str, buttons=None) -> None:
        self.edits.append({"content": content, "buttons": buttons})


@pytest.fixture
def chat() -> FakeChatPlatform:
    return FakeChatPlatform()


@pytest.fixture
def sunshine() -> FakeSunshineClient:
    return FakeSunshineClient()


@pytest.fixture
def user() -> ChatUser:
    return ChatUser(
        id="42",
        username="alice",
        display_name="Alice",
        avatar_url="https://cdn.example.com/avatar.png",
    )


@pytest.fixture
async def deletions():
    registry = PendingDeletionRegistry()
    yield registry
    await registry.shutdown()


@pytest.fixture
def lifecycle(sunshine, chat, deletions) -> ConversationLifecycleManager:
    return ConversationLifecycleManager(sunshine, chat, deletions, deletion_delay=0.05)


@pytest.fixture
def relay(sunshine, chat) -> MessageRelay:
    return MessageRelay(sunshine, chat)
