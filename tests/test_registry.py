import pytest

from app.core import messages
from app.core.lifecycle import (
    CANCEL_DELETION_BUTTON_ID,
    CREATE_CONVERSATION_BUTTON_ID,
    DELETE_OLD_CONVERSATIONS_BUTTON_ID,
)
from app.core.registry import SEND_OPEN_TICKET_COMMAND, InteractionRegistry, build_registry
from tests.conftest import FakeInteraction


@pytest.fixture
def registry(lifecycle, chat) -> InteractionRegistry:
    return build_registry(lifecycle, chat)


def test_command_payload_is_admin_only_guild_command(registry) -> None:
    (payload,) = registry.command_payloads()

    assert payload == {
        "name": SEND_OPEN_TICKET_COMMAND,
        "description": "Send open ticket embed to channel",
        "type": 1,
        "default_member_permissions": "0",
        "integration_types": [0],
        "contexts": [0],
    }


def test_registry_is_closed(registry) -> None:
    with pytest.raises(TypeError):
        registry.buttons["injected"] = lambda interaction: None


@pytest.mark.asyncio
async def test_unknown_ids_are_ignored(registry, user) -> None:
    interaction = FakeInteraction(user)

    assert await registry.dispatch_command("nope", interaction) is False
    assert await registry.dispatch_button("nope", interaction) is False
    assert interaction.replies == []


@pytest.mark.asyncio
async def test_send_open_ticket_posts_card_with_button(registry, chat, user) -> None:
    interaction = FakeInteraction(user, room_id="500")

    assert await registry.dispatch_command(SEND_OPEN_TICKET_COMMAND, interaction) is True

    (sent,) = chat.sent
    assert sent["room_id"] == "500"
    assert sent["card"] == messages.LIVE_CHAT_CARD
    assert sent["buttons"][0].custom_id == CREATE_CONVERSATION_BUTTON_ID
    assert interaction.replies[-1]["content"] == messages.EMBED_SENT


@pytest.mark.asyncio
async def test_create_conversation_button_defers_and_opens(registry, chat, user) -> None:
    interaction = FakeInteraction(user)

    await registry.dispatch_button(CREATE_CONVERSATION_BUTTON_ID, interaction)

    assert interaction.deferred is True
    assert len(chat.rooms) == 1


@pytest.mark.asyncio
async def test_outside_guild_gets_error_reply(registry, chat, user) -> None:
    interaction = FakeInteraction(user, in_guild=False)

    await registry.dispatch_button(CREATE_CONVERSATION_BUTTON_ID, interaction)

    assert chat.rooms == {}
    assert interaction.replies[-1]["content"].endswith("Missing guild")
    assert interaction.replies[-1]["ephemeral"] is True


@pytest.mark.asyncio
async def test_handler_failure_after_defer_edits_reply(registry, sunshine, user) -> None:
    async def broken(user):
        raise RuntimeError("sunshine down")

    sunshine.upsert_user = broken
    interaction = FakeInteraction(user)

    await registry.dispatch_button(CREATE_CONVERSATION_BUTTON_ID, interaction)

    assert interaction.edits[-1]["content"] == messages.callback_error(RuntimeError("sunshine down"))


@pytest.mark.asyncio
async def test_delete_old_conversations_then_reopens(registry, sunshine, chat, user) -> None:
    old = sunshine.add_conversation("discord-42", metadata={"discordChannel": "11"})
    interaction = FakeInteraction(user)

    await registry.dispatch_button(DELETE_OLD_CONVERSATIONS_BUTTON_ID, interaction)

    assert old.id in sunshine.deleted
    assert len(chat.rooms) == 1
    assert interaction.edits[-1]["content"].startswith("Your support ticket was created")


@pytest.mark.asyncio
async def test_delete_old_conversations_failure_stops(registry, sunshine, chat, user) -> None:
    old = sunshine.add_conversation("discord-42", metadata={"discordChannel": "11"})
    sunshine.fail_delete.add(old.id)
    interaction = FakeInteraction(user)

    await registry.dispatch_button(DELETE_OLD_CONVERSATIONS_BUTTON_ID, interaction)

    assert interaction.edits[-1]["content"] == messages.UNABLE_TO_REMOVE_EXISTING_REQUESTS
    assert chat.rooms == {}


@pytest.mark.asyncio
async def test_cancel_deletion_button(registry, deletions, user) -> None:
    async def never() -> None:
        raise AssertionError("should have been cancelled")

    deletions.schedule("77", 10, never)
    interaction = FakeInteraction(user, room_id="77")

    await registry.dispatch_button(CANCEL_DELETION_BUTTON_ID, interaction)
    await registry.dispatch_button(CANCEL_DELETION_BUTTON_ID, FakeInteraction(user, room_id="77"))

    assert "77" not in deletions
    assert interaction.replies[-1]["content"] == messages.SUPPORT_REQUEST_DELETE_CANCELLED
