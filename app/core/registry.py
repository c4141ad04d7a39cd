"""명령어/버튼 인터랙션 레지스트리

시작 시 한 번 구성되는 닫힌 레지스트리. 알 수 없는 ID 는 무시한다.
핸들러 예외는 여기서 로그를 남기고 사용자에게 에러 응답으로 변환한다.
"""
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Mapping

from app.core import messages
from app.core.chat import ButtonStyle, ChatButton, ChatInteraction, ChatPlatform
from app.core.lifecycle import (
    CANCEL_DELETION_BUTTON_ID,
    CREATE_CONVERSATION_BUTTON_ID,
    DELETE_OLD_CONVERSATIONS_BUTTON_ID,
    ConversationLifecycleManager,
)
from app.utils.logger import get_logger

logger = get_logger(__name__)


InteractionHandler = Callable[[ChatInteraction], Awaitable[Any]]

SEND_OPEN_TICKET_COMMAND = "sendopenticket"

# Discord application command 상수
CHAT_INPUT_COMMAND = 1
GUILD_INSTALL = 0
GUILD_CONTEXT = 0


@dataclass(frozen=True)
class CommandDefinition:
    """길드에 등록할 명령어"""
    name: str
    description: str
    handler: InteractionHandler
    # "0" = 관리자 전용
    default_member_permissions: str = "0"

    def to_payload(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "type": CHAT_INPUT_COMMAND,
            "default_member_permissions": self.default_member_permissions,
            "integration_types": [GUILD_INSTALL],
            "contexts": [GUILD_CONTEXT],
        }


@dataclass(frozen=True)
class InteractionRegistry:
    """명령어 이름/버튼 custom_id → 핸들러"""
    commands: Mapping[str, CommandDefinition] = field(default_factory=dict)
    buttons: Mapping[str, InteractionHandler] = field(default_factory=dict)

    def command_payloads(self) -> list[dict[str, Any]]:
        return [command.to_payload() for command in self.commands.values()]

    async def dispatch_command(self, name: str, interaction: ChatInteraction) -> bool:
        command = self.commands.get(name)
        if command is None:
            return False
        await self._run(f"command:{name}", command.handler, interaction)
        return True

    async def dispatch_button(self, custom_id: str, interaction: ChatInteraction) -> bool:
        handler = self.buttons.get(custom_id)
        if handler is None:
            return False
        await self._run(f"button:{custom_id}", handler, interaction)
        return True

    async def _run(self, key: str, handler: InteractionHandler, interaction: ChatInteraction) -> None:
        try:
            await handler(interaction)
        except Exception as e:
            logger.warning(
                "Interaction callback failed",
                key=key,
                user_id=interaction.user.id,
                error=str(e),
            )
            try:
                if interaction.is_done():
                    await interaction.edit_reply(messages.callback_error(e))
                else:
                    await interaction.reply(messages.callback_error(e), ephemeral=True)
            except Exception as reply_error:
                logger.warning("Failed to send error reply", key=key, error=str(reply_error))


class GuildRequired(Exception):
    """길드 밖에서 호출된 인터랙션"""

    def __init__(self):
        super().__init__("Missing guild")


def build_registry(
    lifecycle: ConversationLifecycleManager,
    chat: ChatPlatform,
) -> InteractionRegistry:
    """명령어/버튼 핸들러 구성"""

    async def send_open_ticket(interaction: ChatInteraction) -> None:
        """Live Chat 임베드와 시작 버튼을 현재 채널에 게시"""
        await chat.send(
            interaction.room_id,
            card=messages.LIVE_CHAT_CARD,
            buttons=[ChatButton(
                custom_id=CREATE_CONVERSATION_BUTTON_ID,
                label=messages.START_LIVE_CHAT,
                style=ButtonStyle.PRIMARY,
            )],
        )
        await interaction.reply(messages.EMBED_SENT, ephemeral=True)

    async def create_conversation(interaction: ChatInteraction) -> None:
        _require_guild(interaction)
        # 3초 내 응답하지 않으면 인터랙션이 만료됨
        await interaction.defer(ephemeral=True)
        await lifecycle.open_request(interaction)

    async def delete_old_conversations(interaction: ChatInteraction) -> None:
        _require_guild(interaction)
        await interaction.defer(ephemeral=True)

        try:
            closed = await lifecycle.close_existing_requests(interaction.user)
        except Exception as e:
            logger.error("Failed to remove existing requests", user_id=interaction.user.id, error=str(e))
            closed = False

        if not closed:
            await interaction.edit_reply(messages.UNABLE_TO_REMOVE_EXISTING_REQUESTS)
            return

        await lifecycle.open_request(interaction)

    async def cancel_deletion(interaction: ChatInteraction) -> None:
        _require_guild(interaction)
        lifecycle.cancel_deletion(interaction.room_id)
        await interaction.reply(messages.SUPPORT_REQUEST_DELETE_CANCELLED, ephemeral=True)

    commands = {
        SEND_OPEN_TICKET_COMMAND: CommandDefinition(
            name=SEND_OPEN_TICKET_COMMAND,
            description="Send open ticket embed to channel",
            handler=send_open_ticket,
        ),
    }
    buttons: dict[str, InteractionHandler] = {
        CREATE_CONVERSATION_BUTTON_ID: create_conversation,
        DELETE_OLD_CONVERSATIONS_BUTTON_ID: delete_old_conversations,
        CANCEL_DELETION_BUTTON_ID: cancel_deletion,
    }
    return InteractionRegistry(
        commands=MappingProxyType(commands),
        buttons=MappingProxyType(buttons),
    )


def _require_guild(interaction: ChatInteraction) -> None:
    if not interaction.in_guild:
        raise GuildRequired()
