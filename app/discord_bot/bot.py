"""Discord 봇 어댑터

discord.py 클라이언트 래핑
주요 기능:
- 게이트웨이 이벤트 처리 (message, typing, interaction)
- ChatPlatform 구현 (채널 생성/권한/삭제, 메시지 전송)
- 길드 명령어 등록
- 연결 알림 (Slack 웹훅)
"""
import asyncio
from typing import Any, Awaitable, Callable, Optional, Union

import discord
import httpx

from app.config import Settings, get_settings
from app.core.chat import (
    ButtonStyle,
    ChatAttachment,
    ChatButton,
    ChatCard,
    ChatMessage,
    ChatRoom,
    ChatUser,
    RoomKind,
)
from app.core.registry import InteractionRegistry
from app.utils.logger import get_logger

logger = get_logger(__name__)


# 첨부파일 다운로드 타임아웃
DOWNLOAD_TIMEOUT = 120.0

AVATAR_SIZE = 256

BUTTON_STYLES = {
    ButtonStyle.PRIMARY: discord.ButtonStyle.primary,
    ButtonStyle.SECONDARY: discord.ButtonStyle.secondary,
    ButtonStyle.DANGER: discord.ButtonStyle.danger,
}

MessageHandler = Callable[[ChatMessage], Awaitable[Any]]
TypingHandler = Callable[[ChatRoom, ChatUser], Awaitable[Any]]


# ===== 변환 =====

def to_chat_user(user: Union[discord.User, discord.Member]) -> ChatUser:
    return ChatUser(
        id=str(user.id),
        username=user.name,
        display_name=user.display_name,
        avatar_url=user.display_avatar.replace(size=AVATAR_SIZE, format="png").url,
        is_bot=user.bot,
    )


def to_chat_room(channel: Any) -> ChatRoom:
    """discord 채널 → ChatRoom"""
    if isinstance(channel, discord.Thread):
        kind = RoomKind.THREAD
    elif isinstance(channel, (discord.VoiceChannel, discord.StageChannel)):
        kind = RoomKind.VOICE
    elif isinstance(channel, discord.TextChannel):
        kind = RoomKind.NEWS if channel.is_news() else RoomKind.TEXT
    elif isinstance(channel, (discord.DMChannel, discord.GroupChannel)):
        kind = RoomKind.DM
    else:
        kind = RoomKind.OTHER

    guild = getattr(channel, "guild", None)
    return ChatRoom(
        id=str(channel.id),
        kind=kind,
        name=getattr(channel, "name", None) or "",
        topic=getattr(channel, "topic", None),
        guild_id=str(guild.id) if guild is not None else None,
        sendable=isinstance(channel, discord.abc.Messageable),
    )


def to_chat_message(message: discord.Message) -> ChatMessage:
    return ChatMessage(
        id=str(message.id),
        room=to_chat_room(message.channel),
        author=to_chat_user(message.author),
        content=message.content or "",
        attachments=[
            ChatAttachment(
                name=attachment.filename,
                url=attachment.url,
                size=attachment.size,
                content_type=attachment.content_type,
            )
            for attachment in message.attachments
        ],
    )


def build_view(buttons: Optional[list[ChatButton]]) -> Optional[discord.ui.View]:
    """버튼 목록 → View (콜백은 on_interaction 에서 레지스트리로 처리)"""
    if not buttons:
        return None
    view = discord.ui.View(timeout=None)
    for button in buttons:
        view.add_item(discord.ui.Button(
            custom_id=button.custom_id,
            label=button.label,
            style=BUTTON_STYLES[button.style],
        ))
    return view


def build_embed(card: Optional[ChatCard]) -> Optional[discord.Embed]:
    if card is None:
        return None
    return discord.Embed(title=card.title, description=card.description, color=card.color)


# ===== 인터랙션 =====

class DiscordInteraction:
    """discord.Interaction → ChatInteraction"""

    def __init__(self, interaction: discord.Interaction):
        self._interaction = interaction
        self.user = to_chat_user(interaction.user)
        self.room_id = str(interaction.channel_id) if interaction.channel_id else ""
        self.in_guild = interaction.guild_id is not None

    def is_done(self) -> bool:
        return self._interaction.response.is_done()

    async def defer(self, ephemeral: bool = True) -> None:
        await self._interaction.response.defer(ephemeral=ephemeral, thinking=True)

    async def reply(
        self,
        content: str,
        ephemeral: bool = True,
        buttons: Optional[list[ChatButton]] = None,
    ) -> None:
        kwargs: dict[str, Any] = {"ephemeral": ephemeral}
        view = build_view(buttons)
        if view is not None:
            kwargs["view"] = view
        await self._interaction.response.send_message(content, **kwargs)

    async def edit_reply(
        self,
        content: str,
        buttons: Optional[list[ChatButton]] = None,
    ) -> None:
        kwargs: dict[str, Any] = {"content": content}
        view = build_view(buttons)
        if view is not None:
            kwargs["view"] = view
        await self._interaction.edit_original_response(**kwargs)


# ===== 봇 =====

class DiscordBot(discord.Client):
    """Discord 게이트웨이 클라이언트"""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

        intents = discord.Intents.default()
        intents.message_content = True
        super().__init__(intents=intents)

        # 핸들러 (나중에 주입)
        self._message_handler: Optional[MessageHandler] = None
        self._typing_handler: Optional[TypingHandler] = None
        self._registry: Optional[InteractionRegistry] = None
        self._gateway_task: Optional[asyncio.Task] = None

    def set_handlers(
        self,
        message_handler: MessageHandler,
        typing_handler: TypingHandler,
        registry: InteractionRegistry,
    ) -> None:
        self._message_handler = message_handler
        self._typing_handler = typing_handler
        self._registry = registry

    # ----- 프로세스 라이프사이클 -----

    async def start_gateway(self) -> None:
        """로그인 → 명령어 등록 → 게이트웨이 연결 (백그라운드)"""
        await self.login(self.settings.discord_bot_token)

        if not self.settings.discord_skip_commands:
            await self.register_commands()

        self._gateway_task = asyncio.create_task(self.connect(reconnect=True), name="discord-gateway")

    async def stop_gateway(self) -> None:
        await self.close()
        if self._gateway_task is not None:
            await asyncio.gather(self._gateway_task, return_exceptions=True)
            self._gateway_task = None

    async def register_commands(self) -> None:
        """레지스트리의 명령어를 길드에 일괄 등록"""
        if self._registry is None:
            return
        payloads = self._registry.command_payloads()
        await self.http.bulk_upsert_guild_commands(
            int(self.settings.discord_app_id),
            int(self.settings.discord_guild_id),
            payloads,
        )
        logger.info(
            "Registered guild commands",
            guild_id=self.settings.discord_guild_id,
            commands=[payload["name"] for payload in payloads],
        )

    # ----- 이벤트 -----

    async def on_ready(self) -> None:
        logger.info("Logged into Discord", username=self.user.name, user_id=self.user.id)

        if self.settings.slack_webhook:
            await self._notify_slack(f"Logged into Discord (user {self.user.name}, id {self.user.id})")

    async def on_message(self, message: discord.Message) -> None:
        if message.guild is None or self._message_handler is None:
            return
        try:
            await self._message_handler(to_chat_message(message))
        except Exception as e:
            logger.error(
                "Failed to handle Discord message",
                message_id=message.id,
                channel_id=message.channel.id,
                error=str(e),
            )

    async def on_typing(self, channel: Any, user: Any, when: Any) -> None:
        if getattr(channel, "guild", None) is None or self._typing_handler is None:
            return
        try:
            await self._typing_handler(to_chat_room(channel), to_chat_user(user))
        except Exception as e:
            logger.debug("Failed to handle typing", channel_id=channel.id, error=str(e))

    async def on_interaction(self, interaction: discord.Interaction) -> None:
        if self._registry is None:
            return

        data = interaction.data or {}
        wrapped = DiscordInteraction(interaction)

        if interaction.type == discord.InteractionType.application_command:
            await self._registry.dispatch_command(str(data.get("name", "")), wrapped)
        elif interaction.type == discord.InteractionType.component:
            custom_id = data.get("custom_id")
            if custom_id:
                await self._registry.dispatch_button(str(custom_id), wrapped)

    async def _notify_slack(self, text: str) -> None:
        try:
            async with httpx.AsyncClient(timeout=10.0) as client:
                response = await client.post(self.settings.slack_webhook, json={"text": text})
                response.raise_for_status()
        except Exception as e:
            logger.warning("Failed to notify Slack", error=str(e))


class DiscordChatPlatform:
    """ChatPlatform 의 Discord 구현"""

    def __init__(self, bot: DiscordBot, settings: Optional[Settings] = None):
        self.bot = bot
        self.settings = settings or get_settings()

    async def _channel(self, room_id: str) -> Optional[Any]:
        channel_id = int(room_id)
        channel = self.bot.get_channel(channel_id)
        if channel is not None:
            return channel
        try:
            return await self.bot.fetch_channel(channel_id)
        except discord.NotFound:
            return None

    async def _require_channel(self, room_id: str) -> Any:
        channel = await self._channel(room_id)
        if channel is None:
            raise LookupError(f"Channel {room_id} not found")
        return channel

    async def _guild(self) -> discord.Guild:
        guild_id = int(self.settings.discord_guild_id)
        return self.bot.get_guild(guild_id) or await self.bot.fetch_guild(guild_id)

    async def _member(self, guild: discord.Guild, user_id: str) -> discord.Member:
        return guild.get_member(int(user_id)) or await guild.fetch_member(int(user_id))

    async def fetch_room(self, room_id: str) -> Optional[ChatRoom]:
        channel = await self._channel(room_id)
        return to_chat_room(channel) if channel is not None else None

    async def create_room(self, name: str, topic: str, reason: str) -> ChatRoom:
        guild = await self._guild()
        category = (
            discord.Object(id=int(self.settings.discord_category_id))
            if self.settings.discord_category_id else None
        )
        # 요청자는 바인딩이 끝난 뒤 grant_view 로 추가
        channel = await guild.create_text_channel(
            name=name,
            category=category,
            topic=topic,
            overwrites={guild.default_role: discord.PermissionOverwrite(view_channel=False)},
            reason=reason,
        )
        return to_chat_room(channel)

    async def grant_view(self, room_id: str, user_id: str, reason: str) -> None:
        channel = await self._require_channel(room_id)
        member = await self._member(channel.guild, user_id)
        await channel.set_permissions(member, view_channel=True, reason=reason)

    async def lock_room(self, room_id: str, owner_id: str) -> None:
        channel = await self._require_channel(room_id)
        # 서버를 떠난 소유자도 ID 로 덮어쓰기 가능
        owner = discord.Object(id=int(owner_id), type=discord.Member)
        await channel.edit(overwrites={
            owner: discord.PermissionOverwrite(view_channel=True, send_messages=False),
            channel.guild.default_role: discord.PermissionOverwrite(view_channel=False),
        })

    async def delete_room(self, room_id: str, reason: str) -> None:
        channel = await self._channel(room_id)
        if channel is None:
            logger.debug("Room already gone", room_id=room_id)
            return
        await channel.delete(reason=reason)

    async def send(
        self,
        room_id: str,
        content: Optional[str] = None,
        buttons: Optional[list[ChatButton]] = None,
        card: Optional[ChatCard] = None,
    ) -> None:
        channel = await self._require_channel(room_id)
        kwargs: dict[str, Any] = {}
        view = build_view(buttons)
        if view is not None:
            kwargs["view"] = view
        embed = build_embed(card)
        if embed is not None:
            kwargs["embed"] = embed
        await channel.send(content=content, **kwargs)

    async def reply(self, room_id: str, message_id: str, content: str) -> None:
        channel = await self._require_channel(room_id)
        await channel.get_partial_message(int(message_id)).reply(content)

    async def download_attachment(self, attachment: ChatAttachment) -> bytes:
        async with httpx.AsyncClient(timeout=DOWNLOAD_TIMEOUT, follow_redirects=True) as client:
            response = await client.get(attachment.url)
            response.raise_for_status()
            logger.debug(
                "Downloaded Discord attachment",
                filename=attachment.name,
                size=len(response.content),
            )
            return response.content

    def mention_user(self, user_id: str) -> str:
        return f"<@{user_id}>"

    def mention_room(self, room_id: str) -> str:
        return f"<#{room_id}>"
