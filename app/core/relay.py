"""메시지 릴레이

Discord ↔ Sunshine Conversations 양방향 메시지 중계
- Discord → Sunshine: 텍스트 + 첨부파일 (업로드 후 image/file 메시지), 순서 보장
- Sunshine → Discord: text/image/file, @user/@customer 치환
- 입력 중(typing) 표시 전달
"""
import re
from typing import Optional

from app.adapters.sunshine.client import SunshineClient, build_external_id
from app.core import messages
from app.core.chat import ChatMessage, ChatPlatform, ChatRoom, ChatUser
from app.core.errors import NotApplicable, RemoteApiError
from app.core.models import (
    Author,
    AuthorType,
    Content,
    ContentType,
    MessageEnvelope,
    SunshineMessage,
)
from app.core.topic import ConversationBinding, decode_topic
from app.utils.logger import get_logger

logger = get_logger(__name__)


# 첨부파일 최대 크기 (50MB, 포함)
MAX_ATTACHMENT_BYTES = 50 * 1000 * 1000

PLACEHOLDER_PATTERN = re.compile(r"@(?:user|customer)", re.IGNORECASE)


class MessageRelay:
    """메시지 릴레이"""

    def __init__(self, sunshine: SunshineClient, chat: ChatPlatform):
        self.sunshine = sunshine
        self.chat = chat

    # ===== Discord → Sunshine =====

    def _binding_for(self, room: ChatRoom, author: ChatUser) -> Optional[ConversationBinding]:
        """릴레이 대상이면 바인딩 반환 (봇/소유자 외 작성자는 제외)"""
        if not room.is_relay_target:
            return None
        binding = decode_topic(room.topic)
        if binding is None:
            return None
        if author.is_bot or author.id != binding.owner_id:
            return None
        return binding

    async def handle_chat_message(self, message: ChatMessage) -> int:
        """
        채널 메시지를 원격 대화로 전달

        Returns:
            전송한 메시지 수
        """
        binding = self._binding_for(message.room, message.author)
        if binding is None:
            return 0

        conversation_id = binding.conversation_id
        envelopes = [MessageEnvelope(
            author=Author(
                type=AuthorType.USER,
                user_external_id=build_external_id(message.author.id),
                display_name=message.author.display_name or message.author.username,
            ),
            content=Content(type=ContentType.TEXT.value, text=message.content),
            metadata={"discordMessage": message.id},
        )]

        for attachment in message.attachments:
            if attachment.size > MAX_ATTACHMENT_BYTES:
                logger.info(
                    "Attachment exceeds size limit",
                    filename=attachment.name,
                    size=attachment.size,
                )
                await self._reply(message, messages.exceeded_attachment_limit(attachment.name))
                continue

            try:
                file_buffer = await self.chat.download_attachment(attachment)
                uploaded = await self.sunshine.upload_attachment(
                    conversation_id,
                    attachment.name,
                    file_buffer,
                    content_type=attachment.content_type,
                )
            except Exception as e:
                logger.warning(
                    "Attachment upload failed",
                    filename=attachment.name,
                    conversation_id=conversation_id,
                    error=str(e),
                )
                cause = e.cause if isinstance(e, RemoteApiError) and e.cause else str(e)
                await self._reply(message, messages.failed_to_upload(cause))
                continue

            content_type = ContentType.IMAGE if uploaded.media_type.startswith("image/") else ContentType.FILE
            # author/metadata 는 첫 메시지에서 복사
            envelopes.append(envelopes[0].model_copy(update={
                "content": Content(type=content_type.value, media_url=uploaded.media_url),
            }))

        sent = 0
        for envelope in envelopes:
            if envelope.is_empty_text:
                continue
            try:
                await self.sunshine.post_message(conversation_id, envelope)
                sent += 1
            except Exception as e:
                logger.warning(
                    "Failed to relay message",
                    conversation_id=conversation_id,
                    content_type=envelope.content.type,
                    error=str(e),
                )
                await self._reply(message, messages.MESSAGE_FAILED_TO_SEND)

        logger.debug("Relayed chat message", conversation_id=conversation_id, sent=sent)
        return sent

    async def handle_chat_typing(self, room: ChatRoom, user: ChatUser) -> bool:
        """입력 중 표시 전달 (실패는 무시)"""
        binding = self._binding_for(room, user)
        if binding is None:
            return False

        try:
            return await self.sunshine.post_activity(
                binding.conversation_id,
                Author(type=AuthorType.USER, user_external_id=build_external_id(user.id)),
                "typing:start",
            )
        except Exception as e:
            logger.debug("Failed to relay typing", conversation_id=binding.conversation_id, error=str(e))
            return False

    async def _reply(self, message: ChatMessage, content: str) -> None:
        try:
            await self.chat.reply(message.room.id, message.id, content)
        except Exception as e:
            logger.warning("Failed to reply to chat message", message_id=message.id, error=str(e))

    # ===== Sunshine → Discord =====

    def apply_placeholders(self, text: Optional[str], owner_id: str) -> str:
        """@user / @customer → 소유자 멘션"""
        return PLACEHOLDER_PATTERN.sub(lambda _: self.chat.mention_user(owner_id), text or "")

    async def handle_remote_message(self, room: ChatRoom, message: SunshineMessage) -> bool:
        """
        원격 메시지를 채널로 전달

        Returns:
            전송 여부 (지원하지 않는 타입은 False)

        Raises:
            NotApplicable: 채널에 바인딩이 없는 경우
        """
        binding = decode_topic(room.topic)
        if binding is None:
            raise NotApplicable(f"Room {room.id} has no conversation binding")

        content = message.content
        text = self.apply_placeholders(content.text, binding.owner_id)

        if content.type == ContentType.TEXT.value:
            await self.chat.send(room.id, text)
        elif content.type in (ContentType.IMAGE.value, ContentType.FILE.value):
            await self.chat.send(room.id, f"{text}\n{content.media_url}")
        else:
            logger.warning(
                "Unsupported message type received",
                content_type=content.type,
                message_id=message.id,
            )
            return False

        logger.info(
            "Sent message to Discord",
            room_id=room.id,
            content_type=content.type,
        )
        return True
