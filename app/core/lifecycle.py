"""상담 요청 라이프사이클

NoRequest → Created → Assigned → Resolved → ScheduledDeletion → Deleted
ScheduledDeletion 에서 취소하면 채널은 남고(답장 불가), 발화하면
채널과 원격 대화를 모두 삭제한다.

주요 기능:
- 상담 요청 생성 (사용자 upsert → 대화 → 채널 → 바인딩 → 상담원 큐)
- 중복 요청 감지 및 기존 요청 정리
- 상담원 배정/해결 알림
- 해결 후 지연 삭제 및 취소
"""
from datetime import datetime, timezone
from enum import Enum

from app.adapters.sunshine.client import SunshineClient, build_external_id
from app.core import messages
from app.core.chat import (
    ButtonStyle,
    ChatButton,
    ChatInteraction,
    ChatPlatform,
    ChatRoom,
    ChatUser,
)
from app.core.deletion import PendingDeletionRegistry
from app.core.models import (
    Author,
    AuthorType,
    Content,
    ContentType,
    MessageEnvelope,
    SunshineConversation,
    SunshineUser,
    UserProfile,
)
from app.core.topic import ConversationBinding, encode_topic
from app.utils.logger import get_logger

logger = get_logger(__name__)


# 해결 후 채널 삭제까지 대기 시간 (초)
DELETION_DELAY_SECONDS = 60.0

# 버튼 custom_id
CREATE_CONVERSATION_BUTTON_ID = "create-conversation"
DELETE_OLD_CONVERSATIONS_BUTTON_ID = "delete-old-conversations"
CANCEL_DELETION_BUTTON_ID = "cancel-deletion"


class OpenRequestOutcome(str, Enum):
    CREATED = "created"
    ALREADY_OPEN = "already_open"


def bridge_note(text: str) -> MessageEnvelope:
    """상담원에게만 보이는 브릿지 안내 메시지"""
    return MessageEnvelope(
        author=Author(type=AuthorType.BUSINESS, display_name=messages.BOT_DISPLAY_NAME),
        content=Content(type=ContentType.TEXT.value, text=text),
        metadata={"discordHidden": True},
    )


class ConversationLifecycleManager:
    """상담 요청 생성/해결/삭제 관리"""

    def __init__(
        self,
        sunshine: SunshineClient,
        chat: ChatPlatform,
        deletions: PendingDeletionRegistry,
        deletion_delay: float = DELETION_DELAY_SECONDS,
    ):
        self.sunshine = sunshine
        self.chat = chat
        self.deletions = deletions
        self.deletion_delay = deletion_delay

    # ===== 요청 생성 =====

    async def open_request(self, interaction: ChatInteraction) -> OpenRequestOutcome:
        """
        상담 요청 생성

        인터랙션은 이미 defer 된 상태여야 한다.

        Flow:
        1. Sunshine 사용자 upsert
        2. 바인딩된 대화가 있으면 → "기존 요청을 닫을까요?" 안내
        3. 대화 생성 → 채널 생성(요청자에게 아직 비공개) → 토픽 바인딩
        4. 대화 metadata 에 채널 ID 기록 → 상담원용 안내 → 상담원 큐로 전달
        5. 요청자에게 채널 보기 권한 부여
        """
        user = interaction.user
        external_id = build_external_id(user.id)

        await self.sunshine.upsert_user(self._build_user(user))

        existing = (await self.sunshine.list_conversations(external_id)).bound()
        if existing:
            logger.info(
                "User already has an open request",
                user_id=user.id,
                conversation_ids=[convo.id for convo in existing],
            )
            await interaction.edit_reply(
                messages.CUSTOMER_CLOSE_EXISTING_QUESTION,
                buttons=[ChatButton(
                    custom_id=DELETE_OLD_CONVERSATIONS_BUTTON_ID,
                    label=messages.CLOSE_REQUEST,
                    style=ButtonStyle.DANGER,
                )],
            )
            return OpenRequestOutcome.ALREADY_OPEN

        conversation = await self.sunshine.create_conversation(
            participants=[{"userExternalId": external_id}],
            metadata={
                "discordOwner": user.id,
                "discordChannel": "",
            },
        )

        topic = encode_topic(ConversationBinding(conversation.id, user.id))
        room = await self.chat.create_room(
            name=f"{messages.SUPPORT_CHANNEL_PREFIX}{user.username}",
            topic=f"{messages.SUPPORT_TOPIC}\n\n{topic}",
            reason=f"Create channel for conversation {conversation.id}",
        )

        conversation = await self.sunshine.update_conversation(
            conversation.id,
            metadata={"discordChannel": room.id},
        )

        await self.sunshine.post_message(
            conversation.id,
            bridge_note(messages.customer_opened_request(
                user.display_name or user.username,
                user.username,
            )),
        )

        # zd:agentWorkspace 로 넘겨 티켓 생성
        await self.sunshine.pass_control(conversation.id, "next")

        await self.chat.grant_view(room.id, user.id, reason=f"Finished creating {conversation.id}")

        logger.info(
            "Opened support request",
            user_id=user.id,
            conversation_id=conversation.id,
            room_id=room.id,
        )

        await interaction.edit_reply(messages.support_request_created(self.chat.mention_room(room.id)))
        await self.chat.send(room.id, messages.SUPPORT_REQUEST_FIRST_MESSAGE)
        return OpenRequestOutcome.CREATED

    def _build_user(self, user: ChatUser) -> SunshineUser:
        return SunshineUser(
            external_id=build_external_id(user.id),
            signed_up_at=datetime.now(timezone.utc).isoformat(),
            to_be_retained=True,
            profile=UserProfile(
                given_name=user.display_name or user.username,
                surname=None,
                avatar_url=user.avatar_url,
            ),
            metadata={
                "discordId": user.id,
                "discordUsername": user.username,
            },
        )

    async def close_existing_requests(self, user: ChatUser) -> bool:
        """
        사용자의 바인딩된 대화를 모두 정리

        대화마다 독립적으로 처리한다. 채널 삭제 실패는 경고만 남기고
        원격 대화 정리는 계속한다. 성공한 삭제는 되돌리지 않는다.

        Returns:
            모든 대화 정리에 성공했는지
        """
        external_id = build_external_id(user.id)
        conversations = (await self.sunshine.list_conversations(external_id)).bound()

        all_closed = True
        for convo in conversations:
            room_id = convo.discord_channel
            self.deletions.cancel(room_id)

            await self._delete_room_quietly(
                room_id,
                conversation_id=convo.id,
                reason="Customer requested deletion of existing conversations",
            )

            try:
                await self.sunshine.post_message(convo.id, bridge_note(messages.CUSTOMER_CLOSED_REQUEST))
                await self.sunshine.delete_conversation(convo.id)
            except Exception as e:
                all_closed = False
                logger.warning(
                    "Failed to close existing conversation",
                    conversation_id=convo.id,
                    room_id=room_id,
                    error=str(e),
                )

        return all_closed

    # ===== 티켓 이벤트 =====

    async def on_agent_assigned(self, room: ChatRoom) -> None:
        await self.chat.send(room.id, messages.SUPPORT_REQUEST_ASSIGNED)
        logger.info("Notified agent assignment", room_id=room.id)

    async def on_resolved(self, room: ChatRoom, conversation: SunshineConversation) -> None:
        """
        해결 처리

        취소 버튼이 달린 안내를 보내고, 요청자의 쓰기 권한을 회수한 뒤
        60초 후 삭제를 예약한다 (기존 예약은 교체).
        """
        await self.chat.send(
            room.id,
            messages.SUPPORT_REQUEST_RESOLVED,
            buttons=[ChatButton(
                custom_id=CANCEL_DELETION_BUTTON_ID,
                label=messages.CANCEL,
                style=ButtonStyle.SECONDARY,
            )],
        )

        owner_id = conversation.discord_owner
        if owner_id:
            try:
                await self.chat.lock_room(room.id, owner_id)
            except Exception as e:
                logger.warning(
                    "Failed to lock resolved room",
                    room_id=room.id,
                    owner_id=owner_id,
                    error=str(e),
                )
        else:
            logger.warning("Resolved conversation has no owner", conversation_id=conversation.id)

        room_id = room.id
        conversation_id = conversation.id

        async def fire() -> None:
            await self._delete_resolved(room_id, conversation_id)

        self.deletions.schedule(room_id, self.deletion_delay, fire)

    def cancel_deletion(self, room_id: str) -> bool:
        """예약 삭제 취소 (중복 클릭 안전)"""
        return self.deletions.cancel(room_id)

    async def _delete_resolved(self, room_id: str, conversation_id: str) -> None:
        """채널 삭제 후 원격 대화 삭제 (트랜잭션 아님)"""
        await self._delete_room_quietly(
            room_id,
            conversation_id=conversation_id,
            reason="Ticket was resolved on Zendesk",
        )
        try:
            await self.sunshine.delete_conversation(conversation_id)
        except Exception as e:
            logger.error(
                "Failed to delete resolved conversation",
                conversation_id=conversation_id,
                room_id=room_id,
                error=str(e),
            )

    async def _delete_room_quietly(self, room_id: str, conversation_id: str, reason: str) -> None:
        try:
            await self.chat.delete_room(room_id, reason=reason)
            logger.info("Deleted support room", room_id=room_id, conversation_id=conversation_id)
        except Exception as e:
            logger.warning(
                "Failed to delete room",
                room_id=room_id,
                conversation_id=conversation_id,
                error=str(e),
            )
