"""웹훅 수신 처리

두 웹훅 소스를 처리하고 결과를 예외로 전달한다 (라우트에서 HTTP 상태로 변환).
- Zendesk Support: 티켓 배정/해결 → 라이프사이클
- Sunshine Conversations: 상담원 메시지 → 릴레이
"""
from typing import Mapping, Optional

from app.adapters.sunshine.client import SunshineClient, is_bridge_external_id
from app.adapters.sunshine.webhook import SunshineWebhookHandler, is_bridge_echo, is_hidden
from app.adapters.zendesk.webhook import (
    TICKET_ASSIGNED,
    TICKET_SOLVED,
    ZendeskWebhookHandler,
)
from app.core.chat import ChatPlatform, ChatRoom
from app.core.errors import NotApplicable, WebhookStatus
from app.core.lifecycle import ConversationLifecycleManager
from app.core.models import SunshineConversation
from app.core.relay import MessageRelay
from app.utils.logger import get_logger

logger = get_logger(__name__)


class WebhookIngress:
    """웹훅 → 라이프사이클/릴레이 디스패치"""

    def __init__(
        self,
        sunshine: SunshineClient,
        chat: ChatPlatform,
        lifecycle: ConversationLifecycleManager,
        relay: MessageRelay,
        zendesk_webhook: ZendeskWebhookHandler,
        sunshine_webhook: SunshineWebhookHandler,
    ):
        self.sunshine = sunshine
        self.chat = chat
        self.lifecycle = lifecycle
        self.relay = relay
        self.zendesk_webhook = zendesk_webhook
        self.sunshine_webhook = sunshine_webhook

    async def handle(self, path: str, headers: Mapping[str, str], body: bytes) -> WebhookStatus:
        """경로로 소스 구분 (.../zd → Zendesk Support, 그 외 → Sunshine)"""
        if path.rstrip("/").endswith("/zd"):
            return await self.handle_ticketing(headers, body)
        return await self.handle_conversations(headers, body)

    # ===== Zendesk Support =====

    async def handle_ticketing(self, headers: Mapping[str, str], body: bytes) -> WebhookStatus:
        """
        티켓 이벤트 처리

        Raises:
            WebhookValidationError / WebhookAuthError / NotApplicable
        """
        self.zendesk_webhook.authenticate(headers, body)
        event = self.zendesk_webhook.parse_webhook(body)

        logger.info(
            "Received Zendesk webhook",
            event_type=event.type,
            ticket_id=event.ticket_id,
            requester_id=event.requester_id,
            assignee=event.assignee_name,
        )

        if not is_bridge_external_id(event.requester_id):
            raise NotApplicable(f"Requester {event.requester_id} is not a Discord user")

        room, conversation = await self._find_current_room(event.requester_id)
        if room is None or conversation is None:
            raise NotApplicable(f"No active room for requester {event.requester_id}")

        if event.type == TICKET_ASSIGNED:
            await self.lifecycle.on_agent_assigned(room)
        elif event.type == TICKET_SOLVED:
            await self.lifecycle.on_resolved(room, conversation)
        else:
            logger.debug("Ignoring Zendesk event", event_type=event.type)

        return WebhookStatus.OK

    async def _find_current_room(
        self, external_id: str
    ) -> tuple[Optional[ChatRoom], Optional[SunshineConversation]]:
        """
        요청자의 현재 채널 찾기

        목록 순서대로 확인하며 마지막으로 유효한 채널이 이긴다.
        """
        conversations = await self.sunshine.list_conversations(external_id)

        effective_room: Optional[ChatRoom] = None
        effective_convo: Optional[SunshineConversation] = None
        for convo in conversations.bound():
            room_id = convo.discord_channel
            try:
                room = await self.chat.fetch_room(room_id)
            except Exception as e:
                logger.warning(
                    "Failed to fetch room for conversation",
                    external_id=external_id,
                    conversation_id=convo.id,
                    room_id=room_id,
                    error=str(e),
                )
                continue

            if room is None or not room.sendable or room.guild_id is None:
                continue
            effective_room = room
            effective_convo = convo

        return effective_room, effective_convo

    # ===== Sunshine Conversations =====

    async def handle_conversations(self, headers: Mapping[str, str], body: bytes) -> WebhookStatus:
        """
        상담원 메시지 처리

        첫 번째로 거부된 이벤트에서 배치 처리를 중단한다.

        Raises:
            WebhookAuthError / WebhookValidationError / NotApplicable
        """
        self.sunshine_webhook.authenticate(headers)
        envelope = self.sunshine_webhook.parse_webhook(body)

        for event in envelope.events:
            conversation = event.conversation
            message = event.message

            room_id = (conversation.metadata or {}).get("discordChannel")
            if not isinstance(room_id, str) or not room_id:
                raise NotApplicable(f"Conversation {conversation.id} has no bound room")

            room = await self.chat.fetch_room(room_id)
            if room is None or not room.is_relay_target:
                raise NotApplicable(f"Room {room_id} is not a relayable text channel")

            if is_bridge_echo(message):
                raise NotApplicable(f"Message {message.id} was authored by the bridge")
            if is_hidden(message):
                raise NotApplicable(f"Message {message.id} is hidden from Discord")

            await self.relay.handle_remote_message(room, message)

        return WebhookStatus.OK
