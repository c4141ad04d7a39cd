"""Sunshine Conversations Webhook 처리

Conversations integration 웹훅 (v2 envelope)
- 정적 API 키 검증 (X-Api-Key)
- conversation:message 이벤트 파싱
- 자기 자신(브릿지)이 보낸 메시지 판별 (에코 방지)
"""
import hmac
import json
from dataclasses import dataclass, field
from typing import Mapping, Optional

from pydantic import ValidationError

from app.core.errors import WebhookAuthError, WebhookValidationError
from app.core.messages import BOT_DISPLAY_NAME
from app.core.models import AuthorType, SunshineConversation, SunshineMessage
from app.utils.logger import get_logger

logger = get_logger(__name__)


API_KEY_HEADER = "x-api-key"

CONVERSATION_MESSAGE = "conversation:message"

# 채팅에 표시하지 않을 메시지 (브릿지가 남긴 상담원용 안내)
HIDDEN_METADATA_KEY = "discordHidden"


@dataclass
class ConversationMessageEvent:
    """conversation:message 이벤트"""
    id: str
    conversation: SunshineConversation
    message: SunshineMessage
    created_at: Optional[str] = None


@dataclass
class WebhookEnvelope:
    """웹훅 envelope"""
    app_id: Optional[str] = None
    webhook_id: Optional[str] = None
    events: list[ConversationMessageEvent] = field(default_factory=list)
    skipped: int = 0


class SunshineWebhookHandler:
    """Sunshine Conversations 웹훅 핸들러"""

    def __init__(self, api_key: str):
        self.api_key = api_key

    def authenticate(self, headers: Mapping[str, str]) -> None:
        """
        API 키 검증

        Raises:
            WebhookAuthError: 키 누락 또는 불일치
        """
        provided = headers.get(API_KEY_HEADER) or ""
        if not self.api_key or not hmac.compare_digest(provided.encode(), self.api_key.encode()):
            logger.warning("Invalid Sunshine webhook API key", has_key=bool(provided))
            raise WebhookAuthError("Invalid API key")

    def parse_webhook(self, payload: bytes) -> WebhookEnvelope:
        """
        envelope 파싱

        conversation:message 외의 이벤트(typing 등)는 건너뛴다.

        Raises:
            WebhookValidationError: JSON 이 아니거나 이벤트 형식이 잘못된 경우
        """
        try:
            data = json.loads(payload)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise WebhookValidationError(f"Invalid JSON body: {e}") from e

        if not isinstance(data, dict) or not isinstance(data.get("events", []), list):
            raise WebhookValidationError("Unexpected webhook envelope")

        envelope = WebhookEnvelope(
            app_id=(data.get("app") or {}).get("id"),
            webhook_id=(data.get("webhook") or {}).get("id"),
        )

        for event in data.get("events", []):
            if not isinstance(event, dict) or event.get("type") != CONVERSATION_MESSAGE:
                envelope.skipped += 1
                continue

            payload_data = event.get("payload") or {}
            try:
                envelope.events.append(ConversationMessageEvent(
                    id=str(event.get("id", "")),
                    conversation=SunshineConversation.model_validate(payload_data.get("conversation")),
                    message=SunshineMessage.model_validate(payload_data.get("message")),
                    created_at=event.get("createdAt"),
                ))
            except ValidationError as e:
                raise WebhookValidationError(f"Malformed conversation:message event: {e}") from e

        logger.debug(
            "Parsed Sunshine webhook",
            events=len(envelope.events),
            skipped=envelope.skipped,
        )
        return envelope


def is_bridge_echo(message: SunshineMessage) -> bool:
    """
    브릿지 자신이 보낸 메시지인지

    - user 작성 메시지: 브릿지가 채팅 사용자 대신 올린 메시지
    - business 작성이지만 브릿지 봇 이름: 브릿지의 안내 메시지
    """
    if message.author.type != AuthorType.BUSINESS:
        return True
    return message.author.display_name == BOT_DISPLAY_NAME


def is_hidden(message: SunshineMessage) -> bool:
    return bool((message.metadata or {}).get(HIDDEN_METADATA_KEY))
