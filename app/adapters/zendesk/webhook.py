"""Zendesk Support Webhook 처리

티켓 이벤트(상담원 배정, 해결) 수신
- HMAC-SHA256 서명 검증 (timestamp + body, base64)
- 이벤트 파싱

서명 검증: https://developer.zendesk.com/documentation/webhooks/verifying/
"""
import base64
import hashlib
import hmac
import json
from dataclasses import dataclass
from typing import Mapping, Optional

from app.core.errors import WebhookAuthError, WebhookValidationError
from app.utils.logger import get_logger

logger = get_logger(__name__)


SIGNATURE_HEADER = "x-zendesk-webhook-signature"
TIMESTAMP_HEADER = "x-zendesk-webhook-signature-timestamp"

TICKET_ASSIGNED = "ticket:assigned"
TICKET_SOLVED = "ticket:solved"


@dataclass
class ZendeskWebhookEvent:
    """티켓 웹훅 이벤트"""
    type: str
    requester_id: str
    ticket_id: Optional[str] = None
    assignee_name: Optional[str] = None


def compute_signature(secret: str, timestamp: str, body: bytes) -> str:
    """base64(HMAC-SHA256(secret, timestamp + body))"""
    digest = hmac.new(
        secret.encode("utf-8"),
        timestamp.encode("utf-8") + body,
        hashlib.sha256,
    ).digest()
    return base64.b64encode(digest).decode("ascii")


class ZendeskWebhookHandler:
    """Zendesk Support 웹훅 핸들러"""

    def __init__(self, webhook_secret: str):
        self.webhook_secret = webhook_secret

    def verify_signature(self, payload: bytes, signature: str, timestamp: str) -> bool:
        """
        서명 검증

        Args:
            payload: 요청 본문 (raw bytes)
            signature: X-Zendesk-Webhook-Signature 헤더 값
            timestamp: X-Zendesk-Webhook-Signature-Timestamp 헤더 값
        """
        if not self.webhook_secret:
            logger.error("Zendesk webhook secret not configured")
            return False

        expected = compute_signature(self.webhook_secret, timestamp, payload)
        return hmac.compare_digest(expected.encode(), signature.encode())

    def authenticate(self, headers: Mapping[str, str], payload: bytes) -> None:
        """
        헤더 검증

        Raises:
            WebhookValidationError: 서명/타임스탬프/본문 누락
            WebhookAuthError: 서명 불일치
        """
        signature = headers.get(SIGNATURE_HEADER)
        timestamp = headers.get(TIMESTAMP_HEADER)

        if not signature or not timestamp or not payload:
            logger.warning(
                "Missing Zendesk webhook signature inputs",
                has_signature=bool(signature),
                has_timestamp=bool(timestamp),
                body_len=len(payload),
            )
            raise WebhookValidationError("Missing signature, timestamp or body")

        if not self.verify_signature(payload, signature, timestamp):
            logger.warning("Invalid Zendesk webhook signature", body_len=len(payload))
            raise WebhookAuthError("Invalid signature")

    def parse_webhook(self, payload: bytes) -> ZendeskWebhookEvent:
        """
        이벤트 파싱

        Raises:
            WebhookValidationError: JSON 이 아니거나 필수 필드 누락
        """
        try:
            data = json.loads(payload)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise WebhookValidationError(f"Invalid JSON body: {e}") from e

        if not isinstance(data, dict):
            raise WebhookValidationError("Webhook body must be an object")

        requester_id = data.get("requesterId")
        if requester_id is None:
            raise WebhookValidationError("Missing requesterId")

        ticket_id = data.get("ticketId")
        return ZendeskWebhookEvent(
            type=str(data.get("type", "")),
            requester_id=str(requester_id),
            ticket_id=str(ticket_id) if ticket_id is not None else None,
            assignee_name=data.get("assigneeName"),
        )
