import json

import pytest

from app.adapters.zendesk.webhook import ZendeskWebhookHandler, compute_signature
from app.core.errors import WebhookValidationError


def test_parse_ticket_event_fields() -> None:
    body = json.dumps({
        "type": "ticket:assigned",
        "requesterId": "discord-42",
        "ticketId": 1234,
        "assigneeName": "Agent Smith",
    }).encode()

    event = ZendeskWebhookHandler("secret").parse_webhook(body)

    assert event.type == "ticket:assigned"
    assert event.requester_id == "discord-42"
    assert event.ticket_id == "1234"
    assert event.assignee_name == "Agent Smith"


@pytest.mark.parametrize("body", [b"not json", b"[]", b'{"type": "ticket:solved"}'])
def test_parse_rejects_malformed_bodies(body: bytes) -> None:
    with pytest.raises(WebhookValidationError):
        ZendeskWebhookHandler("secret").parse_webhook(body)


def test_signature_covers_timestamp_and_body() -> None:
    handler = ZendeskWebhookHandler("secret")
    body = b'{"type":"ticket:solved"}'
    signature = compute_signature("secret", "2026-10-19T09:00:00Z", body)

    assert handler.verify_signature(body, signature, "2026-10-19T09:00:00Z") is True
    assert handler.verify_signature(body, signature, "2026-10-19T09:00:01Z") is False
    assert handler.verify_signature(body + b" ", signature, "2026-10-19T09:00:00Z") is False
    assert ZendeskWebhookHandler("").verify_signature(body, signature, "2026-10-19T09:00:00Z") is False
