import pytest

from app.core.errors import PayloadTooLarge, TopicPayloadCorrupted
from app.core.topic import (
    MAX_TOPIC_PAYLOAD_LENGTH,
    TOPIC_SENTINEL,
    ConversationBinding,
    decode_topic,
    encode_topic,
)


def test_binding_survives_topic_with_human_prefix() -> None:
    binding = ConversationBinding("64f0c2a1b2", "123456789012345678")
    topic = "Support request\n\n" + encode_topic(binding)

    assert decode_topic(topic) == binding


def test_encode_is_compact_json_after_sentinel() -> None:
    payload = encode_topic(ConversationBinding("c1", "u1"))

    assert payload == TOPIC_SENTINEL + '["c1","u1"]'


def test_encode_keeps_non_ascii_ids() -> None:
    binding = ConversationBinding("대화", "사용자")

    assert decode_topic(encode_topic(binding)) == binding


def test_encode_rejects_oversize_payload() -> None:
    binding = ConversationBinding("c" * MAX_TOPIC_PAYLOAD_LENGTH, "u1")

    with pytest.raises(PayloadTooLarge):
        encode_topic(binding)


def test_encode_accepts_payload_at_limit() -> None:
    overhead = len(encode_topic(ConversationBinding("", "u")))
    binding = ConversationBinding("c" * (MAX_TOPIC_PAYLOAD_LENGTH - overhead), "u")

    assert len(encode_topic(binding)) == MAX_TOPIC_PAYLOAD_LENGTH


@pytest.mark.parametrize("topic", [None, "", "General chat", "\u200e" * 4 + '["c","u"]'])
def test_topic_without_sentinel_is_not_bound(topic) -> None:
    assert decode_topic(topic) is None


@pytest.mark.parametrize("raw", ["{not json", '["only-one"]', '{"a": "b"}', '["c", 5]'])
def test_corrupted_payload_raises(raw: str) -> None:
    with pytest.raises(TopicPayloadCorrupted):
        decode_topic("Support request\n\n" + TOPIC_SENTINEL + raw)
