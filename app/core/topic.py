"""채널 토픽 바인딩 인코딩

브릿지가 소유하는 유일한 영속 상태. Discord 채널 토픽에
(conversation_id, owner_id) 쌍을 센티널 뒤에 JSON 으로 저장한다.
센티널 앞에는 사람이 읽는 텍스트가 올 수 있다.
"""
import json
from typing import NamedTuple, Optional

from app.core.errors import PayloadTooLarge, TopicPayloadCorrupted


# U+200E (LEFT-TO-RIGHT MARK) x5
TOPIC_SENTINEL = "\u200e" * 5

# 채널 토픽 최대 길이는 1024, 사람이 쓰는 텍스트용 여유를 남김
MAX_TOPIC_PAYLOAD_LENGTH = 800


class ConversationBinding(NamedTuple):
    """채널 ↔ 원격 대화 바인딩"""
    conversation_id: str
    owner_id: str


def encode_topic(binding: ConversationBinding) -> str:
    """
    바인딩을 토픽 페이로드로 직렬화

    Raises:
        PayloadTooLarge: 센티널 포함 길이가 800자를 넘는 경우
    """
    payload = TOPIC_SENTINEL + json.dumps(
        [binding.conversation_id, binding.owner_id],
        separators=(",", ":"),
        ensure_ascii=False,
    )
    if len(payload) > MAX_TOPIC_PAYLOAD_LENGTH:
        raise PayloadTooLarge(
            f"Topic payload is {len(payload)} characters, "
            f"limit is {MAX_TOPIC_PAYLOAD_LENGTH}"
        )
    return payload


def decode_topic(topic: Optional[str]) -> Optional[ConversationBinding]:
    """
    토픽에서 바인딩 추출

    Returns:
        바인딩, 센티널이 없으면 None (브릿지 채널 아님)

    Raises:
        TopicPayloadCorrupted: 센티널 뒤의 페이로드가 깨진 경우
    """
    if not topic:
        return None

    idx = topic.find(TOPIC_SENTINEL)
    if idx == -1:
        return None

    raw = topic[idx + len(TOPIC_SENTINEL):]
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise TopicPayloadCorrupted(f"Invalid topic payload: {e}") from e

    if (
        not isinstance(data, list)
        or len(data) != 2
        or not all(isinstance(item, str) for item in data)
    ):
        raise TopicPayloadCorrupted(f"Unexpected topic payload shape: {raw[:100]}")

    return ConversationBinding(conversation_id=data[0], owner_id=data[1])
