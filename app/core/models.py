"""공통 데이터 모델

Sunshine Conversations API v2 엔티티 중 브릿지가 사용하는 필드만 정의.
API 는 camelCase 를 사용하므로 alias 로 매핑한다.
"""
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# Sunshine 메타데이터는 문자열/숫자/불리언 값만 허용 (최대 4KB)
Metadata = dict[str, Union[str, int, float, bool]]


class SunshineModel(BaseModel):
    """camelCase alias 공통 설정"""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_api(self) -> dict[str, Any]:
        """API 요청 본문으로 직렬화"""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class AuthorType(str, Enum):
    """메시지 작성자 타입"""
    BUSINESS = "business"
    USER = "user"


class ContentType(str, Enum):
    """브릿지가 다루는 메시지 콘텐츠 타입"""
    TEXT = "text"
    IMAGE = "image"
    FILE = "file"


class Author(SunshineModel):
    """메시지 작성자"""
    type: AuthorType
    user_id: Optional[str] = None
    user_external_id: Optional[str] = None
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None


class Content(SunshineModel):
    """메시지 콘텐츠

    text/image/file 외의 타입(carousel, form 등)도 파싱은 되지만
    릴레이 대상이 아니므로 type 은 문자열로 둔다.
    """
    type: str
    text: Optional[str] = None
    media_url: Optional[str] = None
    media_type: Optional[str] = None
    alt_text: Optional[str] = None


class MessageEnvelope(SunshineModel):
    """Sunshine 으로 보낼 메시지 (author + content + metadata)"""
    author: Author
    content: Content
    metadata: Optional[Metadata] = None

    @property
    def is_empty_text(self) -> bool:
        return self.content.type == ContentType.TEXT.value and not self.content.text


class SunshineMessage(SunshineModel):
    """웹훅으로 수신한 메시지"""
    id: str
    received: Optional[str] = None
    author: Author
    content: Content
    metadata: Optional[Metadata] = None


class SwitchboardIntegration(SunshineModel):
    id: str
    name: Optional[str] = None
    integration_id: Optional[str] = None
    integration_type: Optional[str] = None


class SunshineConversation(SunshineModel):
    """원격 대화"""
    id: str
    type: str = "personal"
    is_default: bool = False
    metadata: Optional[Metadata] = None
    active_switchboard_integration: Optional[SwitchboardIntegration] = None
    display_name: Optional[str] = None
    created_at: Optional[str] = None

    @property
    def discord_channel(self) -> Optional[str]:
        """바인딩된 채널 ID (문자열이 아니거나 비어 있으면 None)"""
        value = (self.metadata or {}).get("discordChannel")
        return value if isinstance(value, str) and value else None

    @property
    def discord_owner(self) -> Optional[str]:
        value = (self.metadata or {}).get("discordOwner")
        return value if isinstance(value, str) and value else None


class UserProfile(SunshineModel):
    given_name: Optional[str] = None
    surname: Optional[str] = None
    email: Optional[str] = None
    avatar_url: Optional[str] = None
    locale: Optional[str] = None


class SunshineUser(SunshineModel):
    """사용자 생성/수정 요청"""
    external_id: str
    signed_up_at: Optional[str] = None
    to_be_retained: Optional[bool] = None
    profile: Optional[UserProfile] = None
    metadata: Optional[Metadata] = None

    def to_api(self) -> dict[str, Any]:
        # surname 등 명시적 null 은 그대로 전송
        data = super().to_api()
        if self.profile is not None:
            data["profile"] = self.profile.model_dump(mode="json", by_alias=True, exclude_unset=True)
        return data


class UploadedAttachment(SunshineModel):
    media_url: str
    media_type: str = "application/octet-stream"


class ConversationList(SunshineModel):
    """대화 목록 응답"""
    conversations: list[SunshineConversation] = Field(default_factory=list)
    has_more: bool = False

    def bound(self) -> list[SunshineConversation]:
        """기본 대화를 제외하고 채널이 바인딩된 대화만"""
        return [
            convo for convo in self.conversations
            if not convo.is_default and convo.discord_channel
        ]
