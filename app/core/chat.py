"""채팅 플랫폼 인터페이스

라이프사이클/릴레이 로직이 호출하는 채팅 플랫폼 기능만 정의한다.
Discord 구현은 app.discord_bot.bot 에 있다.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Protocol


class RoomKind(str, Enum):
    """채널 종류"""
    TEXT = "text"
    NEWS = "news"
    THREAD = "thread"
    VOICE = "voice"
    DM = "dm"
    OTHER = "other"


class ButtonStyle(str, Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"
    DANGER = "danger"


@dataclass(frozen=True)
class ChatButton:
    """메시지에 붙는 버튼 (custom_id 로 인터랙션 레지스트리에서 조회)"""
    custom_id: str
    label: str
    style: ButtonStyle = ButtonStyle.SECONDARY


@dataclass(frozen=True)
class ChatCard:
    """임베드 카드"""
    title: str
    description: str
    color: Optional[int] = None


@dataclass
class ChatUser:
    """채팅 사용자 정보"""
    id: str
    username: str = ""
    display_name: str = ""
    avatar_url: Optional[str] = None
    is_bot: bool = False


@dataclass
class ChatRoom:
    """채널 정보"""
    id: str
    kind: RoomKind = RoomKind.TEXT
    name: str = ""
    topic: Optional[str] = None
    guild_id: Optional[str] = None
    sendable: bool = True

    @property
    def is_relay_target(self) -> bool:
        """메시지를 주고받을 수 있는 일반 길드 텍스트 채널인지"""
        return (
            self.sendable
            and self.guild_id is not None
            and self.kind in (RoomKind.TEXT, RoomKind.NEWS)
        )


@dataclass
class ChatAttachment:
    """메시지 첨부파일"""
    name: str
    url: str
    size: int
    content_type: Optional[str] = None


@dataclass
class ChatMessage:
    """채널에 올라온 메시지"""
    id: str
    room: ChatRoom
    author: ChatUser
    content: str = ""
    attachments: list[ChatAttachment] = field(default_factory=list)


class ChatPlatform(Protocol):
    """채팅 플랫폼 기능"""

    async def fetch_room(self, room_id: str) -> Optional[ChatRoom]:
        """채널 조회 (없으면 None, 조회 실패는 예외)"""
        ...

    async def create_room(self, name: str, topic: str, reason: str) -> ChatRoom:
        """@everyone 에게 보이지 않는 상담 채널 생성"""
        ...

    async def grant_view(self, room_id: str, user_id: str, reason: str) -> None:
        """사용자에게 채널 보기 권한 부여"""
        ...

    async def lock_room(self, room_id: str, owner_id: str) -> None:
        """소유자는 보기만 가능, @everyone 은 보기 불가"""
        ...

    async def delete_room(self, room_id: str, reason: str) -> None:
        ...

    async def send(
        self,
        room_id: str,
        content: Optional[str] = None,
        buttons: Optional[list[ChatButton]] = None,
        card: Optional[ChatCard] = None,
    ) -> None:
        ...

    async def reply(self, room_id: str, message_id: str, content: str) -> None:
        """특정 메시지에 답장"""
        ...

    async def download_attachment(self, attachment: ChatAttachment) -> bytes:
        ...

    def mention_user(self, user_id: str) -> str:
        ...

    def mention_room(self, room_id: str) -> str:
        ...


class ChatInteraction(Protocol):
    """버튼/명령어 인터랙션"""

    user: ChatUser
    room_id: str
    in_guild: bool

    def is_done(self) -> bool:
        """이미 응답(defer 포함)했는지"""
        ...

    async def defer(self, ephemeral: bool = True) -> None:
        ...

    async def reply(
        self,
        content: str,
        ephemeral: bool = True,
        buttons: Optional[list[ChatButton]] = None,
    ) -> None:
        ...

    async def edit_reply(
        self,
        content: str,
        buttons: Optional[list[ChatButton]] = None,
    ) -> None:
        ...
