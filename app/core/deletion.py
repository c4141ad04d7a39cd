"""예약 삭제 레지스트리

해결된 상담 채널의 지연 삭제를 채널 ID 별로 관리한다.
타이머 발화와 취소는 모두 take-and-clear 를 거치므로 둘 중 먼저
항목을 가져간 쪽만 진행하고, 다른 쪽은 아무것도 하지 않는다.

프로세스 로컬 상태이므로 재시작 시 예약된 삭제는 사라진다.
"""
import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Optional

from app.utils.logger import get_logger

logger = get_logger(__name__)


DeletionAction = Callable[[], Awaitable[None]]


@dataclass
class PendingDeletion:
    """예약된 삭제"""
    room_id: str
    fire_at: datetime
    cancel_token: str = field(default_factory=lambda: uuid.uuid4().hex)
    task: Optional[asyncio.Task] = None


class PendingDeletionRegistry:
    """채널 ID → 예약 삭제"""

    def __init__(self):
        self._entries: dict[str, PendingDeletion] = {}

    def __contains__(self, room_id: str) -> bool:
        return self.is_pending(room_id)

    def is_pending(self, room_id: str) -> bool:
        return room_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, room_id: str) -> Optional[PendingDeletion]:
        return self._entries.get(room_id)

    def schedule(self, room_id: str, delay: float, action: DeletionAction) -> PendingDeletion:
        """
        삭제 예약 (같은 채널의 기존 예약은 교체)

        Args:
            room_id: 채널 ID
            delay: 지연 시간 (초)
            action: 발화 시 실행할 삭제 코루틴 함수
        """
        previous = self._take(room_id)
        if previous is not None and previous.task is not None:
            previous.task.cancel()
            logger.debug("Replaced pending deletion", room_id=room_id)

        entry = PendingDeletion(
            room_id=room_id,
            fire_at=datetime.now(timezone.utc) + timedelta(seconds=delay),
        )
        entry.task = asyncio.create_task(
            self._fire_later(entry, delay, action),
            name=f"pending-deletion-{room_id}",
        )
        self._entries[room_id] = entry

        logger.info("Scheduled room deletion", room_id=room_id, fire_at=entry.fire_at.isoformat())
        return entry

    def cancel(self, room_id: str) -> bool:
        """
        예약 취소 (없으면 아무것도 하지 않음)

        Returns:
            실제로 취소했는지
        """
        entry = self._take(room_id)
        if entry is None:
            return False

        if entry.task is not None and entry.task is not asyncio.current_task():
            entry.task.cancel()

        logger.info("Cancelled room deletion", room_id=room_id)
        return True

    async def shutdown(self) -> None:
        """모든 예약 취소 (프로세스 종료 시)"""
        entries = list(self._entries.values())
        self._entries.clear()

        tasks = [entry.task for entry in entries if entry.task is not None]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info("Dropped pending deletions on shutdown", count=len(tasks))

    def _take(self, room_id: str, token: Optional[str] = None) -> Optional[PendingDeletion]:
        """항목을 꺼내고 제거 (token 이 주어지면 일치할 때만)"""
        entry = self._entries.get(room_id)
        if entry is None:
            return None
        if token is not None and entry.cancel_token != token:
            return None
        return self._entries.pop(room_id)

    async def _fire_later(self, entry: PendingDeletion, delay: float, action: DeletionAction) -> None:
        await asyncio.sleep(delay)

        if self._take(entry.room_id, entry.cancel_token) is None:
            # 이미 취소되었거나 교체됨
            return

        try:
            await action()
        except Exception as e:
            logger.error(
                "Scheduled deletion failed",
                room_id=entry.room_id,
                error=str(e),
            )
