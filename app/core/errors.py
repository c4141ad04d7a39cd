"""브릿지 에러 분류

웹훅 핸들러는 결과를 예외로 전달하고, 라우트 경계에서 한 번만
HTTP 상태 코드로 변환한다. 상태 코드는 발신 측 재시도 여부를 결정한다.

- 400: 요청 형식 오류 (서명/타임스탬프/본문 누락)
- 401: 인증 실패
- 406: 처리 불가 - 재시도하지 말 것
- 500: 예기치 못한 실패 - 재시도 가능
"""
from enum import IntEnum
from typing import Optional


class WebhookStatus(IntEnum):
    """웹훅 처리 결과 → HTTP 상태"""
    OK = 200
    MALFORMED = 400
    UNAUTHORIZED = 401
    NOT_APPLICABLE = 406
    RETRY = 500


class BridgeError(Exception):
    """브릿지 에러 기본 클래스"""

    status: WebhookStatus = WebhookStatus.RETRY

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__


class WebhookValidationError(BridgeError):
    """잘못된 형식의 웹훅 요청"""

    status = WebhookStatus.MALFORMED


class WebhookAuthError(BridgeError):
    """서명 또는 API 키 불일치"""

    status = WebhookStatus.UNAUTHORIZED


class NotApplicable(BridgeError):
    """유효하지만 영구적으로 처리할 수 없는 이벤트

    알 수 없는 사용자, 바인딩 없음, 자기 자신이 작성한 메시지 등
    """

    status = WebhookStatus.NOT_APPLICABLE


class RemoteApiError(BridgeError):
    """Sunshine Conversations API 에러

    Attributes:
        status_code: HTTP 응답 코드
        codes: 응답 본문 errors[].code 목록
        cause: errors[].title 을 합친 설명
    """

    status = WebhookStatus.RETRY

    def __init__(
        self,
        message: str,
        status_code: int,
        codes: Optional[list[str]] = None,
        cause: str = "",
    ):
        super().__init__(message)
        self.status_code = status_code
        self.codes = list(codes or [])
        self.cause = cause

    def has_code(self, *codes: str) -> bool:
        return any(code in self.codes for code in codes)

    def __str__(self) -> str:
        if self.cause:
            return f"{self.message}: {self.cause}"
        return self.message


class PayloadTooLarge(ValueError):
    """토픽 페이로드가 최대 길이를 초과"""


class TopicPayloadCorrupted(ValueError):
    """센티널 뒤의 토픽 페이로드를 해석할 수 없음"""
