"""Sunshine Conversations API 클라이언트

Zendesk Sunshine Conversations v2 REST API
- 사용자 생성/수정 (upsert)
- 대화 생성/수정/목록/삭제
- 상담원 큐로 제어권 전달 (passControl)
- 메시지/액티비티 전송
- 첨부파일 업로드

API 문서: https://developer.zendesk.com/api-reference/conversations/
"""
import base64
from typing import Any, Optional, Union
from urllib.parse import quote

import httpx

from app.core.errors import RemoteApiError
from app.core.models import (
    Author,
    ConversationList,
    MessageEnvelope,
    Metadata,
    SunshineConversation,
    SunshineUser,
    UploadedAttachment,
)
from app.utils.logger import get_logger

logger = get_logger(__name__)


# API 타임아웃
API_TIMEOUT = 30.0
# 첨부파일 업로드 타임아웃 (최대 50MB)
UPLOAD_TIMEOUT = 120.0

# 브릿지가 이해하는 외부 사용자 ID 접두사
EXTERNAL_ID_PREFIX = "discord-"

# 삭제 시 무시하는 에러 코드
CONVERSATION_NOT_FOUND = "conversation_not_found"


def build_external_id(user_id: str) -> str:
    """Discord 사용자 ID → Sunshine externalId"""
    return EXTERNAL_ID_PREFIX + user_id


def is_bridge_external_id(external_id: Optional[str]) -> bool:
    return bool(external_id) and external_id.startswith(EXTERNAL_ID_PREFIX)


class SunshineClient:
    """Sunshine Conversations API 클라이언트"""

    def __init__(
        self,
        endpoint: str,
        app_id: str,
        key_id: str,
        key_secret: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            endpoint: 'https://<subdomain>.zendesk.com/sc'
            app_id: Conversations 앱 ID
            key_id: API 키 ID
            key_secret: API 키 시크릿
            transport: httpx 전송 계층 (테스트용)
        """
        self.endpoint = endpoint.rstrip("/")
        self.app_id = app_id
        self.key_id = key_id
        self.key_secret = key_secret
        self._transport = transport

    def _get_auth_header(self) -> dict[str, str]:
        """Basic 인증 헤더"""
        credentials = f"{self.key_id}:{self.key_secret}"
        encoded = base64.b64encode(credentials.encode()).decode()
        return {"Authorization": f"Basic {encoded}"}

    def _url(self, path: str) -> str:
        return f"{self.endpoint}/v2/apps/{self.app_id}{path}"

    def _client(self, timeout: float = API_TIMEOUT) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout, transport=self._transport)

    async def _request(
        self,
        method: str,
        path: str,
        error_message: str,
        json: Optional[dict] = None,
        params: Optional[dict] = None,
        files: Optional[dict] = None,
        ignored_codes: tuple[str, ...] = (),
        timeout: float = API_TIMEOUT,
    ) -> tuple[httpx.Response, dict]:
        """
        HTTP 요청

        Args:
            error_message: 실패 시 RemoteApiError 메시지
            ignored_codes: 응답 errors 에 이 코드가 하나라도 있으면 예외를 던지지 않음

        Returns:
            (response, json body)

        Raises:
            RemoteApiError: 2xx 가 아닌 응답
        """
        async with self._client(timeout) as client:
            response = await client.request(
                method=method,
                url=self._url(path),
                headers=self._get_auth_header(),
                json=json,
                params=params,
                files=files,
            )

        try:
            body = response.json() if response.content else {}
        except ValueError:
            body = {}

        if response.is_success:
            return response, body

        errors = body.get("errors") if isinstance(body, dict) else None
        codes: list[str] = []
        causes: list[str] = []
        if isinstance(errors, list):
            for error in errors:
                if not isinstance(error, dict):
                    continue
                code = error.get("code")
                if code:
                    codes.append(code)
                causes.append(str(error.get("title") or code))

        logger.warning(
            "Sunshine Conversations API error",
            method=method,
            path=path,
            status=response.status_code,
            codes=codes,
            body=response.text[:500],
        )

        if ignored_codes and any(code in ignored_codes for code in codes):
            return response, body

        raise RemoteApiError(
            error_message,
            status_code=response.status_code,
            codes=codes,
            cause="\n".join(causes),
        )

    # ===== 사용자 관리 =====

    async def create_user(self, user: SunshineUser) -> httpx.Response:
        """
        사용자 생성

        새로 생성된 경우(201) 사용하지 않을 기본 대화를 함께 만든다.
        """
        response, _ = await self._request(
            "POST",
            "/users",
            error_message="Failed to create user",
            json=user.to_api(),
        )
        if response.status_code == 201:
            await self.create_conversation(
                participants=[{
                    "userExternalId": user.external_id,
                    "subscribeSDKClient": False,
                }],
            )
            logger.info("Created Sunshine user", external_id=user.external_id)
        return response

    async def update_user(self, user: SunshineUser) -> httpx.Response:
        """사용자 정보 수정"""
        response, _ = await self._request(
            "PATCH",
            f"/users/{quote(user.external_id, safe='')}",
            error_message="Failed to update user",
            json=user.to_api(),
        )
        return response

    async def upsert_user(self, user: SunshineUser) -> httpx.Response:
        """사용자 생성, 이미 있으면(conflict) 수정"""
        try:
            return await self.create_user(user)
        except RemoteApiError as e:
            if e.has_code("conflict"):
                logger.debug("Sunshine user exists, updating", external_id=user.external_id)
                return await self.update_user(user)
            raise

    # ===== 대화 관리 =====

    async def create_conversation(
        self,
        participants: list[dict[str, Any]],
        metadata: Optional[Metadata] = None,
        conversation_type: str = "personal",
        display_name: Optional[str] = None,
    ) -> SunshineConversation:
        """대화 생성"""
        data: dict[str, Any] = {
            "type": conversation_type,
            "participants": participants,
        }
        if metadata is not None:
            data["metadata"] = metadata
        if display_name:
            data["displayName"] = display_name

        _, body = await self._request(
            "POST",
            "/conversations",
            error_message="Failed to create conversation",
            json=data,
        )
        return SunshineConversation.model_validate(body["conversation"])

    async def update_conversation(
        self,
        conversation_id: str,
        metadata: Optional[Metadata] = None,
        display_name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> SunshineConversation:
        """대화 수정 (metadata 는 키 단위로 병합됨)"""
        data: dict[str, Any] = {}
        if metadata is not None:
            data["metadata"] = metadata
        if display_name is not None:
            data["displayName"] = display_name
        if description is not None:
            data["description"] = description

        _, body = await self._request(
            "PATCH",
            f"/conversations/{conversation_id}",
            error_message="Failed to update conversation",
            json=data,
        )
        return SunshineConversation.model_validate(body["conversation"])

    async def list_conversations(self, external_user_id: str) -> ConversationList:
        """사용자의 대화 목록 (최대 100개)"""
        _, body = await self._request(
            "GET",
            "/conversations",
            error_message="Couldn't fetch conversations for user",
            params={
                "page[size]": "100",
                "filter[userExternalId]": external_user_id,
            },
        )
        result = ConversationList(
            conversations=[
                SunshineConversation.model_validate(item)
                for item in body.get("conversations", [])
            ],
            has_more=bool((body.get("meta") or {}).get("hasMore")),
        )
        if result.has_more:
            # 첫 페이지만 확인하므로 그 뒤의 대화는 중복 감지에서 빠진다
            logger.warning(
                "Conversation listing truncated",
                external_id=external_user_id,
                returned=len(result.conversations),
            )
        return result

    async def delete_conversation(self, conversation_id: str) -> bool:
        """
        대화 삭제

        이미 삭제된 대화(conversation_not_found)는 예외 없이 False 반환
        """
        response, _ = await self._request(
            "DELETE",
            f"/conversations/{conversation_id}",
            error_message="Failed to delete conversation",
            ignored_codes=(CONVERSATION_NOT_FOUND,),
        )
        if not response.is_success:
            logger.info("Sunshine conversation already deleted", conversation_id=conversation_id)
            return False
        logger.info("Deleted Sunshine conversation", conversation_id=conversation_id)
        return True

    async def pass_control(
        self,
        conversation_id: str,
        switchboard_integration: str = "next",
        metadata: Optional[Metadata] = None,
    ) -> bool:
        """다음 스위치보드 통합(상담원 워크스페이스)으로 제어권 전달"""
        data: dict[str, Any] = {"switchboardIntegration": switchboard_integration}
        if metadata is not None:
            data["metadata"] = metadata

        response, _ = await self._request(
            "POST",
            f"/conversations/{conversation_id}/passControl",
            error_message="Failed to pass control of conversation",
            json=data,
        )
        return response.status_code == 200

    # ===== 메시지 =====

    async def post_message(self, conversation_id: str, envelope: MessageEnvelope) -> dict:
        response, body = await self._request(
            "POST",
            f"/conversations/{conversation_id}/messages",
            error_message="Failed to create message",
            json=envelope.to_api(),
        )
        if response.status_code != 201:
            raise RemoteApiError("Couldn't create message", status_code=response.status_code)
        return body

    async def post_activity(
        self,
        conversation_id: str,
        author: Author,
        activity_type: str,
    ) -> bool:
        """
        액티비티 전송

        Args:
            activity_type: 'conversation:read' | 'typing:start' | 'typing:stop'
        """
        response, _ = await self._request(
            "POST",
            f"/conversations/{conversation_id}/activity",
            error_message="Failed to post activity",
            json={"author": author.to_api(), "type": activity_type},
        )
        return response.status_code == 200

    # ===== 첨부파일 =====

    async def upload_attachment(
        self,
        conversation_id: str,
        filename: str,
        file_buffer: Union[bytes, bytearray],
        content_type: Optional[str] = None,
    ) -> UploadedAttachment:
        """
        첨부파일 업로드 (공개 URL)

        Returns:
            mediaUrl, mediaType
        """
        _, body = await self._request(
            "POST",
            "/attachments",
            error_message="Couldn't upload attachment to Sunshine",
            params={
                "access": "public",
                "for": "message",
                "conversationId": conversation_id,
            },
            files={
                "source": (filename, bytes(file_buffer), content_type or "application/octet-stream"),
            },
            timeout=UPLOAD_TIMEOUT,
        )
        attachment = UploadedAttachment.model_validate(body["attachment"])
        logger.debug(
            "Uploaded attachment to Sunshine",
            filename=filename,
            media_type=attachment.media_type,
        )
        return attachment
