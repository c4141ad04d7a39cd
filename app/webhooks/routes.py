"""웹훅 라우트

단일 POST 엔드포인트. 경로 끝이 /zd 이면 Zendesk Support, 그 외는
Sunshine Conversations 웹훅으로 처리한다.

응답 코드:
- 200: 처리 완료
- 400: 필수 헤더/본문 누락
- 401: 인증 실패
- 406: 브릿지가 처리하지 않는 이벤트 (재시도 불필요)
- 500: 그 외 오류 (재시도 가능)
"""
from fastapi import APIRouter, Depends, Request, Response

from app.core.bridge import get_webhook_ingress
from app.core.errors import BridgeError, WebhookStatus
from app.core.ingress import WebhookIngress
from app.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)


async def _dispatch(request: Request, ingress: WebhookIngress) -> Response:
    raw_body = await request.body()

    try:
        status = await ingress.handle(request.url.path, request.headers, raw_body)
    except BridgeError as e:
        log = logger.warning if e.status == WebhookStatus.RETRY else logger.info
        log(
            "Webhook rejected",
            path=request.url.path,
            status=int(e.status),
            error=str(e),
        )
        return Response(status_code=int(e.status))
    except Exception as e:
        logger.error("Webhook processing error", path=request.url.path, error=str(e))
        return Response(status_code=int(WebhookStatus.RETRY))

    return Response(status_code=int(status))


@router.post("")
async def webhook_root(
    request: Request,
    ingress: WebhookIngress = Depends(get_webhook_ingress),
) -> Response:
    return await _dispatch(request, ingress)


@router.post("/{webhook_path:path}")
async def webhook(
    request: Request,
    webhook_path: str,
    ingress: WebhookIngress = Depends(get_webhook_ingress),
) -> Response:
    """
    웹훅 엔드포인트

    URL 형식: /api/webhook/zd (Zendesk Support), /api/webhook/... (Sunshine)
    """
    return await _dispatch(request, ingress)
