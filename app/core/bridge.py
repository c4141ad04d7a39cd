"""브릿지 구성

설정으로부터 클라이언트/매니저/레지스트리를 한 번 조립한다.
"""
from typing import Optional

from app.adapters.sunshine.client import SunshineClient
from app.adapters.sunshine.webhook import SunshineWebhookHandler
from app.adapters.zendesk.webhook import ZendeskWebhookHandler
from app.config import Settings, get_settings
from app.core.deletion import PendingDeletionRegistry
from app.core.ingress import WebhookIngress
from app.core.lifecycle import ConversationLifecycleManager
from app.core.registry import build_registry
from app.core.relay import MessageRelay
from app.discord_bot.bot import DiscordBot, DiscordChatPlatform
from app.utils.logger import get_logger

logger = get_logger(__name__)


class Bridge:
    """Discord ↔ Zendesk 브릿지 컴포넌트 묶음"""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        settings = self.settings

        self.sunshine = SunshineClient(
            endpoint=settings.zd_conversations_endpoint,
            app_id=settings.zd_conversations_app_id,
            key_id=settings.zd_conversations_key_id,
            key_secret=settings.zd_conversations_key_secret,
        )

        self.bot = DiscordBot(settings)
        self.chat = DiscordChatPlatform(self.bot, settings)

        self.deletions = PendingDeletionRegistry()
        self.lifecycle = ConversationLifecycleManager(self.sunshine, self.chat, self.deletions)
        self.relay = MessageRelay(self.sunshine, self.chat)
        self.registry = build_registry(self.lifecycle, self.chat)

        self.ingress = WebhookIngress(
            sunshine=self.sunshine,
            chat=self.chat,
            lifecycle=self.lifecycle,
            relay=self.relay,
            zendesk_webhook=ZendeskWebhookHandler(settings.zd_webhook_secret),
            sunshine_webhook=SunshineWebhookHandler(settings.zd_conversations_webhook_secret),
        )

        self.bot.set_handlers(
            message_handler=self.relay.handle_chat_message,
            typing_handler=self.relay.handle_chat_typing,
            registry=self.registry,
        )
        self._started = False

    async def start(self) -> None:
        if not self.settings.discord_bot_token:
            logger.warning("DISCORD_BOT_TOKEN is not set, Discord gateway disabled")
            return
        await self.bot.start_gateway()
        self._started = True

    async def stop(self) -> None:
        await self.deletions.shutdown()
        if self._started:
            await self.bot.stop_gateway()
            self._started = False


# 싱글톤 인스턴스
_bridge: Optional[Bridge] = None


def get_bridge() -> Bridge:
    """Bridge 싱글톤 인스턴스 반환"""
    global _bridge
    if _bridge is None:
        _bridge = Bridge()
    return _bridge


def get_webhook_ingress() -> WebhookIngress:
    return get_bridge().ingress
