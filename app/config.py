"""환경변수 설정 - Pydantic Settings"""
from functools import lru_cache
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """애플리케이션 설정"""

    model_config = SettingsConfigDict(
        env_file=(".env.local",),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Server (웹훅 수신 포트)
    port: int = 8000

    # Discord
    # https://discord.com/developers/applications
    discord_app_id: str = ""
    discord_bot_token: str = ""
    # 명령어를 등록할 길드
    discord_guild_id: str = ""
    # 상담 채널이 생성될 카테고리
    discord_category_id: str = ""
    # 설정 시 시작할 때 길드 명령어 등록을 건너뜀
    discord_skip_commands: bool = False

    # Zendesk Sunshine Conversations
    # 'https://<subdomain>.zendesk.com/sc'
    zd_conversations_endpoint: str = ""
    zd_conversations_app_id: str = ""
    zd_conversations_key_id: str = ""
    zd_conversations_key_secret: str = ""
    # Conversations integration 웹훅의 X-Api-Key
    zd_conversations_webhook_secret: str = ""

    # Zendesk Support 웹훅 서명 시크릿
    zd_webhook_secret: str = ""

    # 봇 연결 알림용 Slack 웹훅 (선택)
    slack_webhook: Optional[str] = None

    # Logging
    log_level: str = "info"

    @field_validator("zd_conversations_endpoint")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value[:-1] if value.endswith("/") else value


@lru_cache
def get_settings() -> Settings:
    """캐시된 설정 인스턴스 반환"""
    return Settings()
