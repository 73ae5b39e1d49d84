from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

PACKAGE_ROOT = Path(__file__).resolve().parents[1]  # stockfolio/
REFERENCE_DIR = PACKAGE_ROOT / "reference" / "data"


class Settings(BaseSettings):
    # Upstream endpoints
    yahoo_base_url: str = "https://query1.finance.yahoo.com"
    naver_mobile_base_url: str = "https://m.stock.naver.com"
    naver_search_base_url: str = "https://ac.stock.naver.com"
    exchange_rate_base_url: str = "https://open.er-api.com/v6"
    kis_base_url: str = "https://openapivts.koreainvestment.com:29443"

    # HTTP
    http_timeout: float = 5.0  # 업스트림 호출당 제한 시간 (초)

    # 환율
    exchange_rate_ttl: int = 30 * 60  # 30분
    usd_krw_fallback_rate: float = 1300.0  # 캐시도 없을 때 최후의 기본값

    # KIS 토큰
    kis_token_expiry_buffer: int = 60  # 만료 전 버퍼 (초)

    # 로컬 종목 DB
    kr_stocks_path: Path = REFERENCE_DIR / "kr_stocks.json"
    kr_etfs_path: Path = REFERENCE_DIR / "kr_etfs.json"

    # Redis (비워두면 프로세스 메모리 캐시 사용)
    redis_url: str | None = None
    redis_socket_timeout: int = 5
    redis_socket_connect_timeout: int = 5

    # Runtime
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    DOCS_ENABLED: bool = True

    # Sentry
    SENTRY_DSN: str | None = None
    SENTRY_ENVIRONMENT: str | None = None
    SENTRY_RELEASE: str | None = None
    SENTRY_TRACES_SAMPLE_RATE: float = 0.0
    SENTRY_SEND_DEFAULT_PII: bool = False

    @field_validator("redis_url", "SENTRY_DSN", mode="before")
    @classmethod
    def empty_str_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def normalize_log_level(cls, v):
        if isinstance(v, str):
            return v.strip().upper() or "INFO"
        return v

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,  # 대소문자 구분 안 함
        env_parse_none_str="None",
        extra="ignore",  # 추가 필드 무시
    )


settings = Settings()  # import 하면 전역 singleton
