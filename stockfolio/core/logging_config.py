import logging

from stockfolio.core.config import settings

# 업스트림 클라이언트의 요청 단위 로그는 너무 많음
_NOISY_LOGGERS = ("httpx", "httpcore")


def setup_logging(level_name: str | None = None) -> None:
    log_level_name = str(level_name or settings.LOG_LEVEL or "INFO").upper()
    log_level = getattr(logging, log_level_name, logging.INFO)
    if not isinstance(log_level, int):
        log_level = logging.INFO

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))
