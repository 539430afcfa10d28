# deployer/services/stage.py
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Callable

logger = logging.getLogger(__name__)


class IStage(ABC):
    @abstractmethod
    def perform(self, name: str, func: Callable[[], Any]) -> Any:
        """이름이 붙은 단계 하나를 실행하고 진행 상황을 보고합니다."""
        pass


class LoggingStage(IStage):
    """각 단계의 시작, 완료(소요 시간), 실패를 로그로 남기는 진행 상황 보고기."""

    def __init__(self, name: str):
        self.name = name

    def perform(self, name, func):
        logger.info("%s > %s...", self.name, name)
        started = time.monotonic()
        try:
            result = func()
        except Exception as e:
            logger.error("%s > %s... Failed (%.2fs): %s", self.name, name, time.monotonic() - started, e)
            raise
        logger.info("%s > %s... Finished (%.2fs)", self.name, name, time.monotonic() - started)
        return result
