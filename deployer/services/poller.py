# deployer/services/poller.py
import logging
import time
from typing import Any, Callable, TypeVar

from tenacity import Retrying, before_sleep_log, retry_if_result, stop_after_attempt, wait_fixed

from deployer.services.exceptions import PollExhaustedError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def poll_until(
    query: Callable[[], T],
    predicate: Callable[[T], bool],
    max_attempts: int,
    delay: float,
    sleep: Callable[[float], Any] = time.sleep,
) -> T:
    """
    조건을 만족하는 결과가 나올 때까지 query를 반복 호출합니다.

    매 시도마다 query를 한 번 호출하고, predicate를 만족하면 즉시 그 결과를
    반환합니다. 만족하지 않으면 delay만큼 기다린 뒤 다시 시도합니다.
    query가 던진 예외는 재시도하지 않고 그대로 전파됩니다.

    Args:
        query: 한 번의 시도에서 호출할 함수.
        predicate: query 결과가 성공인지 판단하는 함수.
        max_attempts: 최대 시도 횟수 (1 이상).
        delay: 실패한 시도 사이의 대기 시간 (초).
        sleep: 대기에 사용할 함수. 테스트에서는 가짜 함수를 주입합니다.

    Returns:
        predicate를 만족한 query 결과.

    Raises:
        ValueError: max_attempts가 1보다 작을 때.
        PollExhaustedError: 마지막 시도까지 predicate를 만족하지 못했을 때.
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")

    def _raise_exhausted(retry_state):
        raise PollExhaustedError(retry_state.attempt_number, retry_state.outcome.result())

    retrying = Retrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait_fixed(delay),
        retry=retry_if_result(lambda result: not predicate(result)),
        sleep=sleep,
        before_sleep=before_sleep_log(logger, logging.DEBUG),
        retry_error_callback=_raise_exhausted,
    )
    return retrying(query)
