# tests/services/test_poller.py
import pytest
from unittest.mock import MagicMock, call

from deployer.services.exceptions import PollExhaustedError
from deployer.services.poller import poll_until


@pytest.fixture
def mock_sleep() -> MagicMock:
    return MagicMock()


class TestPollUntil:
    def test_returns_first_matching_result(self, mock_sleep):
        """조건을 만족하는 첫 결과를 반환하고 그 뒤로는 조회하지 않습니다."""
        # === Arrange ===
        query = MagicMock(side_effect=["pending", "pending", "running", "unused"])

        # === Act ===
        result = poll_until(query, lambda r: r == "running", 5, 0.1, sleep=mock_sleep)

        # === Assert ===
        assert result == "running"
        assert query.call_count == 3
        mock_sleep.assert_has_calls([call(0.1), call(0.1)])
        assert mock_sleep.call_count == 2

    def test_success_on_first_attempt_does_not_sleep(self, mock_sleep):
        query = MagicMock(return_value="running")

        poll_until(query, lambda r: r == "running", 5, 1, sleep=mock_sleep)

        assert query.call_count == 1
        mock_sleep.assert_not_called()

    def test_raises_after_max_attempts(self, mock_sleep):
        query = MagicMock(return_value="pending")

        with pytest.raises(PollExhaustedError) as exc_info:
            poll_until(query, lambda r: r == "running", 3, 0, sleep=mock_sleep)

        assert query.call_count == 3
        assert exc_info.value.attempts == 3
        assert exc_info.value.last_result == "pending"
        # 마지막 시도 뒤에는 기다리지 않음
        assert mock_sleep.call_count == 2

    def test_query_exception_propagates_without_retry(self, mock_sleep):
        error = RuntimeError("fake-query-error")
        query = MagicMock(side_effect=error)

        with pytest.raises(RuntimeError) as exc_info:
            poll_until(query, bool, 5, 0, sleep=mock_sleep)

        assert exc_info.value is error
        assert query.call_count == 1
        mock_sleep.assert_not_called()

    @pytest.mark.parametrize("max_attempts", [0, -1])
    def test_rejects_non_positive_max_attempts(self, max_attempts, mock_sleep):
        query = MagicMock()

        with pytest.raises(ValueError):
            poll_until(query, bool, max_attempts, 0, sleep=mock_sleep)

        query.assert_not_called()
