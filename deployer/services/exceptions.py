# deployer/services/exceptions.py
from typing import Any, Dict, Optional

# --- Cloud (CPI) Exceptions ---
VM_NOT_FOUND_TYPE = "Bosh::Clouds::VMNotFound"
DISK_NOT_FOUND_TYPE = "Bosh::Clouds::DiskNotFound"


class CloudError(Exception):
    """CPI 호출이 실패했을 때의 기본 예외.

    CPI 응답의 `{type, message}` 쌍을 그대로 보존합니다. 타입 태그에 따라
    VmNotFoundError, DiskNotFoundError, UnknownCloudError 중 하나로 만들어지며,
    호출하는 쪽은 문자열 비교 대신 예외 클래스로 분기합니다.
    """
    error_type = "Unknown"

    def __init__(self, method: str, message: str, error_type: Optional[str] = None, ok_to_retry: bool = False):
        super().__init__(f"CPI '{method}' method responded with error: {message}")
        self.method = method
        self.message = message
        if error_type is not None:
            self.error_type = error_type
        self.ok_to_retry = ok_to_retry

    @classmethod
    def from_response(cls, method: str, error: Dict[str, Any]) -> "CloudError":
        """CPI 응답의 error 객체를 알맞은 예외 클래스로 변환합니다."""
        error_type = error.get("type") or "Unknown"
        error_class = _CLOUD_ERROR_TYPES.get(error_type, UnknownCloudError)
        return error_class(
            method,
            error.get("message", ""),
            error_type=error_type,
            ok_to_retry=bool(error.get("ok_to_retry", False)),
        )


class VmNotFoundError(CloudError):
    """클라우드에서 VM을 찾을 수 없을 때"""
    error_type = VM_NOT_FOUND_TYPE


class DiskNotFoundError(CloudError):
    """클라우드에서 디스크를 찾을 수 없을 때"""
    error_type = DISK_NOT_FOUND_TYPE


class UnknownCloudError(CloudError):
    """그 밖의 모든 CPI 실패"""
    pass


_CLOUD_ERROR_TYPES = {
    VM_NOT_FOUND_TYPE: VmNotFoundError,
    DISK_NOT_FOUND_TYPE: DiskNotFoundError,
}

# --- Agent Exceptions ---
class AgentError(Exception):
    """에이전트 호출이 실패했을 때의 기본 예외"""
    def __init__(self, method: str, message: str):
        super().__init__(f"Agent '{method}' failed: {message}")
        self.method = method
        self.message = message


class AgentConnectionError(AgentError):
    """에이전트와 통신할 수 없을 때 (연결 실패, HTTP 오류 등)"""
    pass


class AgentTimeoutError(AgentConnectionError):
    """에이전트 요청이 제한 시간 안에 끝나지 않았을 때"""
    pass


class AgentResponseError(AgentError):
    """에이전트가 명시적으로 실패를 응답했을 때"""
    pass

# --- Polling Exceptions ---
class PollExhaustedError(Exception):
    """최대 시도 횟수 안에 원하는 결과를 얻지 못했을 때"""
    def __init__(self, attempts: int, last_result: Any, message: Optional[str] = None):
        super().__init__(message or f"Condition not met after {attempts} attempts, last result: {last_result!r}")
        self.attempts = attempts
        self.last_result = last_result


class AgentNotRunningError(PollExhaustedError):
    """에이전트가 'running' 상태에 도달하지 못했을 때"""
    def __init__(self, attempts: int, last_state: Optional[str]):
        super().__init__(
            attempts,
            last_state,
            f"Timed out waiting for agent to be running after {attempts} attempts, last state: '{last_state}'",
        )
        self.last_state = last_state


class AgentNotReadyError(PollExhaustedError):
    """에이전트가 ping에 응답하지 않을 때"""
    pass

# --- VM Exceptions ---
class VmApplyError(Exception):
    """Apply 과정의 한 단계가 실패했을 때"""
    def __init__(self, step: str, cause: Exception):
        super().__init__(f"{step}: {cause}")
        self.step = step
        self.cause = cause
