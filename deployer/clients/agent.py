# deployer/clients/agent.py
import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import requests
from requests.exceptions import ConnectionError as RequestsConnectionError
from requests.exceptions import RequestException, Timeout

from deployer.services.exceptions import (
    AgentConnectionError,
    AgentResponseError,
    AgentTimeoutError,
    PollExhaustedError,
)
from deployer.services.poller import poll_until

logger = logging.getLogger(__name__)


@dataclass
class AgentState:
    """에이전트가 보고한 실행 상태."""
    job_state: str


class IAgentClient(ABC):
    @abstractmethod
    def ping(self) -> str:
        """에이전트가 응답하는지 확인합니다."""
        pass

    @abstractmethod
    def stop(self):
        """에이전트가 관리하는 서비스를 중지합니다."""
        pass

    @abstractmethod
    def start(self):
        """에이전트가 관리하는 서비스를 시작합니다."""
        pass

    @abstractmethod
    def apply(self, spec: Dict[str, Any]):
        """apply spec을 에이전트에 전달합니다."""
        pass

    @abstractmethod
    def get_state(self) -> AgentState:
        """에이전트의 현재 상태를 조회합니다."""
        pass

    @abstractmethod
    def mount_disk(self, disk_cid: str):
        """연결된 디스크를 VM 내부에 마운트합니다."""
        pass

    @abstractmethod
    def unmount_disk(self, disk_cid: str):
        """마운트된 디스크를 해제합니다."""
        pass

    @abstractmethod
    def list_disk(self) -> List[str]:
        """에이전트가 알고 있는 디스크 CID 목록을 조회합니다."""
        pass

    @abstractmethod
    def migrate_disk(self):
        """기존 영구 디스크의 내용을 새 디스크로 옮깁니다."""
        pass


class HttpAgentClient(IAgentClient):
    """
    mbus URL의 `/agent` 엔드포인트에 JSON 메시지를 보내는 에이전트 클라이언트.

    오래 걸리는 작업(stop, apply, 디스크 관련)은 에이전트가 task 핸들을 돌려주며,
    `get_task`로 상태가 'running'이 아닐 때까지 폴링합니다. 인증 정보는 mbus URL에
    포함되어 있으므로 requests가 그대로 Basic 인증에 사용합니다.
    """

    def __init__(
        self,
        mbus_url: str,
        timeout: float = 30.0,
        task_poll_delay: float = 1.0,
        task_max_attempts: int = 600,
        verify: bool = False,
        sleep: Optional[Callable[[float], Any]] = None,
    ):
        self.endpoint = f"{mbus_url.rstrip('/')}/agent"
        self.timeout = timeout
        self.task_poll_delay = task_poll_delay
        self.task_max_attempts = task_max_attempts
        self.verify = verify
        self.reply_to = str(uuid.uuid4())
        self._sleep = sleep
        self._session = requests.Session()

    def ping(self) -> str:
        return self._send("ping")

    def stop(self):
        self._send_async("stop")

    def start(self):
        self._send("start")

    def apply(self, spec):
        self._send_async("apply", [spec])

    def get_state(self) -> AgentState:
        value = self._send("get_state")
        if not isinstance(value, dict):
            raise AgentResponseError("get_state", f"Expected a state object, got {value!r}")
        return AgentState(job_state=value.get("job_state", ""))

    def mount_disk(self, disk_cid):
        self._send_async("mount_disk", [disk_cid])

    def unmount_disk(self, disk_cid):
        self._send_async("unmount_disk", [disk_cid])

    def list_disk(self) -> List[str]:
        return list(self._send("list_disk") or [])

    def migrate_disk(self):
        self._send_async("migrate_disk")

    def _send_async(self, method: str, arguments: Optional[list] = None):
        value = self._send(method, arguments)
        task_id = value.get("agent_task_id") if isinstance(value, dict) else None
        if not task_id:
            raise AgentResponseError(method, f"Expected a task handle, got {value!r}")

        logger.debug("Waiting for agent task '%s' (%s)", task_id, method)
        poll_kwargs = {"sleep": self._sleep} if self._sleep else {}
        try:
            return poll_until(
                lambda: self._send("get_task", [task_id]),
                lambda result: not (isinstance(result, dict) and result.get("state") == "running"),
                self.task_max_attempts,
                self.task_poll_delay,
                **poll_kwargs,
            )
        except PollExhaustedError as e:
            raise AgentTimeoutError(method, f"Task '{task_id}' still running after {e.attempts} checks") from e

    def _send(self, method: str, arguments: Optional[list] = None) -> Any:
        """
        에이전트에 요청 하나를 보내고 응답의 value를 반환합니다.

        Raises:
            AgentTimeoutError: 요청이 제한 시간을 넘겼을 때.
            AgentConnectionError: 연결 실패 또는 2xx가 아닌 응답.
            AgentResponseError: 에이전트가 exception을 응답했을 때.
        """
        payload = {"method": method, "arguments": arguments or [], "reply_to": self.reply_to}
        logger.debug("Sending agent request '%s'", method)
        try:
            response = self._session.post(self.endpoint, json=payload, timeout=self.timeout, verify=self.verify)
        except Timeout as e:
            raise AgentTimeoutError(method, f"Request timed out after {self.timeout}s") from e
        except RequestsConnectionError as e:
            raise AgentConnectionError(method, f"Connection failed: {e}") from e
        except RequestException as e:
            raise AgentConnectionError(method, str(e)) from e

        if not response.ok:
            raise AgentConnectionError(method, f"Agent responded with status {response.status_code}")

        try:
            body = response.json()
        except ValueError as e:
            raise AgentResponseError(method, f"Invalid JSON response: {e}") from e
        if not isinstance(body, dict):
            raise AgentResponseError(method, f"Expected a JSON object, got {body!r}")

        exception = body.get("exception")
        if exception:
            message = exception.get("message") if isinstance(exception, dict) else str(exception)
            raise AgentResponseError(method, message)
        return body.get("value")
