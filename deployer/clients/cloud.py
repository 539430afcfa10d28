# deployer/clients/cloud.py
import json
import logging
import subprocess
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from deployer.services.exceptions import CloudError, UnknownCloudError

logger = logging.getLogger(__name__)


class ICloud(ABC):
    @abstractmethod
    def has_vm(self, vm_cid: str) -> bool:
        """VM CID가 클라우드에 아직 존재하는지 확인합니다."""
        pass

    @abstractmethod
    def create_vm(
        self,
        agent_id: str,
        stemcell_cid: str,
        cloud_properties: Dict[str, Any],
        networks: Dict[str, Any],
        env: Dict[str, Any],
    ) -> str:
        """스템셀로부터 새 VM을 만들고 VM CID를 반환합니다."""
        pass

    @abstractmethod
    def delete_vm(self, vm_cid: str):
        """VM을 클라우드에서 삭제합니다."""
        pass

    @abstractmethod
    def attach_disk(self, vm_cid: str, disk_cid: str):
        """영구 디스크를 VM에 연결합니다."""
        pass

    @abstractmethod
    def detach_disk(self, vm_cid: str, disk_cid: str):
        """영구 디스크를 VM에서 분리합니다."""
        pass

    @abstractmethod
    def create_disk(self, size: int, cloud_properties: Dict[str, Any], vm_cid: str) -> str:
        """새 영구 디스크를 만들고 디스크 CID를 반환합니다."""
        pass

    @abstractmethod
    def delete_disk(self, disk_cid: str):
        """영구 디스크를 클라우드에서 삭제합니다."""
        pass


class ExternalCpiCloud(ICloud):
    """
    외부 CPI 실행 파일을 호출하는 클라우드 클라이언트.

    호출마다 CPI 프로세스를 하나 띄우고, stdin으로 JSON 요청을 보내
    stdout의 JSON 응답을 읽습니다. 응답의 error 객체는 CloudError 계열의
    예외로 변환됩니다.
    """

    def __init__(self, cpi_path: str, context: Optional[Dict[str, Any]] = None, timeout: Optional[float] = None):
        self.cpi_path = cpi_path
        self.context = context or {}
        self.timeout = timeout

    def has_vm(self, vm_cid):
        return bool(self._call("has_vm", [vm_cid]))

    def create_vm(self, agent_id, stemcell_cid, cloud_properties, networks, env):
        return self._call("create_vm", [agent_id, stemcell_cid, cloud_properties, networks, [], env])

    def delete_vm(self, vm_cid):
        self._call("delete_vm", [vm_cid])

    def attach_disk(self, vm_cid, disk_cid):
        self._call("attach_disk", [vm_cid, disk_cid])

    def detach_disk(self, vm_cid, disk_cid):
        self._call("detach_disk", [vm_cid, disk_cid])

    def create_disk(self, size, cloud_properties, vm_cid):
        return self._call("create_disk", [size, cloud_properties, vm_cid])

    def delete_disk(self, disk_cid):
        self._call("delete_disk", [disk_cid])

    def _call(self, method: str, arguments: List[Any]) -> Any:
        request = json.dumps({"method": method, "arguments": arguments, "context": self.context})
        logger.debug("Calling CPI method '%s' with arguments %s", method, arguments)

        try:
            completed = subprocess.run(
                [self.cpi_path],
                input=request,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise UnknownCloudError(method, f"CPI timed out after {self.timeout}s") from e
        except OSError as e:
            raise UnknownCloudError(method, f"Failed to run CPI '{self.cpi_path}': {e}") from e

        if completed.returncode != 0:
            raise UnknownCloudError(
                method, f"CPI exited with status {completed.returncode}: {completed.stderr.strip()}"
            )

        try:
            response = json.loads(completed.stdout)
        except json.JSONDecodeError as e:
            raise UnknownCloudError(method, f"Invalid CPI response: {e}") from e
        if not isinstance(response, dict):
            raise UnknownCloudError(method, f"Invalid CPI response: expected a JSON object, got {response!r}")

        if response.get("log"):
            logger.debug("CPI log for '%s': %s", method, response["log"])

        error = response.get("error")
        if error:
            raise CloudError.from_response(method, error)
        return response.get("result")
