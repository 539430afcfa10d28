# deployer/services/vm.py
import logging
import math
import time
import uuid
from typing import Any, Callable, Dict, List, Optional

from deployer.clients.agent import IAgentClient
from deployer.clients.cloud import ICloud
from deployer.config import Settings, get_settings
from deployer.database import models
from deployer.repositories.interfaces import IStemcellRepository, IVMRepository
from deployer.services.apply_spec import ApplySpecFactory, ITemplatesSpecGenerator
from deployer.services.disk import Disk, DiskDeployer
from deployer.services.exceptions import (
    AgentError,
    AgentNotReadyError,
    AgentNotRunningError,
    PollExhaustedError,
    VmApplyError,
)
from deployer.services.poller import poll_until
from deployer.services.specs import DiskPool, Manifest, StemcellApplySpec
from deployer.services.stage import IStage

logger = logging.getLogger(__name__)

RUNNING_STATE = "running"


def build_networks_spec(manifest: Manifest, job_name: str) -> Dict[str, Any]:
    """
    잡이 선언한 네트워크마다 type, 고정 IP, cloud_properties를 담은 스펙을 만듭니다.
    cloud_properties가 없으면 빈 딕셔너리를 사용합니다.
    """
    job = next((j for j in manifest.jobs if j.name == job_name), None)
    if job is None:
        raise ValueError(f"Job '{job_name}' not found in deployment '{manifest.name}'")

    networks_by_name = {network.name: network for network in manifest.networks}
    networks_spec = {}
    for job_network in job.networks:
        network = networks_by_name.get(job_network.name)
        if network is None:
            raise ValueError(f"Network '{job_network.name}' not found in deployment '{manifest.name}'")
        entry = {
            "type": network.type,
            "cloud_properties": dict(network.cloud_properties or {}),
        }
        if job_network.static_ips:
            entry["ip"] = job_network.static_ips[0]
        networks_spec[network.name] = entry
    return networks_spec


class VM:
    """
    클라우드 VM 하나의 수명 주기 작업을 담당합니다.

    모든 작업은 동기적으로 실행되며 호출자가 독립적으로 재시도할 수 있습니다.
    CPI와 에이전트 클라이언트, 로컬 상태 저장소는 생성 시 주입됩니다.
    """

    def __init__(
        self,
        cid: str,
        vm_repo: IVMRepository,
        stemcell_repo: IStemcellRepository,
        disk_deployer: DiskDeployer,
        agent_client: IAgentClient,
        cloud: ICloud,
        templates_spec_generator: ITemplatesSpecGenerator,
        apply_spec_factory: ApplySpecFactory,
        mbus_url: str,
        sleep: Callable[[float], Any] = time.sleep,
        settings: Optional[Settings] = None,
    ):
        self._cid = cid
        self.vm_repo = vm_repo
        self.stemcell_repo = stemcell_repo
        self.disk_deployer = disk_deployer
        self.agent_client = agent_client
        self.cloud = cloud
        self.templates_spec_generator = templates_spec_generator
        self.apply_spec_factory = apply_spec_factory
        self.mbus_url = mbus_url
        self._sleep = sleep
        self.settings = settings or get_settings()

    @property
    def cid(self) -> str:
        return self._cid

    def exists(self) -> bool:
        """CPI에 VM이 아직 존재하는지 묻습니다. CPI 오류는 그대로 전파됩니다."""
        return self.cloud.has_vm(self._cid)

    def update_disks(self, disk_pool: DiskPool, stage: IStage):
        return self.disk_deployer.deploy(disk_pool, self.cloud, self, stage)

    def apply(self, apply_spec: StemcellApplySpec, manifest: Manifest):
        """
        VM에 새 설정을 적용합니다.

        에이전트의 서비스를 먼저 중지한 뒤, 템플릿 스펙을 만들고, 에이전트용
        apply spec을 조립해 전달합니다. 한 단계가 실패하면 이후 단계는 실행되지 않습니다.

        Args:
            apply_spec: 스템셀에서 읽은 apply spec (패키지, 잡 템플릿).
            manifest: 배포 매니페스트. 첫 번째 잡을 이 VM의 잡으로 사용합니다.

        Raises:
            VmApplyError: 어느 단계든 실패했을 때. 원래 예외는 __cause__에 연결됩니다.
        """
        try:
            self.agent_client.stop()
        except AgentError as e:
            raise VmApplyError("Stopping agent", e) from e

        deployment_job = manifest.jobs[0]
        try:
            templates_spec = self.templates_spec_generator.create(
                deployment_job,
                apply_spec.job,
                manifest.name,
                deployment_job.properties,
                self.mbus_url,
            )
        except Exception as e:
            raise VmApplyError("Generating templates spec", e) from e

        try:
            agent_apply_spec = self.apply_spec_factory.create(
                apply_spec,
                manifest.name,
                deployment_job.name,
                build_networks_spec(manifest, deployment_job.name),
                templates_spec.blob_id,
                templates_spec.archive_sha1,
                templates_spec.configuration_hash,
            )
        except Exception as e:
            raise VmApplyError("Creating apply spec", e) from e

        try:
            self.agent_client.apply(agent_apply_spec)
        except AgentError as e:
            raise VmApplyError("Sending apply message to the agent", e) from e
        logger.info("Applied spec for job '%s' to VM '%s'", deployment_job.name, self._cid)

    def start(self):
        try:
            self.agent_client.start()
        except AgentError:
            logger.error("Starting agent services on VM '%s' failed", self._cid)
            raise

    def stop(self):
        try:
            self.agent_client.stop()
        except AgentError:
            logger.error("Stopping agent services on VM '%s' failed", self._cid)
            raise

    def wait_until_ready(self, timeout: Optional[float] = None, delay: Optional[float] = None):
        """
        에이전트가 ping에 응답할 때까지 기다립니다.
        대기 중의 에이전트 오류는 '아직 준비되지 않음'으로 취급합니다.
        값을 주지 않으면 설정의 agent_ping_timeout, agent_ping_delay를 사용합니다.
        """
        timeout = self.settings.agent_ping_timeout if timeout is None else timeout
        delay = self.settings.agent_ping_delay if delay is None else delay
        max_attempts = max(1, math.ceil(timeout / delay)) if delay > 0 else 1

        def _ping():
            try:
                self.agent_client.ping()
                return True
            except AgentError as e:
                logger.debug("Agent on VM '%s' not ready yet: %s", self._cid, e)
                return False

        try:
            poll_until(_ping, bool, max_attempts, delay, sleep=self._sleep)
        except PollExhaustedError as e:
            raise AgentNotReadyError(
                e.attempts, None, f"Timed out pinging agent on VM '{self._cid}' after {timeout}s"
            ) from e

    def wait_to_be_running(self, max_attempts: Optional[int] = None, delay: Optional[float] = None):
        """
        에이전트가 'running' 상태를 보고할 때까지 최대 max_attempts번 조회합니다.
        값을 주지 않으면 설정의 running_max_attempts, running_delay를 사용합니다.

        Raises:
            AgentNotRunningError: 마지막 시도까지 'running'을 보지 못했을 때.
            AgentError: 상태 조회 자체가 실패했을 때 (재시도하지 않음).
        """
        max_attempts = self.settings.running_max_attempts if max_attempts is None else max_attempts
        delay = self.settings.running_delay if delay is None else delay
        try:
            poll_until(
                self.agent_client.get_state,
                lambda state: state.job_state == RUNNING_STATE,
                max_attempts,
                delay,
                sleep=self._sleep,
            )
        except PollExhaustedError as e:
            last_state = e.last_result.job_state if e.last_result is not None else None
            raise AgentNotRunningError(e.attempts, last_state) from e
        logger.info("Agent on VM '%s' is running", self._cid)

    def attach_disk(self, disk: Disk):
        self.cloud.attach_disk(self._cid, disk.cid)
        self.agent_client.mount_disk(disk.cid)

    def detach_disk(self, disk: Disk):
        self.cloud.detach_disk(self._cid, disk.cid)

    def unmount_disk(self, disk: Disk):
        self.agent_client.unmount_disk(disk.cid)

    def migrate_disk(self):
        self.agent_client.migrate_disk()

    def disks(self) -> List[Disk]:
        return [Disk(cid=disk_cid) for disk_cid in self.agent_client.list_disk()]

    def delete(self):
        """
        클라우드에서 VM을 삭제하고 현재 VM, 현재 스템셀 기록을 지웁니다.

        기록 정리는 CPI 호출의 성공 여부와 관계없이 항상 수행됩니다. CPI 호출이
        실패했다면(VM을 찾을 수 없는 경우 포함) 정리 후 같은 예외를 다시 던집니다.
        """
        try:
            self.cloud.delete_vm(self._cid)
        finally:
            self.vm_repo.clear_current()
            self.stemcell_repo.clear_current()
            logger.info("Cleared current VM and stemcell records for VM '%s'", self._cid)


class VMManager:
    """CPI로 VM을 만들고, 현재 VM 기록을 VM 핸들로 돌려줍니다."""

    def __init__(
        self,
        vm_repo: IVMRepository,
        stemcell_repo: IStemcellRepository,
        disk_deployer: DiskDeployer,
        cloud: ICloud,
        agent_client_factory: Callable[[str], IAgentClient],
        templates_spec_generator: ITemplatesSpecGenerator,
        apply_spec_factory: ApplySpecFactory,
        mbus_url: str,
        settings: Optional[Settings] = None,
    ):
        self.vm_repo = vm_repo
        self.stemcell_repo = stemcell_repo
        self.disk_deployer = disk_deployer
        self.cloud = cloud
        self.agent_client_factory = agent_client_factory
        self.templates_spec_generator = templates_spec_generator
        self.apply_spec_factory = apply_spec_factory
        self.mbus_url = mbus_url
        self.settings = settings or get_settings()

    def find_current(self) -> Optional[VM]:
        record = self.vm_repo.find_current()
        if record is None:
            return None
        return self._new_vm(record.cid)

    def create(self, stemcell: models.Stemcell, manifest: Manifest) -> VM:
        """
        스템셀로 새 VM을 만들고 현재 VM, 현재 스템셀로 기록합니다.

        Args:
            stemcell: 저장소에 기록된 스템셀.
            manifest: 배포 매니페스트. 첫 번째 잡의 네트워크와 리소스 풀을 사용합니다.

        Returns:
            새 VM의 핸들.

        Raises:
            CloudError: CPI의 create_vm이 실패했을 때. 이 경우 기록은 바뀌지 않습니다.
        """
        job_name = manifest.jobs[0].name
        resource_pool = manifest.resource_pool
        agent_id = str(uuid.uuid4())

        cid = self.cloud.create_vm(
            agent_id,
            stemcell.cid,
            dict(resource_pool.cloud_properties) if resource_pool else {},
            build_networks_spec(manifest, job_name),
            dict(resource_pool.env) if resource_pool else {},
        )
        self.vm_repo.update_current(cid)
        self.stemcell_repo.update_current(stemcell.id)
        logger.info("Created VM '%s' for job '%s' (agent id %s)", cid, job_name, agent_id)
        return self._new_vm(cid)

    def _new_vm(self, cid: str) -> VM:
        return VM(
            cid,
            self.vm_repo,
            self.stemcell_repo,
            self.disk_deployer,
            self.agent_client_factory(self.mbus_url),
            self.cloud,
            self.templates_spec_generator,
            self.apply_spec_factory,
            self.mbus_url,
            settings=self.settings,
        )
