# deployer/services/disk.py
import json
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from deployer.clients.cloud import ICloud
from deployer.database import models
from deployer.repositories.interfaces import IDiskRepository
from deployer.services.specs import DiskPool
from deployer.services.stage import IStage

if TYPE_CHECKING:
    from deployer.services.vm import VM

logger = logging.getLogger(__name__)


def normalize_cloud_properties(cloud_properties: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """JSON 컬럼에 저장된 뒤와 같은 형태로 바꿉니다. 문자열이 아닌 키는 문자열이 됩니다."""
    return json.loads(json.dumps(cloud_properties or {}))


@dataclass
class Disk:
    """영구 디스크 하나. 에이전트에서 얻은 디스크는 크기와 속성을 알 수 없어 0과 {}를 가집니다."""
    cid: str
    size: int = 0
    cloud_properties: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_record(cls, record: models.Disk) -> "Disk":
        return cls(cid=record.cid, size=record.size, cloud_properties=dict(record.cloud_properties or {}))

    def needs_migration(self, size: int, cloud_properties: Dict[str, Any]) -> bool:
        return self.size != size or self.cloud_properties != normalize_cloud_properties(cloud_properties)


class DiskManager:
    def __init__(self, cloud: ICloud, disk_repo: IDiskRepository):
        self.cloud = cloud
        self.disk_repo = disk_repo

    def create(self, disk_pool: DiskPool, vm_cid: str) -> Disk:
        """
        클라우드에 디스크를 만들고 기록을 저장합니다.

        저장된 기록은 현재 디스크로 표시되지 않습니다. 현재 표시는 연결과 이전이
        모두 끝난 뒤 update_current로 옮깁니다.
        """
        cloud_properties = normalize_cloud_properties(disk_pool.cloud_properties)
        disk_cid = self.cloud.create_disk(disk_pool.disk_size, cloud_properties, vm_cid)
        record = self.disk_repo.save(disk_cid, disk_pool.disk_size, cloud_properties)
        logger.info("Created disk '%s' for VM '%s'", disk_cid, vm_cid)
        return Disk.from_record(record)

    def find_current(self) -> Optional[Disk]:
        record = self.disk_repo.find_current()
        return Disk.from_record(record) if record else None

    def update_current(self, disk: Disk):
        record = self.disk_repo.find(disk.cid)
        if record is None:
            raise ValueError(f"No record found for disk '{disk.cid}'")
        self.disk_repo.update_current(record.id)

    def find_unused(self) -> List[Disk]:
        """현재 디스크가 아닌 모든 디스크. 이전 실패로 남은 고아 디스크가 여기에 포함됩니다."""
        return [Disk.from_record(record) for record in self.disk_repo.list_all() if not record.is_current]

    def delete(self, disk: Disk):
        """클라우드에서 디스크를 삭제하고, 성공한 경우에만 기록을 지웁니다."""
        self.cloud.delete_disk(disk.cid)
        record = self.disk_repo.find(disk.cid)
        if record:
            self.disk_repo.delete(record)
        logger.info("Deleted disk '%s'", disk.cid)

    def delete_unused(self, stage: IStage):
        for disk in self.find_unused():
            stage.perform(f"Deleting unused disk '{disk.cid}'", lambda disk=disk: self.delete(disk))


class DiskDeployer:
    """
    VM에 연결된 영구 디스크를 디스크 풀 스펙에 맞춥니다.

    한 번의 호출에서 no-op, 생성, 이전(migrate), 제거 중 하나만 수행합니다.
    중간 단계가 실패하면 그대로 중단하며 롤백하지 않습니다. 현재 디스크 표시는
    전체 순서가 성공한 뒤에만 바뀌므로, 재시도는 이전 상태를 기준으로 다시 비교합니다.
    """

    def __init__(self, disk_repo: IDiskRepository):
        self.disk_repo = disk_repo

    def deploy(self, disk_pool: DiskPool, cloud: ICloud, vm: "VM", stage: IStage):
        manager = DiskManager(cloud, self.disk_repo)
        current_disk = manager.find_current()
        desired_size = disk_pool.disk_size

        if current_disk is None:
            if desired_size == 0:
                logger.debug("No persistent disk requested for VM '%s'", vm.cid)
                return
            self._create_and_attach(manager, disk_pool, vm, stage)
            return

        if desired_size == 0:
            self._remove(manager, current_disk, vm, stage)
            return

        if not current_disk.needs_migration(desired_size, disk_pool.cloud_properties):
            logger.debug("Disk '%s' already matches disk pool '%s'", current_disk.cid, disk_pool.name)
            return

        self._migrate(manager, current_disk, disk_pool, vm, stage)

    def _create_and_attach(self, manager, disk_pool, vm, stage):
        disk = stage.perform("Creating disk", lambda: manager.create(disk_pool, vm.cid))
        stage.perform(f"Attaching disk '{disk.cid}' to VM '{vm.cid}'", lambda: vm.attach_disk(disk))
        manager.update_current(disk)
        return disk

    def _migrate(self, manager, old_disk, disk_pool, vm, stage):
        new_disk = stage.perform("Creating disk", lambda: manager.create(disk_pool, vm.cid))
        stage.perform(f"Attaching disk '{new_disk.cid}' to VM '{vm.cid}'", lambda: vm.attach_disk(new_disk))
        stage.perform(
            f"Migrating disk content from '{old_disk.cid}' to '{new_disk.cid}'",
            vm.migrate_disk,
        )
        stage.perform(f"Detaching disk '{old_disk.cid}'", lambda: vm.detach_disk(old_disk))
        stage.perform(f"Deleting disk '{old_disk.cid}'", lambda: manager.delete(old_disk))
        manager.update_current(new_disk)

    def _remove(self, manager, disk, vm, stage):
        stage.perform(f"Detaching disk '{disk.cid}'", lambda: vm.detach_disk(disk))
        stage.perform(f"Deleting disk '{disk.cid}'", lambda: manager.delete(disk))
        self.disk_repo.clear_current()
