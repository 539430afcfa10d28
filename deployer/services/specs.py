# deployer/services/specs.py
"""배포 매니페스트와 스템셀에서 읽어 온 값 객체들. 파싱은 이 패키지의 범위 밖입니다."""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class DiskPool:
    name: str
    disk_size: int = 0
    cloud_properties: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Network:
    name: str
    type: str
    cloud_properties: Optional[Dict[str, Any]] = None


@dataclass
class JobNetwork:
    name: str
    static_ips: List[str] = field(default_factory=list)


@dataclass
class Job:
    name: str
    templates: List[str] = field(default_factory=list)
    networks: List[JobNetwork] = field(default_factory=list)
    persistent_disk_pool: Optional[str] = None
    properties: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ResourcePool:
    name: str
    cloud_properties: Dict[str, Any] = field(default_factory=dict)
    env: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Manifest:
    name: str
    jobs: List[Job] = field(default_factory=list)
    networks: List[Network] = field(default_factory=list)
    disk_pools: List[DiskPool] = field(default_factory=list)
    resource_pool: Optional[ResourcePool] = None

    def disk_pool(self, job_name: str) -> DiskPool:
        """잡이 참조하는 디스크 풀을 반환합니다. 참조가 없으면 크기 0의 풀을 돌려줍니다."""
        job = next((j for j in self.jobs if j.name == job_name), None)
        if job is None or not job.persistent_disk_pool:
            return DiskPool(name="")
        for pool in self.disk_pools:
            if pool.name == job.persistent_disk_pool:
                return pool
        raise ValueError(f"Disk pool '{job.persistent_disk_pool}' not found for job '{job_name}'")


@dataclass
class Blob:
    name: str
    version: str
    sha1: str
    blobstore_id: str


@dataclass
class StemcellJob:
    name: str
    templates: List[Blob] = field(default_factory=list)


@dataclass
class StemcellApplySpec:
    packages: Dict[str, Blob] = field(default_factory=dict)
    job: Optional[StemcellJob] = None


@dataclass
class TemplatesSpec:
    blob_id: str
    archive_sha1: str
    configuration_hash: str
