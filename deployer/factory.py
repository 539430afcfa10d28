# deployer/factory.py
import logging
from typing import Optional

from sqlalchemy.orm import Session

from deployer.clients.agent import HttpAgentClient
from deployer.clients.cloud import ExternalCpiCloud, ICloud
from deployer.clients.libvirt_cloud import LibvirtCloud
from deployer.config import Settings, get_settings
from deployer.repositories.sqlalchemy import (
    SqlalchemyDiskRepository,
    SqlalchemyStemcellRepository,
    SqlalchemyVMRepository,
)
from deployer.services.apply_spec import ApplySpecFactory, ITemplatesSpecGenerator
from deployer.services.disk import DiskDeployer, DiskManager
from deployer.services.vm import VMManager

logger = logging.getLogger(__name__)


class DeployerFactory:
    """
    설정과 DB 세션으로 저장소, 클라이언트, 매니저를 조립합니다.

    만들어진 객체는 팩토리마다 한 번만 생성되어 재사용됩니다. 템플릿 렌더링은
    이 패키지 밖의 책임이므로 ITemplatesSpecGenerator 구현을 주입받습니다.
    """

    def __init__(
        self,
        db_session: Session,
        templates_spec_generator: ITemplatesSpecGenerator,
        settings: Optional[Settings] = None,
    ):
        self.db_session = db_session
        self.templates_spec_generator = templates_spec_generator
        self.settings = settings or get_settings()

        # 1. 의존성 생성 (Repositories)
        self.vm_repo = SqlalchemyVMRepository(db_session)
        self.stemcell_repo = SqlalchemyStemcellRepository(db_session)
        self.disk_repo = SqlalchemyDiskRepository(db_session)

        self._cloud = None
        self._disk_deployer = None
        self._disk_manager = None
        self._vm_manager = None

    def cloud(self) -> ICloud:
        if self._cloud is not None:
            return self._cloud

        if self.settings.cpi_path:
            logger.debug("Using external CPI at %s", self.settings.cpi_path)
            self._cloud = ExternalCpiCloud(self.settings.cpi_path, timeout=self.settings.cpi_timeout)
        else:
            logger.debug("Using libvirt cloud at %s", self.settings.libvirt_uri)
            self._cloud = LibvirtCloud(
                uri=self.settings.libvirt_uri,
                image_base_dir=self.settings.image_base_dir,
                disk_dir=self.settings.disk_dir,
            )
        return self._cloud

    def agent_client(self, mbus_url: str) -> HttpAgentClient:
        return HttpAgentClient(
            mbus_url,
            timeout=self.settings.agent_request_timeout,
            task_poll_delay=self.settings.agent_task_poll_delay,
            task_max_attempts=self.settings.agent_task_max_attempts,
            verify=self.settings.agent_verify_tls,
        )

    def disk_deployer(self) -> DiskDeployer:
        if self._disk_deployer is None:
            self._disk_deployer = DiskDeployer(self.disk_repo)
        return self._disk_deployer

    def disk_manager(self) -> DiskManager:
        if self._disk_manager is None:
            self._disk_manager = DiskManager(self.cloud(), self.disk_repo)
        return self._disk_manager

    def vm_manager(self) -> VMManager:
        if self._vm_manager is None:
            self._vm_manager = VMManager(
                self.vm_repo,
                self.stemcell_repo,
                self.disk_deployer(),
                self.cloud(),
                self.agent_client,
                self.templates_spec_generator,
                ApplySpecFactory(),
                self.settings.mbus_url,
                settings=self.settings,
            )
        return self._vm_manager
