from abc import ABC, abstractmethod
from typing import Optional
from deployer.database import models

class IVMRepository(ABC):
    @abstractmethod
    def find_current(self) -> Optional[models.VM]:
        """현재 VM 기록을 조회합니다. 없으면 None을 반환합니다."""
        pass

    @abstractmethod
    def update_current(self, cid: str) -> models.VM:
        """VM CID를 저장하고 현재 VM으로 표시합니다. 기존 현재 표시는 해제됩니다."""
        pass

    @abstractmethod
    def clear_current(self):
        """현재 VM 기록을 삭제합니다. 기록이 없으면 아무것도 하지 않습니다."""
        pass
