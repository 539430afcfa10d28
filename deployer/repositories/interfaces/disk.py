from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
from deployer.database import models

class IDiskRepository(ABC):
    @abstractmethod
    def save(self, cid: str, size: int, cloud_properties: Dict[str, Any]) -> models.Disk:
        """새 디스크 기록을 저장합니다. 저장된 기록은 아직 현재 디스크가 아닙니다."""
        pass

    @abstractmethod
    def find(self, cid: str) -> Optional[models.Disk]:
        """디스크 CID로 기록을 조회합니다."""
        pass

    @abstractmethod
    def find_current(self) -> Optional[models.Disk]:
        """현재 디스크 기록을 조회합니다."""
        pass

    @abstractmethod
    def update_current(self, disk_id: int):
        """주어진 디스크를 현재 디스크로 표시합니다. 기존 현재 표시는 해제됩니다."""
        pass

    @abstractmethod
    def clear_current(self):
        """현재 디스크 표시를 해제합니다."""
        pass

    @abstractmethod
    def list_all(self) -> List[models.Disk]:
        """모든 디스크 기록을 생성 순서대로 조회합니다."""
        pass

    @abstractmethod
    def delete(self, disk: models.Disk) -> bool:
        """디스크 기록을 삭제합니다."""
        pass
