from abc import ABC, abstractmethod
from typing import Optional
from deployer.database import models

class IStemcellRepository(ABC):
    @abstractmethod
    def save(self, name: str, version: str, cid: str) -> models.Stemcell:
        """업로드된 스템셀 정보를 저장합니다."""
        pass

    @abstractmethod
    def find(self, name: str, version: str) -> Optional[models.Stemcell]:
        """이름과 버전으로 스템셀 기록을 조회합니다."""
        pass

    @abstractmethod
    def find_current(self) -> Optional[models.Stemcell]:
        """현재 스템셀 기록을 조회합니다."""
        pass

    @abstractmethod
    def update_current(self, stemcell_id: int):
        """주어진 스템셀을 현재 스템셀로 표시합니다. 기존 현재 표시는 해제됩니다."""
        pass

    @abstractmethod
    def clear_current(self):
        """현재 스템셀 표시를 해제합니다. 스템셀 기록 자체는 남겨 둡니다."""
        pass
