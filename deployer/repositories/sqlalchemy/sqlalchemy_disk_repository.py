from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session
from deployer.database import models
from deployer.repositories.interfaces import IDiskRepository

class SqlalchemyDiskRepository(IDiskRepository):
    def __init__(self, db_session: Session):
        self.db = db_session

    def save(self, cid: str, size: int, cloud_properties: Dict[str, Any]) -> models.Disk:
        disk = models.Disk(cid=cid, size=size, cloud_properties=dict(cloud_properties or {}), is_current=False)
        self.db.add(disk)
        self.db.commit()
        self.db.refresh(disk)
        return disk

    def find(self, cid: str) -> Optional[models.Disk]:
        return self.db.query(models.Disk).filter(models.Disk.cid == cid).first()

    def find_current(self) -> Optional[models.Disk]:
        return self.db.query(models.Disk).filter(models.Disk.is_current.is_(True)).first()

    def update_current(self, disk_id: int):
        self.db.query(models.Disk).filter(models.Disk.is_current.is_(True)).update({"is_current": False})
        self.db.query(models.Disk).filter(models.Disk.id == disk_id).update({"is_current": True})
        self.db.commit()

    def clear_current(self):
        self.db.query(models.Disk).filter(models.Disk.is_current.is_(True)).update({"is_current": False})
        self.db.commit()

    def list_all(self) -> List[models.Disk]:
        return self.db.query(models.Disk).order_by(models.Disk.id).all()

    def delete(self, disk: models.Disk) -> bool:
        if disk:
            self.db.delete(disk)
            self.db.commit()
            return True
        return False
