from typing import Optional
from sqlalchemy.orm import Session
from deployer.database import models
from deployer.repositories.interfaces import IStemcellRepository

class SqlalchemyStemcellRepository(IStemcellRepository):
    def __init__(self, db_session: Session):
        self.db = db_session

    def save(self, name: str, version: str, cid: str) -> models.Stemcell:
        stemcell = models.Stemcell(name=name, version=version, cid=cid, is_current=False)
        self.db.add(stemcell)
        self.db.commit()
        self.db.refresh(stemcell)
        return stemcell

    def find(self, name: str, version: str) -> Optional[models.Stemcell]:
        return self.db.query(models.Stemcell).filter(
            models.Stemcell.name == name,
            models.Stemcell.version == version
        ).first()

    def find_current(self) -> Optional[models.Stemcell]:
        return self.db.query(models.Stemcell).filter(models.Stemcell.is_current.is_(True)).first()

    def update_current(self, stemcell_id: int):
        self.db.query(models.Stemcell).filter(models.Stemcell.is_current.is_(True)).update({"is_current": False})
        self.db.query(models.Stemcell).filter(models.Stemcell.id == stemcell_id).update({"is_current": True})
        self.db.commit()

    def clear_current(self):
        self.db.query(models.Stemcell).filter(models.Stemcell.is_current.is_(True)).update({"is_current": False})
        self.db.commit()
