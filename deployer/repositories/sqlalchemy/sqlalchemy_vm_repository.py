from typing import Optional
from sqlalchemy.orm import Session
from deployer.database import models
from deployer.repositories.interfaces import IVMRepository

class SqlalchemyVMRepository(IVMRepository):
    def __init__(self, db_session: Session):
        self.db = db_session

    def find_current(self) -> Optional[models.VM]:
        return self.db.query(models.VM).filter(models.VM.is_current.is_(True)).first()

    def update_current(self, cid: str) -> models.VM:
        self.db.query(models.VM).filter(models.VM.is_current.is_(True)).update({"is_current": False})
        vm = self.db.query(models.VM).filter(models.VM.cid == cid).first()
        if vm is None:
            vm = models.VM(cid=cid)
            self.db.add(vm)
        vm.is_current = True
        self.db.commit()
        self.db.refresh(vm)
        return vm

    def clear_current(self):
        self.db.query(models.VM).filter(models.VM.is_current.is_(True)).delete()
        self.db.commit()
