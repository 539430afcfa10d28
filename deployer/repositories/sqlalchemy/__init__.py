from .sqlalchemy_vm_repository import SqlalchemyVMRepository
from .sqlalchemy_stemcell_repository import SqlalchemyStemcellRepository
from .sqlalchemy_disk_repository import SqlalchemyDiskRepository

__all__ = ["SqlalchemyVMRepository", "SqlalchemyStemcellRepository", "SqlalchemyDiskRepository"]
