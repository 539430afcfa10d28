from .vm import IVMRepository
from .stemcell import IStemcellRepository
from .disk import IDiskRepository

__all__ = ["IVMRepository", "IStemcellRepository", "IDiskRepository"]
