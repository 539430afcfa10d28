from .vm import VM
from .stemcell import Stemcell
from .disk import Disk

__all__ = ["VM", "Stemcell", "Disk"]
