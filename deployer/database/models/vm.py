from sqlalchemy import Boolean, Column, DateTime, Integer, String, func
from ..database import Base

class VM(Base):
    """
    배포가 클라우드에 만든 가상 머신(인스턴스)의 기록입니다.
    cid는 CPI가 돌려준 VM 식별자이며, 배포당 하나의 VM만 'current'로 표시됩니다.
    """
    __tablename__ = "vms"
    id = Column(Integer, primary_key=True, index=True)
    cid = Column(String, unique=True, nullable=False, index=True)
    is_current = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, server_default=func.now())
