from sqlalchemy import Boolean, Column, DateTime, Integer, String, UniqueConstraint, func
from ..database import Base

class Stemcell(Base):
    """
    VM을 만들 때 사용하는 기반 머신 이미지(스템셀)의 기록입니다.
    cid는 CPI에 업로드된 이미지의 식별자입니다.
    """
    __tablename__ = "stemcells"
    __table_args__ = (UniqueConstraint("name", "version"),)
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    version = Column(String, nullable=False)
    cid = Column(String, nullable=False)
    is_current = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, server_default=func.now())
