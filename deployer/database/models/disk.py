from sqlalchemy import JSON, BigInteger, Boolean, Column, DateTime, Integer, String, func
from ..database import Base

class Disk(Base):
    """
    CPI로 만든 영구 디스크의 기록입니다.
    생성 당시의 크기와 cloud_properties를 함께 저장해, 원하는 디스크 풀 스펙과
    비교할 수 있게 합니다. 실행 중인 VM에 붙어 있어야 할 디스크만 'current'입니다.
    """
    __tablename__ = "disks"
    id = Column(Integer, primary_key=True, index=True)
    cid = Column(String, unique=True, nullable=False, index=True)
    size = Column(BigInteger, nullable=False)
    cloud_properties = Column(JSON, nullable=False, default=dict)
    is_current = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, server_default=func.now())
