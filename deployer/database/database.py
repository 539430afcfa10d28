from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from deployer.config import get_settings

# 데이터베이스 연결 문자열은 설정(DEPLOYER_DATABASE_URL)에서 읽습니다.
SQLALCHEMY_DATABASE_URL = get_settings().database_url


def make_engine(url):
    # connect_args는 SQLite에서만 필요합니다. (thread-safe 설정)
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, connect_args=connect_args)


# SQLAlchemy 엔진 생성
engine = make_engine(SQLALCHEMY_DATABASE_URL)

# autocommit=False, autoflush=False로 설정하여, 명시적으로 commit을 호출해야 DB에 반영됩니다.
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# 모든 모델 클래스가 상속받을 Base 클래스
Base = declarative_base()
