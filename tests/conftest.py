# tests/conftest.py
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from deployer.database import models  # noqa: F401  테이블 등록
from deployer.database.database import Base
from deployer.services.stage import IStage


class FakeStage(IStage):
    """실행한 단계 이름을 기록하고 함수를 그대로 실행하는 가짜 진행 상황 보고기."""
    def __init__(self):
        self.steps = []

    def perform(self, name, func):
        self.steps.append(name)
        return func()


@pytest.fixture
def db_session():
    """테이블이 만들어진 인메모리 SQLite 세션을 반환합니다."""
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    yield session
    session.close()
    engine.dispose()


@pytest.fixture
def fake_stage() -> FakeStage:
    return FakeStage()
