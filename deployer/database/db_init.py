import logging

from .database import engine, Base
from . import models  # noqa: F401  모델을 Base.metadata에 등록

logger = logging.getLogger(__name__)


def initialize_db(bind=None):
    """
    상태 저장소 DB와 테이블을 생성합니다.
    이미 존재하는 테이블은 그대로 둡니다.
    """
    bind = bind or engine
    logger.info("Initializing deployer state database at %s", bind.url)
    Base.metadata.create_all(bind=bind)


if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO)
    initialize_db()
