import logging
import os

# 라이브러리 로거에는 NullHandler만 붙입니다. 출력 핸들러 구성은 애플리케이션의 몫입니다.
logging.getLogger(__name__).addHandler(logging.NullHandler())

_env_level = os.environ.get("DEPLOYER_LOG_LEVEL", "").strip().upper()
if _env_level and isinstance(logging.getLevelName(_env_level), int):
    logging.getLogger(__name__).setLevel(_env_level)
