"""日志配置模块

统一配置loguru的控制台和文件输出
"""

import sys

from loguru import logger

from .config import Settings


LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level} | {name}:{function}:{line} | {message}"


def setup_logging(settings: Settings) -> None:
    """配置日志输出

    移除loguru默认输出，按配置级别输出到标准错误；
    配置了log_file时额外写入按天轮转的JSON日志文件

    Args:
        settings: 应用配置
    """
    logger.remove()
    logger.add(sys.stderr, level=settings.log_level.upper(), format=LOG_FORMAT)

    if settings.log_file:
        logger.add(
            settings.log_file,
            rotation="1 day",
            retention="30 days",
            level=settings.log_level.upper(),
            format=LOG_FORMAT,
            serialize=True
        )
