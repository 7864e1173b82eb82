#!/usr/bin/env python3
"""部署启动脚本

用于在Render/Railway等平台上启动FastAPI应用
"""

import uvicorn

from music_share.core.config import get_settings
from music_share.core.logging import setup_logging


def main():
    """启动FastAPI应用

    端口从PORT环境变量读取，平台会自动注入
    """
    settings = get_settings()
    setup_logging(settings)

    uvicorn.run(
        "music_share.main:app",
        host=settings.host,
        port=settings.port,
        # 生产环境不使用reload
        reload=False,
        workers=1,
        log_level="debug" if settings.debug else "info",
        access_log=True
    )


if __name__ == "__main__":
    main()
