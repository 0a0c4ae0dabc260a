"""
主程序入口

加载配置、初始化日志，启动 REST API 服务（自动刷新随应用启动）。
"""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

import uvicorn

from . import __version__
from .config import AppConfig, get_config


def setup_logging(config: Optional[AppConfig] = None):
    """配置日志"""
    config = config or get_config()

    # 日志格式
    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # 获取日志级别
    level = getattr(logging, config.logging.level.upper(), logging.INFO)

    # 配置根日志
    logging.basicConfig(
        level=level,
        format=log_format,
        handlers=[logging.StreamHandler(sys.stdout)]
    )

    # 如果配置了文件日志
    if config.logging.file:
        log_path = Path(config.logging.file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(str(log_path), encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(log_format))
        logging.getLogger().addHandler(file_handler)

    # 降低第三方库日志级别
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("uvicorn").setLevel(logging.INFO)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


async def main():
    """主函数：启动 API 服务"""
    from .api.app import create_app

    logger = logging.getLogger(__name__)

    # 设置日志
    setup_logging()
    logger.info("=" * 60)
    logger.info(f"Machine Dashboard v{__version__}")
    logger.info("=" * 60)

    # 加载配置
    config = get_config()
    logger.info(f"Config loaded: API={config.api.host}:{config.api.port}")
    logger.info(f"Backend: {config.backend.base_url}")
    logger.info(
        f"Auto refresh: {'on' if config.refresh.auto_refresh else 'off'} "
        f"(interval={config.refresh.interval}s)"
    )

    app = create_app(config)

    server_config = uvicorn.Config(
        app=app,
        host=config.api.host,
        port=config.api.port,
        log_level="info",
        access_log=False  # 我们用自己的日志
    )
    server = uvicorn.Server(server_config)

    try:
        await server.serve()
    except asyncio.CancelledError:
        logger.info("Server cancelled, shutting down...")


def cli():
    """命令行入口"""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nShutdown requested, exiting...")
        sys.exit(0)


if __name__ == "__main__":
    cli()
