"""
配置加载模块

从 config.yaml 加载配置，支持 Pydantic 验证和环境变量覆盖。
后端访问 Token 可由环境变量 DASHBOARD_BACKEND_TOKEN 覆盖。
"""

import os
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import InvalidRefreshInterval


# 前端下拉框可选的刷新间隔（秒）
ALLOWED_REFRESH_INTERVALS = (3, 10, 30, 60, 300)


def validate_refresh_interval(seconds: int) -> int:
    """
    校验自动刷新间隔

    Raises:
        InvalidRefreshInterval: 不在允许列表中时抛出
    """
    if isinstance(seconds, bool) or seconds not in ALLOWED_REFRESH_INTERVALS:
        allowed = ", ".join(str(s) for s in ALLOWED_REFRESH_INTERVALS)
        raise InvalidRefreshInterval(
            f"Refresh interval {seconds!r} not allowed (choose one of: {allowed})"
        )
    return int(seconds)


class DashboardSecrets(BaseSettings):
    """敏感配置（只从环境变量读取）"""
    model_config = SettingsConfigDict(env_prefix="DASHBOARD_", extra="ignore")

    backend_token: Optional[str] = None


class BackendConfig(BaseModel):
    """后端接口配置"""

    base_url: str = "http://127.0.0.1:8000/"
    machine_path: str = "machine/machine-data"
    plc_path: str = "api/dashboard/plc-machine-data"
    timeout: float = 10.0
    token: Optional[str] = None


class RefreshConfig(BaseModel):
    """自动刷新配置"""
    auto_refresh: bool = False
    interval: int = 30

    @field_validator("interval")
    @classmethod
    def _check_interval(cls, value: int) -> int:
        return validate_refresh_interval(value)


class APIConfig(BaseModel):
    """API 服务配置"""
    host: str = "0.0.0.0"
    port: int = 8090
    cors_origins: List[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]


class LoggingConfig(BaseModel):
    """日志配置"""
    level: str = "INFO"
    file: Optional[str] = None


class AppConfig(BaseModel):
    """应用配置（完整配置）"""
    backend: BackendConfig = Field(default_factory=BackendConfig)
    refresh: RefreshConfig = Field(default_factory=RefreshConfig)
    api: APIConfig = Field(default_factory=APIConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_config(config_path: Optional[str] = None) -> AppConfig:
    """
    加载配置文件

    优先级：
    1. 参数指定的路径
    2. 环境变量 MACHINE_DASHBOARD_CONFIG
    3. 当前目录下的 config.yaml
    """
    if config_path is None:
        config_path = os.environ.get("MACHINE_DASHBOARD_CONFIG", "config.yaml")

    config_file = Path(config_path)
    config = None

    if config_file.exists():
        with open(config_file, "r", encoding="utf-8") as f:
            raw_config = yaml.safe_load(f)
        if raw_config:
            # 日志文件路径相对于配置文件所在目录
            log_file = (raw_config.get("logging") or {}).get("file")
            if log_file and not Path(log_file).is_absolute():
                raw_config["logging"]["file"] = str((config_file.resolve().parent / log_file).resolve())
            config = AppConfig(**raw_config)

    # 配置文件不存在时使用默认配置
    if config is None:
        config = AppConfig()

    # 环境变量中的 Token 优先
    secrets = DashboardSecrets()
    if secrets.backend_token:
        config.backend.token = secrets.backend_token

    return config


# 全局配置实例（延迟加载）
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """获取全局配置实例（单例模式）"""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config():
    """重置配置（主要用于测试）"""
    global _config
    _config = None
