"""
配置文件 - 项目配置管理
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, Field, field_validator
from typing import Optional
import json


class DatabaseSettings(BaseModel):
    url: str = "sqlite+aiosqlite:///./bloggy.db"
    echo: bool = False


class RealtimeSettings(BaseModel):
    # 每个连接的发送队列上限与溢出策略: drop_oldest | drop_new | disconnect
    send_queue_max: int = 100
    overflow_policy: str = "drop_oldest"
    # 事件通道容量（领域操作 -> Hub），满时丢弃
    channel_max: int = 1000
    # 心跳：空闲多久发送 ping，等待 pong 的宽限时间，最多允许错过的 ping 次数
    idle_ping_interval_s: float = 30.0
    pong_grace_s: float = 10.0
    missed_ping_limit: int = 2


class ClientSettings(BaseModel):
    base_url: str = "http://localhost:8000/api/v1"
    ws_url: str = "ws://localhost:8000/api/v1/ws"
    timeout: float = 20.0
    reconnect_base_delay_s: float = 1.0
    reconnect_max_attempts: int = 5
    typing_idle_s: float = 2.0
    typing_expiry_s: float = 3.0


class Settings(BaseSettings):
    """项目配置"""

    # 基础配置
    PROJECT_NAME: str = Field(default="BLOGGY API Server")
    VERSION: str = Field(default="1.0.0")
    DEBUG: bool = Field(default=True)
    ENVIRONMENT: str = Field(default="development")

    # 分组配置：嵌套模型，环境变量形如 DATABASE__URL / REALTIME__SEND_QUEUE_MAX
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    realtime: RealtimeSettings = Field(default_factory=RealtimeSettings)
    client: ClientSettings = Field(default_factory=ClientSettings)

    # CORS配置
    CORS_ORIGINS: list = Field(
        default=["http://localhost:3000", "http://localhost:5173"],
    )

    # 分页配置
    DEFAULT_PAGE_SIZE: int = Field(default=10)
    MAX_PAGE_SIZE: int = Field(default=100)

    # 日志/请求体记录配置
    LOG_LEVEL: Optional[str] = Field(default=None)
    LOG_REQUEST_BODY_ENABLE_BY_DEFAULT: bool = Field(default=True)
    LOG_REQUEST_BODY_MAX_BYTES: int = Field(default=2048)

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="allow",
        env_nested_delimiter="__",
    )

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _parse_cors_origins(cls, v):
        """允许 JSON 字符串或逗号分隔字符串两种格式。"""
        if isinstance(v, list):
            return v
        if isinstance(v, str):
            s = v.strip()
            if s.startswith("[") and s.endswith("]"):
                try:
                    arr = json.loads(s)
                except json.JSONDecodeError:
                    arr = None
                if isinstance(arr, list):
                    return arr
            if "," in s:
                return [item.strip() for item in s.split(",") if item.strip()]
            return [s]
        return v

    @field_validator("realtime")
    @classmethod
    def _check_overflow_policy(cls, v: RealtimeSettings):
        policy = (v.overflow_policy or "").lower()
        if policy not in {"drop_oldest", "drop_new", "disconnect"}:
            raise ValueError(f"unsupported realtime overflow policy: {v.overflow_policy}")
        v.overflow_policy = policy
        return v


settings = Settings()
