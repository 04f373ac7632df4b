"""
应用配置
"""
import json
from datetime import timedelta, timezone
from pathlib import Path
from typing import Any, List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _parse_str_list(value: Any) -> List[str]:
    """Parse list-like env values.

    Supports:
    - JSON list: '["http://a","http://b"]'
    - comma-separated: 'http://a,http://b'
    - already-a-list
    """
    if value is None:
        return []
    if isinstance(value, list):
        return [str(x).strip() for x in value if str(x).strip()]
    if isinstance(value, str):
        s = value.strip()
        if not s:
            return []
        if s.startswith("[") and s.endswith("]"):
            try:
                parsed = json.loads(s)
            except ValueError:
                parsed = None
            if isinstance(parsed, list):
                return [str(x).strip() for x in parsed if str(x).strip()]
        return [part.strip() for part in s.split(",") if part.strip()]
    return [str(value).strip()] if str(value).strip() else []


class Settings(BaseSettings):
    # 数据库配置
    DATABASE_URL: str = "sqlite:///./kol_data.db"

    # CORS配置
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

    # 业务口径：日期按 UTC+8 截断到天
    REPORT_UTC_OFFSET_HOURS: int = 8
    # 项目未关联资金费率时使用的月利率（百分比）
    DEFAULT_MONTHLY_CAPITAL_RATE: float = 0.7

    # 导出配置
    EXPORT_FOLDER: str = "exports"

    # 项目文件预览地址前缀（为空则原样返回文件URL）
    PREVIEW_BASE_URL: Optional[str] = None

    # 定时任务
    SCHEDULER_ENABLED: bool = True
    TASK_SCAN_HOUR: int = 9
    TASK_SCAN_MINUTE: int = 0

    # 速率限制
    RATE_LIMIT_DEFAULT: str = "120/minute"

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _validate_cors_origins(cls, v: Any) -> List[str]:
        return _parse_str_list(v)

    model_config = SettingsConfigDict(
        env_file=str(Path(__file__).resolve().parents[1] / ".env"),  # backend/.env
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @property
    def report_tz(self) -> timezone:
        return timezone(timedelta(hours=self.REPORT_UTC_OFFSET_HOURS))


settings = Settings()
