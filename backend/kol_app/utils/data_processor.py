"""
数据处理工具函数
字段类型宽松（可能缺失、可能是字符串），统一在这里做安全转换
"""
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

import numpy as np

from kol_app.config import settings


def to_number(value: Any, default: float = 0.0) -> float:
    """
    安全转为 float

    None / 空串 / 无法解析 / NaN / Inf 一律返回 default

    示例:
        >>> to_number("12.5")
        12.5
        >>> to_number("", 1)
        1
        >>> to_number("abc")
        0.0
    """
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, str):
        value = value.strip().replace(",", "")
        if not value:
            return default
    try:
        if isinstance(value, Decimal):
            result = float(value)
        else:
            result = float(Decimal(str(value)))
    except (InvalidOperation, TypeError, ValueError):
        return default
    if np.isinf(result) or np.isnan(result):
        return default
    return result


def to_optional_number(value: Any) -> Optional[float]:
    """与 to_number 相同，但缺失/无法解析时返回 None"""
    result = to_number(value, default=float("nan"))
    return None if np.isnan(result) else result


def to_date(value: Any) -> Optional[date]:
    """
    安全转为 date

    支持 date / datetime / 'YYYY-MM-DD' / ISO8601 字符串（含 'Z' 后缀），
    带时区的时间先换算到业务时区（UTC+8）再取日期，其余情况返回 None
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(settings.report_tz)
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    s = value.strip()
    if not s:
        return None
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        return to_date(datetime.fromisoformat(s))
    except ValueError:
        pass
    try:
        return datetime.strptime(s[:10], "%Y-%m-%d").date()
    except ValueError:
        return None


def safe_ratio(numerator: float, denominator: float, scale: float = 1.0) -> float:
    """numerator / denominator * scale，分母 <= 0 或结果非有限值时返回 0"""
    if not denominator or denominator <= 0:
        return 0.0
    result = numerator / denominator * scale
    if np.isinf(result) or np.isnan(result):
        return 0.0
    return result


def round2(value: Optional[float]) -> Optional[float]:
    """保留两位小数（None 原样返回）"""
    if value is None:
        return None
    return round(float(value), 2)


def utc_now() -> datetime:
    """当前 UTC 时间（naive datetime，兼容 SQLite）"""
    return datetime.now(timezone.utc).replace(tzinfo=None)
