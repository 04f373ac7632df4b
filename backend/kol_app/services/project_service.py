"""
项目服务
项目列表（带汇总财务指标）与部分字段更新
"""
import logging
from datetime import date, datetime
from typing import Any, List, Optional

from sqlalchemy.orm import Session, joinedload, selectinload

from kol_app.config import settings
from kol_app.models.project import Project
from kol_app.schemas.project import ProjectUpdate
from kol_app.services.metrics_engine import compute_project_rollup, report_today
from kol_app.utils.data_processor import to_number, to_optional_number, utc_now

logger = logging.getLogger(__name__)

NUMERIC_FIELDS = {"budget", "discount"}
STRING_FIELDS = {"year", "month", "financial_year"}


def _iso(value: Any) -> Optional[str]:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


def preview_files(files: Optional[List[Any]]) -> List[dict]:
    """项目文件地址改写为预览地址：{base}/preview-file?fileKey=<最后一段路径>"""
    result = []
    for f in files or []:
        if not isinstance(f, dict):
            continue
        url = f.get("url") or ""
        if settings.PREVIEW_BASE_URL and url:
            file_key = url.rstrip("/").split("/")[-1]
            url = f"{settings.PREVIEW_BASE_URL.rstrip('/')}/preview-file?fileKey={file_key}"
        result.append({"name": f.get("name"), "url": url})
    return result


def serialize_project(p: Project, metrics: Optional[dict] = None) -> dict:
    data = {
        "id": p.id,
        "name": p.name,
        "qianchuanId": p.qianchuan_id,
        "type": p.type,
        "year": p.year,
        "month": p.month,
        "financialYear": p.financial_year,
        "financialMonth": p.financial_month,
        "status": p.status,
        "discount": None if p.discount is None else to_number(p.discount, 1),
        "capitalRateId": p.capital_rate_id,
        "budget": None if p.budget is None else to_number(p.budget, 0),
        "benchmarkCPM": None if p.benchmark_cpm is None else to_number(p.benchmark_cpm, 0),
        "adjustments": p.adjustments or [],
        "auditLog": p.audit_log or [],
        "trackingEnabled": bool(p.tracking_enabled),
        "projectFiles": preview_files(p.project_files),
        "createdAt": _iso(p.created_at),
        "updatedAt": _iso(p.updated_at),
    }
    if metrics is not None:
        data["metrics"] = metrics
    return data


class ProjectService:
    """项目服务类"""

    def __init__(self, db: Session):
        self.db = db

    def list_simple(self, project_id: Optional[str] = None) -> List[dict]:
        query = self.db.query(Project)
        if project_id:
            query = query.filter(Project.id == project_id)
        return [{"id": p.id, "name": p.name, "status": p.status} for p in query.all()]

    def list_with_metrics(self, project_id: Optional[str] = None, today: Optional[date] = None) -> List[dict]:
        if today is None:
            today = report_today()
        query = self.db.query(Project).options(
            joinedload(Project.capital_rate),
            selectinload(Project.collaborations),
        )
        if project_id:
            query = query.filter(Project.id == project_id)

        result = []
        for project in query.order_by(Project.created_at.desc(), Project.id).all():
            rollup = compute_project_rollup(project.collaborations, project, project.capital_rate, today)
            result.append(serialize_project(project, rollup.to_dict()))
        return result

    def update(self, payload: ProjectUpdate) -> Optional[Project]:
        """
        部分更新项目，项目不存在返回 None

        状态变更时在审计日志最前面追加一条记录
        """
        changes = payload.changes()
        if not changes:
            raise ValueError("请求体中没有需要更新的有效字段。")

        project = self.db.query(Project).filter(Project.id == payload.id).first()
        if project is None:
            return None

        for field, value in changes.items():
            setattr(project, field, self._coerce_field(field, value))

        now = utc_now()
        if changes.get("status"):
            entry = {
                "timestamp": now.isoformat(),
                "user": "System",
                "action": f"项目状态由人工变更为: {changes['status']}",
            }
            # JSON 列需整体重新赋值才会被识别为变更
            project.audit_log = [entry] + list(project.audit_log or [])

        project.updated_at = now
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            logger.error(f"更新项目失败: {payload.id}", exc_info=True)
            raise

        self.db.refresh(project)
        return project

    def _coerce_field(self, field: str, value: Any) -> Any:
        if field == "benchmark_cpm":
            return to_optional_number(value)
        if field == "tracking_enabled":
            return value is True or value == "true"
        if value is None or value == "":
            return None
        if field in NUMERIC_FIELDS:
            parsed = to_optional_number(value)
            if parsed is None:
                raise ValueError(f"{field} 必须是数字")
            return parsed
        if field in STRING_FIELDS:
            return str(value)
        return value
