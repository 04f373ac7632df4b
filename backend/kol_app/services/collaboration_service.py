"""
合作记录服务
列表（带财务指标）与部分字段更新
"""
import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session, joinedload

from kol_app.models.collaboration import Collaboration, CollaborationStatus
from kol_app.models.project import Project
from kol_app.models.work import Work, new_work_id
from kol_app.schemas.collaboration import CollaborationUpdate
from kol_app.services.metrics_engine import Metrics, compute_metrics, report_today
from kol_app.utils.data_processor import to_date, to_number, to_optional_number, utc_now

logger = logging.getLogger(__name__)

# 可排序的数据库字段（camelCase -> 列）
SORTABLE_COLUMNS = {
    "createdAt": Collaboration.created_at,
    "updatedAt": Collaboration.updated_at,
    "amount": Collaboration.amount,
    "rebate": Collaboration.rebate,
    "status": Collaboration.status,
    "orderDate": Collaboration.order_date,
    "publishDate": Collaboration.publish_date,
    "paymentDate": Collaboration.payment_date,
    "plannedReleaseDate": Collaboration.planned_release_date,
}

# 可排序的计算指标（camelCase -> Metrics 属性）
SORTABLE_METRICS = {
    "income": "income",
    "expense": "expense",
    "rebateReceivable": "rebate_receivable",
    "fundsOccupationCost": "funds_occupation_cost",
    "grossProfit": "gross_profit",
    "grossProfitMargin": "gross_profit_margin",
}

DATE_FIELDS = {"order_date", "publish_date", "payment_date", "recovery_date", "planned_release_date"}
NUMERIC_FIELDS = {"amount", "rebate", "actual_rebate"}
REBATE_RELATED_FIELDS = {"actual_rebate", "recovery_date", "rebate_screenshots", "discrepancy_reason"}


def _iso(value: Any) -> Optional[str]:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


def _num(value: Any) -> Optional[float]:
    return None if value is None else to_number(value, 0)


def serialize_simple(c: Collaboration) -> dict:
    return {"id": c.id, "talentId": c.talent_id, "status": c.status, "projectId": c.project_id}


def serialize_collaboration(c: Collaboration, metrics: Metrics) -> dict:
    talent = c.talent
    return {
        "id": c.id,
        "projectId": c.project_id,
        "talentId": c.talent_id,
        "talentSource": c.talent_source,
        "amount": _num(c.amount),
        "priceInfo": c.price_info,
        "rebate": _num(c.rebate),
        "orderType": c.order_type,
        "status": c.status,
        "orderDate": _iso(c.order_date),
        "publishDate": _iso(c.publish_date),
        "videoId": c.video_id,
        "paymentDate": _iso(c.payment_date),
        "plannedReleaseDate": _iso(c.planned_release_date),
        "actualRebate": _num(c.actual_rebate),
        "recoveryDate": _iso(c.recovery_date),
        "contentFile": c.content_file,
        "taskId": c.task_id,
        "rebateScreenshots": c.rebate_screenshots,
        "discrepancyReason": c.discrepancy_reason,
        "discrepancyReasonUpdatedAt": _iso(c.discrepancy_reason_updated_at),
        "createdAt": _iso(c.created_at),
        "updatedAt": _iso(c.updated_at),
        "talentInfo": {
            "nickname": talent.nickname if talent else None,
            "xingtuId": talent.xingtu_id if talent else None,
            "uid": talent.uid if talent else None,
            "level": talent.talent_tier if talent else None,
            "tags": talent.talent_type if talent else None,
        },
        "metrics": metrics.to_dict(),
    }


def _is_empty(value: Any) -> bool:
    return value is None or value == "" or (isinstance(value, list) and len(value) == 0)


def _parse_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    s = str(value).strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(s)
    except ValueError:
        raise ValueError(f"时间格式错误: {value}")


class CollaborationService:
    """合作记录服务类"""

    def __init__(self, db: Session):
        self.db = db

    def _base_query(self, project_id: Optional[str], collaboration_id: Optional[str]):
        query = self.db.query(Collaboration)
        if project_id:
            query = query.filter(Collaboration.project_id == project_id)
        if collaboration_id:
            query = query.filter(Collaboration.id == collaboration_id)
        return query

    def list_simple(self, project_id: Optional[str] = None, collaboration_id: Optional[str] = None) -> List[dict]:
        rows = self._base_query(project_id, collaboration_id).all()
        return [serialize_simple(c) for c in rows]

    def list_with_metrics(
        self,
        project_id: Optional[str] = None,
        collaboration_id: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
        sort_by: str = "createdAt",
        order: str = "desc",
        today: Optional[date] = None,
    ) -> Tuple[int, List[dict]]:
        """
        返回 (总数, 当前页数据)

        按数据库字段排序时在 SQL 中分页；按计算指标排序时先算出全部指标再分页，
        调用方需保证查询范围已按项目/合作限定。
        """
        if today is None:
            today = report_today()
        descending = order != "asc"
        offset = (max(page, 1) - 1) * limit

        query = self._base_query(project_id, collaboration_id).options(
            joinedload(Collaboration.project).joinedload(Project.capital_rate),
            joinedload(Collaboration.talent),
        )
        total = self._base_query(project_id, collaboration_id).count()

        def _metrics(c: Collaboration) -> Metrics:
            project = c.project
            return compute_metrics(c, project, project.capital_rate if project else None, today)

        if sort_by in SORTABLE_METRICS:
            attr = SORTABLE_METRICS[sort_by]
            pairs = [(c, _metrics(c)) for c in query.all()]
            pairs.sort(key=lambda p: getattr(p[1], attr), reverse=descending)
            page_pairs = pairs[offset:offset + limit]
        else:
            column = SORTABLE_COLUMNS.get(sort_by, Collaboration.created_at)
            ordered = query.order_by(column.desc() if descending else column.asc(), Collaboration.id)
            page_pairs = [(c, _metrics(c)) for c in ordered.offset(offset).limit(limit).all()]

        return total, [serialize_collaboration(c, m) for c, m in page_pairs]

    def update(self, payload: CollaborationUpdate) -> Optional[Collaboration]:
        """
        部分更新合作记录，记录不存在返回 None

        - 出现在请求中的白名单字段才会被修改，null / 空串 / 空列表表示清空
        - 返点相关字段变动时刷新 discrepancy_reason_updated_at（实收返点显式置空时清除）
        - 设置发布日期或视频ID且未显式指定状态时，状态自动变为“视频已发布”，并补建作品记录
        """
        changes = payload.changes()
        if not changes:
            raise ValueError("请求体中没有需要更新的有效字段。")

        collaboration = self.db.query(Collaboration).filter(Collaboration.id == payload.id).first()
        if collaboration is None:
            return None

        for field, value in changes.items():
            setattr(collaboration, field, self._coerce_field(field, value))

        if REBATE_RELATED_FIELDS & changes.keys():
            if "actual_rebate" in changes and changes["actual_rebate"] is None:
                collaboration.discrepancy_reason_updated_at = None
            else:
                collaboration.discrepancy_reason_updated_at = utc_now()

        is_video_published = bool(changes.get("publish_date") or changes.get("video_id"))
        if is_video_published and not changes.get("status"):
            collaboration.status = CollaborationStatus.PUBLISHED.value

        collaboration.updated_at = utc_now()

        try:
            if is_video_published:
                self._ensure_work(collaboration)
            self.db.commit()
        except Exception:
            self.db.rollback()
            logger.error(f"更新合作记录失败: {payload.id}", exc_info=True)
            raise

        self.db.refresh(collaboration)
        return collaboration

    def _coerce_field(self, field: str, value: Any) -> Any:
        if _is_empty(value):
            return None
        if field in DATE_FIELDS:
            parsed = to_date(value)
            if parsed is None:
                raise ValueError(f"{field} 日期格式错误，请使用YYYY-MM-DD")
            return parsed
        if field in NUMERIC_FIELDS:
            parsed = to_optional_number(value)
            if parsed is None:
                raise ValueError(f"{field} 必须是数字")
            return parsed
        if field == "discrepancy_reason_updated_at":
            return _parse_datetime(value)
        return value

    def _ensure_work(self, collaboration: Collaboration) -> Work:
        """作品记录的唯一创建入口：同一合作只建一条"""
        work = self.db.query(Work).filter(Work.collaboration_id == collaboration.id).first()
        if work is not None:
            return work

        publish_date = collaboration.publish_date
        work = Work(
            id=new_work_id(),
            collaboration_id=collaboration.id,
            project_id=collaboration.project_id,
            talent_id=collaboration.talent_id,
            task_id=collaboration.task_id,
            platform_work_id=collaboration.video_id,
            published_at=datetime(publish_date.year, publish_date.month, publish_date.day) if publish_date else None,
            source_type="COLLABORATION",
        )
        self.db.add(work)
        logger.info(f"[作品创建] 合作 {collaboration.id} 尚无作品记录，已创建 {work.id}")
        return work
