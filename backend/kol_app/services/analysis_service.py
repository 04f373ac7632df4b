"""
经营分析服务
按财年 / 项目类型筛选，汇总 KPI、月度收入利润、项目类型分布和达人排行
"""
import re
from collections import defaultdict
from datetime import date
from typing import Dict, List, Optional

from sqlalchemy.orm import Session, joinedload

from kol_app.models.collaboration import AGGREGATE_STATUSES, Collaboration
from kol_app.models.project import Project
from kol_app.schemas.report import AnalysisFilters
from kol_app.services.metrics_engine import compute_metrics, report_today
from kol_app.utils.data_processor import round2, safe_ratio, to_number

TALENT_SORT_KEYS = ("totalProfit", "totalAmount", "collaborationCount")


def _month_number(month: Optional[str]) -> int:
    """'M3' -> 3，无法解析的排在最后"""
    m = re.search(r"\d+", month or "")
    return int(m.group()) if m else 99


def _margin(profit: float, income: float) -> float:
    return round2(safe_ratio(profit, income, 100))


class AnalysisService:
    """经营分析服务类"""

    def __init__(self, db: Session):
        self.db = db

    def available_filters(self) -> dict:
        years = [r[0] for r in self.db.query(Project.financial_year).distinct().all() if r[0]]
        types = [r[0] for r in self.db.query(Project.type).distinct().all() if r[0]]
        return {
            "years": sorted(years, key=lambda y: to_number(y, 0), reverse=True),
            "projectTypes": sorted(types),
        }

    def get_analysis(
        self,
        filters: AnalysisFilters,
        talent_sort_by: str = "totalProfit",
        talent_limit: int = 20,
        today: Optional[date] = None,
    ) -> dict:
        if today is None:
            today = report_today()
        if talent_sort_by not in TALENT_SORT_KEYS:
            talent_sort_by = "totalProfit"

        query = self.db.query(Collaboration).join(Project).options(
            joinedload(Collaboration.project).joinedload(Project.capital_rate),
            joinedload(Collaboration.talent),
        ).filter(Collaboration.status.in_(AGGREGATE_STATUSES))
        if filters.year:
            query = query.filter(Project.financial_year == filters.year)
        if filters.project_type:
            query = query.filter(Project.type == filters.project_type)

        rows = []
        for c in query.all():
            m = compute_metrics(c, c.project, c.project.capital_rate, today)
            rows.append((c, m))

        return {
            "availableFilters": self.available_filters(),
            "kpiSummary": self._kpi_summary(rows),
            "monthlyFinancials": self._monthly(rows),
            "byProjectType": self._by_project_type(rows),
            "topTalents": self._top_talents(rows, talent_sort_by, talent_limit),
        }

    def _kpi_summary(self, rows) -> dict:
        if not rows:
            return {}
        income = sum(m.income for _, m in rows)
        profit = sum(m.gross_profit for _, m in rows)
        return {
            "totalIncome": round2(income),
            "totalProfit": round2(profit),
            "totalProjects": len({c.project_id for c, _ in rows}),
            "totalCollaborations": len(rows),
            "overallMargin": _margin(profit, income),
        }

    def _monthly(self, rows) -> List[dict]:
        groups: Dict[Optional[str], List[float]] = defaultdict(lambda: [0.0, 0.0])
        for c, m in rows:
            acc = groups[c.project.financial_month]
            acc[0] += m.income
            acc[1] += m.gross_profit
        return [
            {
                "month": month,
                "totalIncome": round2(income),
                "totalProfit": round2(profit),
                "margin": _margin(profit, income),
            }
            for month, (income, profit) in sorted(groups.items(), key=lambda kv: _month_number(kv[0]))
        ]

    def _by_project_type(self, rows) -> List[dict]:
        groups: Dict[Optional[str], float] = defaultdict(float)
        for c, m in rows:
            groups[c.project.type] += m.income
        result = [{"projectType": t, "totalIncome": round2(v)} for t, v in groups.items()]
        result.sort(key=lambda r: r["totalIncome"], reverse=True)
        return result

    def _top_talents(self, rows, sort_by: str, limit: int) -> List[dict]:
        groups: Dict[str, dict] = {}
        for c, m in rows:
            g = groups.setdefault(c.talent_id, {
                "talentName": c.talent.nickname if c.talent else None,
                "collaborationCount": 0,
                "totalAmount": 0.0,
                "totalProfit": 0.0,
                "_totalRebate": 0.0,
            })
            g["collaborationCount"] += 1
            g["totalAmount"] += to_number(c.amount, 0)
            g["totalProfit"] += m.gross_profit
            g["_totalRebate"] += to_number(c.rebate, 0)

        ranked = sorted(groups.values(), key=lambda g: g[sort_by], reverse=True)[:limit]
        return [
            {
                "talentName": g["talentName"],
                "collaborationCount": g["collaborationCount"],
                "totalAmount": round2(g["totalAmount"]),
                "totalProfit": round2(g["totalProfit"]),
                "averageRebate": round2(safe_ratio(g["_totalRebate"], g["collaborationCount"])),
            }
            for g in ranked
        ]
