"""
财务指标计算

合作维度：收入、支出、应收返点、资金占用费用、毛利、毛利率
项目维度：在合作指标基础上汇总，叠加手工调整项

全部为纯函数：输入可以是 ORM 对象也可以是 dict（snake_case 或 camelCase 键），
字段缺失或无法解析时按约定默认值处理，不抛异常。
数值在内部保持原始精度，只在 to_dict() 输出时保留两位小数。
"""
import enum
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Iterable, Optional

from kol_app.config import settings
from kol_app.models.collaboration import AGGREGATE_STATUSES, OrderType
from kol_app.models.project import ProjectStatus
from kol_app.utils.data_processor import (
    round2,
    safe_ratio,
    to_date,
    to_number,
    to_optional_number,
)

TAX_MULTIPLIER = 1.05          # 统一加收 5%
REBATE_TIER_THRESHOLD = 20.0   # 返点百分比超过该值时按 80% 成本计
HIGH_TIER_COST_RATIO = 0.8
DAYS_PER_MONTH = 30            # 月利率按 30 天摊到每天


class RebateSource(str, enum.Enum):
    """利润计算采用的返点来源"""
    ACTUAL = "actual"          # 已确认的实收返点
    ESTIMATED = "estimated"    # 按返点比例估算的应收返点
    NONE = "none"              # 项目已终结且无实收，按 0 计


@dataclass(frozen=True)
class RebateDecision:
    source: RebateSource
    value: float


def _field(record: Any, name: str, camel: Optional[str] = None) -> Any:
    if record is None:
        return None
    if isinstance(record, dict):
        if name in record:
            return record[name]
        return record.get(camel) if camel else None
    return getattr(record, name, None)


def report_today(now: Optional[datetime] = None) -> date:
    """业务时区（UTC+8）下的今天，只保留日期"""
    tz = settings.report_tz
    if now is None:
        return datetime.now(tz).date()
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(tz).date()


def compute_income(amount: float, discount: float) -> float:
    return amount * discount * TAX_MULTIPLIER


def compute_expense(amount: float, rebate_pct: float, order_type: Optional[str]) -> float:
    if order_type == OrderType.ORIGINAL.value:
        return amount * TAX_MULTIPLIER
    if rebate_pct > REBATE_TIER_THRESHOLD:
        return amount * HIGH_TIER_COST_RATIO * TAX_MULTIPLIER
    return amount * (1 - rebate_pct / 100) * TAX_MULTIPLIER


def compute_rebate_receivable(amount: float, rebate_pct: float, order_type: Optional[str]) -> float:
    if order_type == OrderType.ORIGINAL.value:
        return amount * rebate_pct / 100
    if rebate_pct > REBATE_TIER_THRESHOLD:
        return amount * (rebate_pct / 100 - REBATE_TIER_THRESHOLD / 100)
    return 0.0


def decide_rebate_for_profit(
    actual_rebate: Optional[float],
    rebate_receivable: float,
    project_finalized: bool,
) -> RebateDecision:
    """
    实收返点优先；没有实收时，未终结项目用估算值，已终结项目按 0 计
    """
    if actual_rebate is not None:
        return RebateDecision(RebateSource.ACTUAL, actual_rebate)
    if project_finalized:
        return RebateDecision(RebateSource.NONE, 0.0)
    return RebateDecision(RebateSource.ESTIMATED, rebate_receivable)


def compute_occupation_days(order_date: Any, payment_date: Any, today: date) -> int:
    """下单日到回款日（未回款则到今天）的整天数，不小于 0"""
    start = to_date(order_date)
    if start is None:
        return 0
    end = to_date(payment_date) or today
    return max(0, (end - start).days)


def compute_funds_occupation_cost(expense: float, monthly_rate_percent: float, occupation_days: int) -> float:
    return expense * (monthly_rate_percent / 100 / DAYS_PER_MONTH) * occupation_days


def compute_daily_cpm(income: float, total_views: Any) -> float:
    views = to_number(total_views, 0)
    if income <= 0 or views <= 0:
        return 0.0
    return safe_ratio(income, views, 1000)


def compute_cpm_change(cpm: float, previous_cpm: Optional[float]) -> Optional[float]:
    if previous_cpm is None:
        return None
    return cpm - previous_cpm


def project_discount(project: Any) -> float:
    return to_number(_field(project, "discount"), 1.0)


def monthly_rate_percent(capital_rate: Any) -> float:
    return to_number(_field(capital_rate, "value"), settings.DEFAULT_MONTHLY_CAPITAL_RATE)


def collaboration_income(collaboration: Any, project: Any) -> float:
    return compute_income(to_number(_field(collaboration, "amount"), 0), project_discount(project))


@dataclass(frozen=True)
class Metrics:
    income: float
    expense: float
    rebate_receivable: float
    rebate_for_profit_calc: float
    rebate_source: RebateSource
    occupation_days: int
    funds_occupation_cost: float
    gross_profit: float
    gross_profit_margin: float

    def to_dict(self) -> dict:
        return {
            "income": round2(self.income),
            "expense": round2(self.expense),
            "rebateReceivable": round2(self.rebate_receivable),
            "rebateForProfitCalc": round2(self.rebate_for_profit_calc),
            "rebateSource": self.rebate_source.value,
            "occupationDays": self.occupation_days,
            "fundsOccupationCost": round2(self.funds_occupation_cost),
            "grossProfit": round2(self.gross_profit),
            "grossProfitMargin": round2(self.gross_profit_margin),
        }


def compute_metrics(
    collaboration: Any,
    project: Any = None,
    capital_rate: Any = None,
    today: Optional[date] = None,
) -> Metrics:
    """计算单条合作的财务指标"""
    if today is None:
        today = report_today()

    amount = to_number(_field(collaboration, "amount"), 0)
    rebate_pct = to_number(_field(collaboration, "rebate"), 0)
    order_type = _field(collaboration, "order_type", "orderType")

    income = compute_income(amount, project_discount(project))
    expense = compute_expense(amount, rebate_pct, order_type)
    receivable = compute_rebate_receivable(amount, rebate_pct, order_type)

    decision = decide_rebate_for_profit(
        to_optional_number(_field(collaboration, "actual_rebate", "actualRebate")),
        receivable,
        _field(project, "status") == ProjectStatus.FINALIZED.value,
    )

    days = compute_occupation_days(
        _field(collaboration, "order_date", "orderDate"),
        _field(collaboration, "payment_date", "paymentDate"),
        today,
    )
    funds_cost = compute_funds_occupation_cost(expense, monthly_rate_percent(capital_rate), days)

    gross_profit = income + decision.value - expense
    margin = safe_ratio(gross_profit, income, 100) if income > 0 else 0.0

    return Metrics(
        income=income,
        expense=expense,
        rebate_receivable=receivable,
        rebate_for_profit_calc=decision.value,
        rebate_source=decision.source,
        occupation_days=days,
        funds_occupation_cost=funds_cost,
        gross_profit=gross_profit,
        gross_profit_margin=margin,
    )


@dataclass(frozen=True)
class ProjectMetrics:
    project_budget: float
    total_collaborators: int
    budget_utilization: float
    total_income: float
    total_rebate_receivable: float
    income_adjustments: float
    total_expense: float
    total_gross_profit: float
    funds_occupation_cost: float
    expense_adjustments: float
    total_operational_cost: float
    pre_adjustment_profit: float
    pre_adjustment_margin: float
    operational_profit: float
    operational_margin: float

    def to_dict(self) -> dict:
        return {
            "projectBudget": round2(self.project_budget),
            "totalCollaborators": self.total_collaborators,
            "budgetUtilization": round2(self.budget_utilization),
            "totalIncome": round2(self.total_income),
            "totalRebateReceivable": round2(self.total_rebate_receivable),
            "incomeAdjustments": round2(self.income_adjustments),
            "totalExpense": round2(self.total_expense),
            "totalGrossProfit": round2(self.total_gross_profit),
            "fundsOccupationCost": round2(self.funds_occupation_cost),
            "expenseAdjustments": round2(self.expense_adjustments),
            "totalOperationalCost": round2(self.total_operational_cost),
            "preAdjustmentProfit": round2(self.pre_adjustment_profit),
            "preAdjustmentMargin": round2(self.pre_adjustment_margin),
            "operationalProfit": round2(self.operational_profit),
            "operationalMargin": round2(self.operational_margin),
        }


def is_aggregate_eligible(collaboration: Any) -> bool:
    """只有已定档 / 已发布的合作参与汇总"""
    return _field(collaboration, "status") in AGGREGATE_STATUSES


def split_adjustments(adjustments: Optional[Iterable[Any]]) -> tuple:
    """返回 (收入调整合计, 支出调整合计的绝对值)"""
    income_adj = 0.0
    expense_adj = 0.0
    for adj in adjustments or []:
        amount = to_number(_field(adj, "amount"), 0)
        if amount > 0:
            income_adj += amount
        elif amount < 0:
            expense_adj += amount
    return income_adj, abs(expense_adj)


def compute_project_rollup(
    collaborations: Iterable[Any],
    project: Any,
    capital_rate: Any = None,
    today: Optional[date] = None,
) -> ProjectMetrics:
    """计算项目汇总指标"""
    if today is None:
        today = report_today()

    eligible = [c for c in collaborations or [] if is_aggregate_eligible(c)]
    per_collab = [compute_metrics(c, project, capital_rate, today) for c in eligible]

    income_sum = sum(m.income for m in per_collab)
    total_expense = sum(m.expense for m in per_collab)
    total_gross_profit = sum(m.gross_profit for m in per_collab)
    funds_cost = sum(m.funds_occupation_cost for m in per_collab)
    total_rebate = sum(m.rebate_for_profit_calc for m in per_collab)

    income_adj, expense_adj = split_adjustments(_field(project, "adjustments"))
    budget = to_number(_field(project, "budget"), 0)

    total_income = income_sum + income_adj
    pre_adjustment_profit = total_gross_profit + income_adj
    operational_profit = pre_adjustment_profit - (expense_adj + funds_cost)

    return ProjectMetrics(
        project_budget=budget,
        total_collaborators=len(eligible),
        budget_utilization=safe_ratio(total_income, budget, 100),
        total_income=total_income,
        total_rebate_receivable=total_rebate,
        income_adjustments=income_adj,
        total_expense=total_expense,
        total_gross_profit=total_gross_profit,
        funds_occupation_cost=funds_cost,
        expense_adjustments=expense_adj,
        total_operational_cost=total_expense + expense_adj + funds_cost,
        pre_adjustment_profit=pre_adjustment_profit,
        pre_adjustment_margin=safe_ratio(pre_adjustment_profit, total_income, 100),
        operational_profit=operational_profit,
        operational_margin=safe_ratio(operational_profit, total_income, 100),
    )
