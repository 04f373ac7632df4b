"""
测试财务指标计算公式
"""
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from kol_app.services.metrics_engine import (
    RebateSource,
    compute_cpm_change,
    compute_daily_cpm,
    compute_expense,
    compute_income,
    compute_metrics,
    compute_occupation_days,
    compute_project_rollup,
    compute_rebate_receivable,
    decide_rebate_for_profit,
    report_today,
    split_adjustments,
)
from kol_app.utils.data_processor import to_date, to_number

TODAY = date(2024, 3, 1)


def _collab(**overrides):
    base = {
        "amount": 10000,
        "rebate": 20,
        "orderType": "original",
        "status": "视频已发布",
        "orderDate": "2024-01-01",
        "paymentDate": "2024-01-11",
    }
    base.update(overrides)
    return base


class TestCoercion:
    """测试字段安全转换"""

    def test_to_number_variants(self):
        assert to_number("12.5") == 12.5
        assert to_number("1,200") == 1200.0
        assert to_number(Decimal("3.30")) == 3.3
        assert to_number(None, 1) == 1
        assert to_number("", 1) == 1
        assert to_number("abc") == 0.0
        assert to_number(float("nan")) == 0.0
        assert to_number(float("inf"), 7) == 7

    def test_to_date_variants(self):
        assert to_date("2024-01-05") == date(2024, 1, 5)
        assert to_date("2024-01-05T10:00:00.000Z") == date(2024, 1, 5)
        assert to_date(datetime(2024, 1, 5, 23, 0)) == date(2024, 1, 5)
        assert to_date(datetime(2024, 1, 5, 23, 0, tzinfo=timezone.utc)) == date(2024, 1, 6)
        assert to_date("not a date") is None
        assert to_date(12345) is None

    def test_to_date_beijing_midnight(self):
        """UTC 16:00 即北京时间次日零点，按业务时区取日期"""
        assert to_date("2023-12-31T16:00:00.000Z") == date(2024, 1, 1)
        assert to_date("2023-12-31T15:59:59Z") == date(2023, 12, 31)
        assert compute_occupation_days("2023-12-31T16:00:00.000Z", "2024-01-11", TODAY) == 10

    def test_report_today_uses_utc8(self):
        """UTC 16:30 在 UTC+8 已经是第二天"""
        now = datetime(2024, 1, 1, 16, 30, tzinfo=timezone.utc)
        assert report_today(now) == date(2024, 1, 2)


class TestFormulas:
    """测试单项公式"""

    @pytest.mark.parametrize("amount,discount", [(0, 1), (10000, 1), (8888, 0.9), (123.45, 0)])
    def test_income(self, amount, discount):
        assert compute_income(amount, discount) == pytest.approx(amount * discount * 1.05)

    def test_original_order(self):
        """原价下单，返点 25%"""
        assert compute_expense(10000, 25, "original") == pytest.approx(10500)
        assert compute_rebate_receivable(10000, 25, "original") == pytest.approx(2500)

    def test_high_rebate_tier(self):
        """非原价下单，返点 25% 超过 20% 档位"""
        assert compute_expense(10000, 25, "other") == pytest.approx(10000 * 0.8 * 1.05)
        assert compute_rebate_receivable(10000, 25, "other") == pytest.approx(500)

    def test_low_rebate_tier(self):
        """非原价下单，返点 10% 不超过档位"""
        assert compute_expense(10000, 10, "other") == pytest.approx(10000 * 0.9 * 1.05)
        assert compute_rebate_receivable(10000, 10, "other") == 0

    def test_rebate_exactly_on_threshold(self):
        assert compute_expense(10000, 20, "other") == pytest.approx(10000 * 0.8 * 1.05)
        assert compute_rebate_receivable(10000, 20, "other") == 0

    def test_rebate_decision(self):
        """实收优先；已终结项目无实收按 0；其余用估算"""
        actual = decide_rebate_for_profit(300, 2000, project_finalized=True)
        assert actual.source == RebateSource.ACTUAL and actual.value == 300

        finalized = decide_rebate_for_profit(None, 2000, project_finalized=True)
        assert finalized.source == RebateSource.NONE and finalized.value == 0

        estimated = decide_rebate_for_profit(None, 2000, project_finalized=False)
        assert estimated.source == RebateSource.ESTIMATED and estimated.value == 2000

    def test_occupation_days(self):
        assert compute_occupation_days("2024-01-01", "2024-01-11", TODAY) == 10
        assert compute_occupation_days("2024-02-20", None, TODAY) == 10
        assert compute_occupation_days(None, "2024-01-11", TODAY) == 0
        assert compute_occupation_days("garbage", None, TODAY) == 0
        # 回款早于下单时不为负
        assert compute_occupation_days("2024-01-11", "2024-01-01", TODAY) == 0

    def test_occupation_days_stable_within_day(self):
        """同一天内多次计算结果一致"""
        morning = report_today(datetime(2024, 3, 1, 0, 5, tzinfo=timezone.utc))
        evening = report_today(datetime(2024, 3, 1, 15, 55, tzinfo=timezone.utc))
        first = compute_occupation_days("2024-02-01", None, morning)
        second = compute_occupation_days("2024-02-01", None, evening)
        assert first == second == 29

    def test_daily_cpm(self):
        assert compute_daily_cpm(10500, 1_000_000) == pytest.approx(10.5)
        assert compute_daily_cpm(0, 5000) == 0
        assert compute_daily_cpm(10500, 0) == 0
        assert compute_daily_cpm(10500, None) == 0

    def test_cpm_change(self):
        assert compute_cpm_change(12.0, None) is None
        assert compute_cpm_change(12.0, 15.0) == pytest.approx(-3.0)


class TestComputeMetrics:
    """测试单条合作的完整指标"""

    def test_reference_scenario(self):
        metrics = compute_metrics(
            _collab(),
            {"discount": 1, "status": "执行中"},
            {"value": 0.7},
            TODAY,
        )
        assert metrics.income == pytest.approx(10500)
        assert metrics.expense == pytest.approx(10500)
        assert metrics.rebate_receivable == pytest.approx(2000)
        assert metrics.rebate_for_profit_calc == pytest.approx(2000)
        assert metrics.rebate_source == RebateSource.ESTIMATED
        assert metrics.occupation_days == 10
        assert metrics.funds_occupation_cost == pytest.approx(24.5)
        assert metrics.gross_profit == pytest.approx(2000)

        data = metrics.to_dict()
        assert data["grossProfitMargin"] == 19.05
        assert data["fundsOccupationCost"] == 24.5
        assert data["rebateSource"] == "estimated"

    def test_missing_project_and_rate_use_defaults(self):
        """缺少项目和资金费率时按折扣 1、月利率 0.7 计算"""
        metrics = compute_metrics(_collab(), None, None, TODAY)
        assert metrics.income == pytest.approx(10500)
        assert metrics.funds_occupation_cost == pytest.approx(24.5)

    def test_finalized_project_without_actual_rebate(self):
        metrics = compute_metrics(_collab(), {"status": "已终结"}, None, TODAY)
        assert metrics.rebate_for_profit_calc == 0
        assert metrics.rebate_source == RebateSource.NONE
        assert metrics.gross_profit == pytest.approx(0)

    def test_actual_rebate_overrides_estimate(self):
        metrics = compute_metrics(_collab(actualRebate="1500"), {"status": "执行中"}, None, TODAY)
        assert metrics.rebate_for_profit_calc == 1500
        assert metrics.gross_profit == pytest.approx(1500)

    def test_blank_actual_rebate_is_absent(self):
        metrics = compute_metrics(_collab(actualRebate=""), {"status": "执行中"}, None, TODAY)
        assert metrics.rebate_source == RebateSource.ESTIMATED

    def test_zero_income_margin(self):
        """收入为 0 时毛利率为 0，不出现 NaN / Inf"""
        metrics = compute_metrics(_collab(amount=0), {"discount": 1}, None, TODAY)
        assert metrics.income == 0
        assert metrics.gross_profit_margin == 0

    def test_malformed_inputs_do_not_raise(self):
        metrics = compute_metrics(
            {"amount": "abc", "rebate": None, "orderDate": "??"},
            {"discount": "x"},
            {"value": ""},
            TODAY,
        )
        assert metrics.income == 0
        assert metrics.occupation_days == 0

    def test_identical_inputs_identical_outputs(self):
        collab = _collab()
        assert compute_metrics(collab, None, None, TODAY) == compute_metrics(collab, None, None, TODAY)


class TestProjectRollup:
    """测试项目汇总"""

    def test_only_confirmed_and_published_count(self):
        collabs = [
            _collab(),
            _collab(status="客户已定档", amount=5000, rebate=10, orderType="modified"),
            _collab(status="negotiating", amount=999999),
        ]
        rollup = compute_project_rollup(collabs, {"discount": 1, "status": "执行中"}, None, TODAY)
        assert rollup.total_collaborators == 2
        assert rollup.total_income == pytest.approx((10000 + 5000) * 1.05)

    def test_negotiating_only_project_is_empty(self):
        rollup = compute_project_rollup([_collab(status="negotiating")], {"budget": 1000}, None, TODAY)
        assert rollup.total_collaborators == 0
        assert rollup.total_income == 0
        assert rollup.budget_utilization == 0
        assert rollup.operational_margin == 0

    def test_adjustments(self):
        assert split_adjustments([{"amount": 300}, {"amount": -200}, {"amount": "-50"}, {"amount": None}]) == (300, 250)

        project = {
            "discount": 1,
            "status": "执行中",
            "budget": 21000,
            "adjustments": [{"amount": 500}, {"amount": -100}],
        }
        rollup = compute_project_rollup([_collab()], project, {"value": 0.7}, TODAY)
        assert rollup.income_adjustments == 500
        assert rollup.expense_adjustments == 100
        assert rollup.total_income == pytest.approx(11000)
        assert rollup.total_rebate_receivable == pytest.approx(2000)
        assert rollup.pre_adjustment_profit == pytest.approx(2500)
        assert rollup.total_operational_cost == pytest.approx(10500 + 100 + 24.5)
        assert rollup.operational_profit == pytest.approx(2500 - 124.5)
        assert rollup.budget_utilization == pytest.approx(11000 / 21000 * 100)

        data = rollup.to_dict()
        assert data["operationalProfit"] == 2375.5
        assert data["preAdjustmentMargin"] == round(2500 / 11000 * 100, 2)
