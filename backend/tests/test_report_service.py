"""
测试日报录入与日报数据
"""
from datetime import date

import pytest

from kol_app.models import Work, WorkDailyStat
from kol_app.schemas.report import DailyStatItem
from kol_app.services.report_service import ReportService, bucket_videos


def _stats(db, collaboration_id):
    db.expire_all()
    work = db.query(Work).filter(Work.collaboration_id == collaboration_id).one()
    return work.daily_stats


class TestSaveDailyStats:
    """测试每日播放量录入"""

    def test_creates_work_and_computes_cpm(self, db, seed):
        result = ReportService(db).save_daily_stats(
            "proj_1", "2024-01-10", [DailyStatItem(collaborationId="collab_1", totalViews=1_000_000)]
        )
        assert result["saved"] == 1
        stats = _stats(db, "collab_1")
        assert len(stats) == 1
        assert stats[0].cpm == pytest.approx(10.5)
        assert stats[0].cpm_change is None

    def test_resave_same_date_overwrites(self, db, seed):
        """同一天重复提交：条数不变，数值被覆盖"""
        service = ReportService(db)
        service.save_daily_stats("proj_1", "2024-01-10", [DailyStatItem(collaborationId="collab_1", totalViews=500_000)])
        service.save_daily_stats("proj_1", "2024-01-10", [DailyStatItem(collaborationId="collab_1", totalViews=1_000_000)])

        stats = _stats(db, "collab_1")
        assert len(stats) == 1
        assert stats[0].total_views == 1_000_000
        assert db.query(WorkDailyStat).count() == 1

    def test_duplicate_collaboration_in_one_batch(self, db, seed):
        """同一批次内同一合作出现两次：不报错，后一条生效"""
        result = ReportService(db).save_daily_stats(
            "proj_1",
            "2024-01-10",
            [
                DailyStatItem(collaborationId="collab_1", totalViews=1000),
                DailyStatItem(collaborationId="collab_1", totalViews=2000),
            ],
        )
        assert result["saved"] == 2
        stats = _stats(db, "collab_1")
        assert len(stats) == 1
        assert stats[0].total_views == 2000
        assert db.query(WorkDailyStat).count() == 1

    def test_series_sorted_and_cpm_change(self, db, seed):
        service = ReportService(db)
        service.save_daily_stats("proj_1", "2024-01-11", [DailyStatItem(collaborationId="collab_1", totalViews=1_050_000)])
        service.save_daily_stats("proj_1", "2024-01-10", [DailyStatItem(collaborationId="collab_1", totalViews=1_000_000)])
        # 重新录入 11 号，此时前一天已有数据
        service.save_daily_stats("proj_1", "2024-01-11", [DailyStatItem(collaborationId="collab_1", totalViews=2_100_000)])

        stats = _stats(db, "collab_1")
        assert [s.date for s in stats] == [date(2024, 1, 10), date(2024, 1, 11)]
        assert stats[1].cpm == pytest.approx(5.0)
        assert stats[1].cpm_change == pytest.approx(5.0 - 10.5)

    def test_zero_views_gives_zero_cpm(self, db, seed):
        ReportService(db).save_daily_stats("proj_1", "2024-01-10", [DailyStatItem(collaborationId="collab_1", totalViews=0)])
        assert _stats(db, "collab_1")[0].cpm == 0

    def test_unknown_collaboration_is_skipped(self, db, seed):
        result = ReportService(db).save_daily_stats(
            "proj_1", "2024-01-10", [DailyStatItem(collaborationId="missing", totalViews=10)]
        )
        assert result["saved"] == 0
        assert result["skipped"] == ["missing"]

    def test_bad_date_rejected(self, db, seed):
        with pytest.raises(ValueError):
            ReportService(db).save_daily_stats("proj_1", "10/01/2024", [])

    def test_milestones_marked(self, db, seed):
        """发布日 2024-01-05，录入 T+7 之后的数据会记录 T+7 更新时间"""
        ReportService(db).save_daily_stats("proj_1", "2024-01-13", [DailyStatItem(collaborationId="collab_1", totalViews=1)])
        db.expire_all()
        work = db.query(Work).filter(Work.collaboration_id == "collab_1").one()
        assert work.t7_stats_updated_at is not None
        assert work.t21_stats_updated_at is None


class TestReportData:
    """测试日报查询"""

    def test_report_overview_and_buckets(self, db, seed):
        service = ReportService(db)
        service.save_daily_stats("proj_1", "2024-01-10", [DailyStatItem(collaborationId="collab_1", totalViews=1_000_000)])

        report = service.get_report_data("proj_1", "2024-01-10")
        overview = report["overview"]
        assert overview["totalTalents"] == 1
        assert overview["publishedVideos"] == 1
        assert overview["totalAmount"] == 10500
        assert overview["totalViews"] == 1_000_000
        assert overview["averageCPM"] == 10.5
        assert len(report["details"]["goodVideos"]) == 1
        assert report["missingDataVideos"] == []

    def test_missing_data_for_day(self, db, seed):
        report = ReportService(db).get_report_data("proj_1", "2024-01-10")
        assert [v["collaborationId"] for v in report["missingDataVideos"]] == ["collab_1"]

    def test_unknown_project(self, db):
        assert ReportService(db).get_report_data("nope", "2024-01-10") == {
            "overview": {}, "details": {}, "missingDataVideos": []
        }

    def test_videos_for_entry(self, db, seed):
        service = ReportService(db)
        assert service.get_videos_for_entry("proj_1", "2024-01-10")[0]["totalViews"] is None
        service.save_daily_stats("proj_1", "2024-01-10", [DailyStatItem(collaborationId="collab_1", totalViews=42)])
        rows = service.get_videos_for_entry("proj_1", "2024-01-10")
        # 洽谈中的合作不出现
        assert [r["collaborationId"] for r in rows] == ["collab_1"]
        assert rows[0]["totalViews"] == 42

    def test_report_solution(self, db, seed):
        service = ReportService(db)
        assert service.save_report_solution("collab_1", "2024-01-10", "加投")["updated"] is False
        service.save_daily_stats("proj_1", "2024-01-10", [DailyStatItem(collaborationId="collab_1", totalViews=42)])
        assert service.save_report_solution("collab_1", "2024-01-10", "加投")["updated"] is True
        assert _stats(db, "collab_1")[0].solution == "加投"

    def test_bucket_boundaries(self):
        videos = [
            {"totalViews": 20_000_000, "cpm": 5},
            {"totalViews": 1, "cpm": 20},
            {"totalViews": 1, "cpm": 40},
            {"totalViews": 1, "cpm": 100},
        ]
        buckets = bucket_videos(videos)
        assert len(buckets["hotVideos"]) == 1
        assert len(buckets["goodVideos"]) == 1
        assert len(buckets["normalVideos"]) == 1
        assert len(buckets["badVideos"]) == 1
        assert len(buckets["worstVideos"]) == 1
