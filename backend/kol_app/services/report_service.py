"""
项目日报服务

- 每日播放量录入：按 (作品, 日期) 覆盖写入，重复提交同一天不会产生重复记录
- 日报数据：总览 KPI、按 CPM 分档的视频明细、当日缺数据的视频
"""
import logging
from datetime import date, timedelta
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from kol_app.models.collaboration import AGGREGATE_STATUSES, Collaboration, CollaborationStatus
from kol_app.models.project import Project
from kol_app.models.talent import Talent
from kol_app.models.work import Work, WorkDailyStat, new_work_id
from kol_app.schemas.report import DailyStatItem
from kol_app.services.metrics_engine import (
    collaboration_income,
    compute_cpm_change,
    compute_daily_cpm,
    report_today,
)
from kol_app.utils.data_processor import round2, safe_ratio, to_date, utc_now

logger = logging.getLogger(__name__)

UNKNOWN_TALENT = "未知达人"
HOT_VIDEO_VIEWS = 10_000_000
T7_DAYS = 7
T21_DAYS = 21


def parse_report_date(value: Optional[str]) -> date:
    """日报日期，缺省为业务时区的今天"""
    if not value:
        return report_today()
    parsed = to_date(value)
    if parsed is None:
        raise ValueError("日期格式错误，请使用YYYY-MM-DD")
    return parsed


def bucket_videos(videos: List[dict]) -> Dict[str, List[dict]]:
    """按播放量 / CPM 分档（爆款与 CPM 档位可以重叠）"""
    return {
        "hotVideos": [v for v in videos if (v["totalViews"] or 0) > HOT_VIDEO_VIEWS],
        "goodVideos": [v for v in videos if v["cpm"] < 20],
        "normalVideos": [v for v in videos if 20 <= v["cpm"] < 40],
        "badVideos": [v for v in videos if 40 <= v["cpm"] < 100],
        "worstVideos": [v for v in videos if v["cpm"] >= 100],
    }


class ReportService:
    """日报服务类"""

    def __init__(self, db: Session):
        self.db = db

    def _talent_names(self, talent_ids) -> Dict[str, str]:
        ids = list(set(talent_ids))
        if not ids:
            return {}
        return {t.id: t.nickname for t in self.db.query(Talent).filter(Talent.id.in_(ids)).all()}

    def _works_by_collaboration(self, collaboration_ids) -> Dict[str, Work]:
        ids = list(collaboration_ids)
        if not ids:
            return {}
        works = self.db.query(Work).filter(Work.collaboration_id.in_(ids)).all()
        return {w.collaboration_id: w for w in works}

    def save_daily_stats(self, project_id: str, date_str: str, items: List[DailyStatItem]) -> dict:
        """
        保存某天的播放量并计算 CPM

        同一 (作品, 日期) 先删后插，整批在一个事务内提交
        """
        day = parse_report_date(date_str)
        yesterday = day - timedelta(days=1)

        project = self.db.query(Project).filter(Project.id == project_id).first()
        ids = [item.collaboration_id for item in items]
        collaborations = {
            c.id: c for c in self.db.query(Collaboration).filter(Collaboration.id.in_(ids)).all()
        } if ids else {}
        works = self._works_by_collaboration(ids)

        saved = 0
        skipped = []
        try:
            for item in items:
                collaboration = collaborations.get(item.collaboration_id)
                if collaboration is None:
                    skipped.append(item.collaboration_id)
                    continue

                work = works.get(collaboration.id)
                if work is None:
                    work = Work(
                        id=new_work_id(),
                        collaboration_id=collaboration.id,
                        project_id=collaboration.project_id,
                        talent_id=collaboration.talent_id,
                        source_type="COLLABORATION",
                    )
                    self.db.add(work)
                    self.db.flush()
                    works[collaboration.id] = work

                income = collaboration_income(collaboration, project)
                cpm = compute_daily_cpm(income, item.total_views)

                previous = self.db.query(WorkDailyStat).filter(
                    WorkDailyStat.work_id == work.id,
                    WorkDailyStat.date == yesterday,
                ).first()
                cpm_change = compute_cpm_change(cpm, previous.cpm if previous else None)

                existing = self.db.query(WorkDailyStat).filter(
                    WorkDailyStat.work_id == work.id,
                    WorkDailyStat.date == day,
                ).first()
                if existing is not None:
                    self.db.delete(existing)
                    self.db.flush()

                self.db.add(WorkDailyStat(
                    work_id=work.id,
                    date=day,
                    total_views=item.total_views,
                    cpm=cpm,
                    cpm_change=cpm_change,
                    solution="",
                ))
                # 同一批次重复出现的合作需要在下一轮查询中可见，后出现的覆盖先出现的
                self.db.flush()
                self._mark_milestones(work, collaboration, day)
                saved += 1

            self.db.commit()
        except Exception:
            self.db.rollback()
            logger.error(f"保存日报数据失败: project={project_id}, date={day}", exc_info=True)
            raise

        if skipped:
            logger.warning(f"日报录入跳过不存在的合作: {skipped}")
        logger.info(f"日报数据已保存: project={project_id}, date={day}, saved={saved}")
        return {"message": "数据保存成功", "saved": saved, "skipped": skipped}

    def _mark_milestones(self, work: Work, collaboration: Collaboration, day: date):
        """录入日期达到发布后 T+7 / T+21 时记录数据更新时间"""
        publish_date = collaboration.publish_date
        if publish_date is None:
            return
        elapsed = (day - publish_date).days
        now = utc_now()
        if elapsed >= T7_DAYS:
            work.t7_stats_updated_at = now
        if elapsed >= T21_DAYS:
            work.t21_stats_updated_at = now

    def get_report_data(self, project_id: str, date_str: Optional[str] = None) -> dict:
        day = parse_report_date(date_str)
        yesterday = day - timedelta(days=1)

        project = self.db.query(Project).filter(Project.id == project_id).first()
        if project is None:
            return {"overview": {}, "details": {}, "missingDataVideos": []}

        scheduled = self.db.query(Collaboration).filter(
            Collaboration.project_id == project_id,
            Collaboration.status.in_(AGGREGATE_STATUSES),
        ).all()
        published = [c for c in scheduled if c.status == CollaborationStatus.PUBLISHED.value]
        total_talents = len({c.talent_id for c in scheduled})

        if not published:
            return {
                "overview": {
                    "totalTalents": total_talents,
                    "publishedVideos": 0,
                    "totalAmount": 0,
                    "totalViews": 0,
                    "averageCPM": 0,
                },
                "details": {},
                "missingDataVideos": [],
            }

        talent_names = self._talent_names(c.talent_id for c in scheduled)
        works = self._works_by_collaboration(c.id for c in published)

        report_videos = []
        overall_total_views = 0
        with_data_today = set()
        for collaboration in published:
            work = works.get(collaboration.id)
            if work is None or not work.daily_stats:
                continue
            stats_by_date = {s.date: s for s in work.daily_stats}

            # 截至当日最近一次的累计播放量
            relevant = [s for s in work.daily_stats if s.date <= day]
            if relevant:
                overall_total_views += max(relevant, key=lambda s: s.date).total_views or 0

            day_stat = stats_by_date.get(day)
            if day_stat is None:
                continue
            with_data_today.add(collaboration.id)
            previous = stats_by_date.get(yesterday)
            report_videos.append({
                "talentName": talent_names.get(collaboration.talent_id, UNKNOWN_TALENT),
                "publishDate": collaboration.publish_date.isoformat() if collaboration.publish_date else None,
                "totalViews": day_stat.total_views,
                "cpm": round2(day_stat.cpm),
                "cpmChange": round2(compute_cpm_change(day_stat.cpm, previous.cpm if previous else None)),
                "solution": day_stat.solution or "",
                "collaborationId": collaboration.id,
            })

        missing = [
            {
                "collaborationId": c.id,
                "talentName": talent_names.get(c.talent_id, UNKNOWN_TALENT),
            }
            for c in published
            if c.id not in with_data_today
        ]

        total_amount = sum(collaboration_income(c, project) for c in published)
        overview = {
            "totalTalents": total_talents,
            "publishedVideos": len(published),
            "totalAmount": round2(total_amount),
            "totalViews": sum(v["totalViews"] or 0 for v in report_videos),
            "averageCPM": round2(safe_ratio(total_amount, overall_total_views, 1000)),
        }
        return {"overview": overview, "details": bucket_videos(report_videos), "missingDataVideos": missing}

    def get_videos_for_entry(self, project_id: str, date_str: Optional[str] = None) -> List[dict]:
        day = parse_report_date(date_str)
        collaborations = self.db.query(Collaboration).filter(
            Collaboration.project_id == project_id,
            Collaboration.status.in_(AGGREGATE_STATUSES),
        ).all()
        if not collaborations:
            return []

        talent_names = self._talent_names(c.talent_id for c in collaborations)
        works = self._works_by_collaboration(c.id for c in collaborations)

        result = []
        for c in collaborations:
            work = works.get(c.id)
            stat = next((s for s in work.daily_stats if s.date == day), None) if work else None
            result.append({
                "collaborationId": c.id,
                "talentName": talent_names.get(c.talent_id, UNKNOWN_TALENT),
                "publishDate": c.publish_date.isoformat() if c.publish_date else None,
                "totalViews": stat.total_views if stat else None,
            })
        return result

    def save_report_solution(self, collaboration_id: str, date_str: str, solution: str) -> dict:
        day = parse_report_date(date_str)
        stat = self.db.query(WorkDailyStat).join(Work).filter(
            Work.collaboration_id == collaboration_id,
            WorkDailyStat.date == day,
        ).first()
        if stat is None:
            return {"message": "当日没有数据记录，未保存", "updated": False}

        stat.solution = solution
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            logger.error(f"保存解决方案失败: {collaboration_id} {day}", exc_info=True)
            raise
        return {"message": "解决方案已保存", "updated": True}
