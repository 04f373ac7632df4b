"""
测试 HTTP 接口（合作记录 / 项目 / 日报 / 分析）
"""
from kol_app.models import Collaboration, Project, Work


class TestCollaboratorsApi:
    """测试合作记录接口"""

    def test_global_scan_requires_opt_in(self, client, seed):
        resp = client.get("/api/collaborators")
        assert resp.status_code == 400

        resp = client.get("/api/collaborators", params={"allow_global": "true"})
        assert resp.status_code == 200
        assert resp.json()["total"] == 2

    def test_simple_view_has_no_guard(self, client, seed):
        resp = client.get("/api/collaborators", params={"view": "simple"})
        assert resp.status_code == 200
        assert {row["id"] for row in resp.json()["data"]} == {"collab_1", "collab_2"}

    def test_single_collaboration_with_metrics(self, client, seed):
        resp = client.get("/api/collaborators", params={"collaboration_id": "collab_1"})
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["talentInfo"]["nickname"] == "小鱼"
        assert data["metrics"]["income"] == 10500
        assert data["metrics"]["occupationDays"] == 10
        assert data["metrics"]["grossProfitMargin"] == 19.05

    def test_single_collaboration_not_found(self, client, seed):
        resp = client.get("/api/collaborators", params={"collaboration_id": "nope"})
        assert resp.status_code == 404

    def test_sort_by_metric(self, client, seed):
        resp = client.get("/api/collaborators", params={"project_id": "proj_1", "sort_by": "income", "order": "asc"})
        ids = [row["id"] for row in resp.json()["data"]]
        assert ids == ["collab_2", "collab_1"]

    def test_update_requires_fields(self, client, seed):
        resp = client.put("/api/collaborators", json={"id": "collab_1"})
        assert resp.status_code == 400

    def test_update_unknown_id(self, client, seed):
        resp = client.put("/api/collaborators", json={"id": "nope", "amount": 1})
        assert resp.status_code == 404

    def test_update_ignores_unknown_fields(self, client, db, seed):
        resp = client.put("/api/collaborators", json={"id": "collab_2", "projectId": "hijack", "amount": "9000"})
        assert resp.status_code == 200
        db.expire_all()
        collab = db.get(Collaboration, "collab_2")
        assert collab.project_id == "proj_1"
        assert float(collab.amount) == 9000

    def test_publish_date_marks_published_and_creates_work(self, client, db, seed):
        resp = client.put("/api/collaborators", json={"id": "collab_2", "publishDate": "2024-02-01"})
        assert resp.status_code == 200
        db.expire_all()
        collab = db.get(Collaboration, "collab_2")
        assert collab.status == "视频已发布"
        assert db.query(Work).filter(Work.collaboration_id == "collab_2").count() == 1

        # 再次更新不会重复建作品
        client.put("/api/collaborators", json={"id": "collab_2", "videoId": "v123"})
        assert db.query(Work).filter(Work.collaboration_id == "collab_2").count() == 1

    def test_explicit_status_wins(self, client, db, seed):
        client.put("/api/collaborators", json={"id": "collab_2", "publishDate": "2024-02-01", "status": "客户已定档"})
        db.expire_all()
        assert db.get(Collaboration, "collab_2").status == "客户已定档"

    def test_rebate_fields_stamp_and_clear(self, client, db, seed):
        client.put("/api/collaborators", json={"id": "collab_1", "actualRebate": 1800})
        db.expire_all()
        collab = db.get(Collaboration, "collab_1")
        assert float(collab.actual_rebate) == 1800
        assert collab.discrepancy_reason_updated_at is not None

        client.put("/api/collaborators", json={"id": "collab_1", "actualRebate": None})
        db.expire_all()
        collab = db.get(Collaboration, "collab_1")
        assert collab.actual_rebate is None
        assert collab.discrepancy_reason_updated_at is None

    def test_bad_date_rejected(self, client, seed):
        resp = client.put("/api/collaborators", json={"id": "collab_1", "orderDate": "yesterday"})
        assert resp.status_code == 400


class TestProjectsApi:
    """测试项目接口"""

    def test_project_with_rollup(self, client, seed):
        resp = client.get("/api/projects", params={"project_id": "proj_1"})
        assert resp.status_code == 200
        metrics = resp.json()["data"]["metrics"]
        # 洽谈中的合作不参与汇总
        assert metrics["totalCollaborators"] == 1
        assert metrics["totalIncome"] == 10500
        assert metrics["budgetUtilization"] == 21.0

    def test_project_list_and_simple(self, client, seed):
        body = client.get("/api/projects").json()
        assert body["count"] == 1
        simple = client.get("/api/projects", params={"view": "simple"}).json()["data"]
        assert simple == [{"id": "proj_1", "name": "春季新品", "status": "执行中"}]

    def test_project_not_found(self, client, seed):
        assert client.get("/api/projects", params={"project_id": "nope"}).status_code == 404

    def test_status_change_writes_audit_log(self, client, db, seed):
        resp = client.put("/api/projects", json={"id": "proj_1", "status": "待结算"})
        assert resp.status_code == 200
        db.expire_all()
        project = db.get(Project, "proj_1")
        assert project.status == "待结算"
        assert project.audit_log[0]["user"] == "System"
        assert project.audit_log[0]["action"] == "项目状态由人工变更为: 待结算"

    def test_update_coercion(self, client, db, seed):
        resp = client.put(
            "/api/projects",
            json={"id": "proj_1", "benchmarkCPM": "12.5", "trackingEnabled": "true", "year": 2024},
        )
        assert resp.status_code == 200
        db.expire_all()
        project = db.get(Project, "proj_1")
        assert float(project.benchmark_cpm) == 12.5
        assert project.tracking_enabled is True
        assert project.year == "2024"
        assert project.audit_log == []

    def test_update_unknown_project(self, client, seed):
        assert client.put("/api/projects", json={"id": "nope", "name": "x"}).status_code == 404


class TestReportsApi:
    """测试日报接口"""

    def test_save_then_read(self, client, seed):
        resp = client.post(
            "/api/reports/daily-stats",
            json={"projectId": "proj_1", "date": "2024-01-10", "data": [{"collaborationId": "collab_1", "totalViews": 1000000}]},
        )
        assert resp.status_code == 200
        assert resp.json()["saved"] == 1

        report = client.get("/api/reports/project-report", params={"project_id": "proj_1", "date": "2024-01-10"}).json()
        assert report["data"]["overview"]["averageCPM"] == 10.5

    def test_duplicate_rows_last_wins(self, client, seed):
        resp = client.post(
            "/api/reports/daily-stats",
            json={
                "projectId": "proj_1",
                "date": "2024-01-10",
                "data": [
                    {"collaborationId": "collab_1", "totalViews": 1000},
                    {"collaborationId": "collab_1", "totalViews": 1000000},
                ],
            },
        )
        assert resp.status_code == 200

        report = client.get("/api/reports/project-report", params={"project_id": "proj_1", "date": "2024-01-10"}).json()
        assert report["data"]["overview"]["totalViews"] == 1000000

    def test_negative_views_rejected(self, client, seed):
        resp = client.post(
            "/api/reports/daily-stats",
            json={"projectId": "proj_1", "date": "2024-01-10", "data": [{"collaborationId": "collab_1", "totalViews": -1}]},
        )
        assert resp.status_code == 422

    def test_bad_date(self, client, seed):
        resp = client.get("/api/reports/project-report", params={"project_id": "proj_1", "date": "bad"})
        assert resp.status_code == 400


class TestAnalysisApi:
    """测试经营分析接口"""

    def test_analysis_payload(self, client, seed):
        resp = client.post("/api/analysis", json={"filters": {"year": "2024"}})
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["availableFilters"] == {"years": ["2024"], "projectTypes": ["品牌"]}
        assert data["kpiSummary"]["totalCollaborations"] == 1
        assert data["topTalents"][0]["talentName"] == "小鱼"

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok"}
