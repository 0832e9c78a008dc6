"""Tests for the HTTP layer around the decision engine."""

import asyncio
import inspect
from datetime import date, timedelta

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient

from app import main
from app.db.database import get_db
from app.db.leave_store import LeaveStore, SqlLeaveSource
from app.main import ApplyLeaveBody, app, apply_leave, get_decision_engine
from app.policy.decision import LeaveDecisionEngine

from conftest import FakeLeaveSource, add_leave, add_project, add_task


def day(offset: int) -> str:
    return (date.today() + timedelta(days=offset)).isoformat()


@pytest.fixture
def client(session_factory, seeded):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    def override_engine():
        source = SqlLeaveSource(session_factory)
        return LeaveDecisionEngine(source, source)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_decision_engine] = override_engine
    yield TestClient(app)
    app.dependency_overrides.clear()


def as_user(user_id):
    return {"X-User-Id": str(user_id)}


class TestService:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_missing_identity(self, client):
        assert client.get("/leaves/my").status_code == 401

    def test_unknown_identity(self, client):
        assert client.get("/leaves/my", headers=as_user(999)).status_code == 401


class TestApplyLeave:
    def test_short_leave_auto_approved(self, client, seeded):
        response = client.post(
            "/leaves/apply",
            json={"startDate": day(1), "endDate": day(1), "reason": "Dentist"},
            headers=as_user(seeded["alice"]),
        )

        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "AUTO_APPROVED"
        assert body["impactScore"] == 0
        assert body["teamAbsence"] == 0
        assert "reason" not in body
        assert isinstance(body["leaveId"], int)

    def test_high_workload_rejected_and_recorded(self, client, db, seeded):
        add_task(db, seeded["alice"], date.today() + timedelta(days=2), 16)

        response = client.post(
            "/leaves/apply",
            json={"startDate": day(1), "endDate": day(3), "reason": "Trip"},
            headers=as_user(seeded["alice"]),
        )

        assert response.status_code == 201
        assert response.json()["status"] == "AUTO_REJECTED"
        assert response.json()["reason"] == "High workload impact: 0.67"

        history = client.get("/leaves/my", headers=as_user(seeded["alice"])).json()
        assert history["count"] == 1
        assert history["leaves"][0]["status"] == "AUTO_REJECTED"

    def test_past_leave_rejected(self, client, seeded):
        response = client.post(
            "/leaves/apply",
            json={"startDate": day(-2), "endDate": day(-1), "reason": "Late filing"},
            headers=as_user(seeded["alice"]),
        )

        assert response.json()["reason"] == "Cannot apply for leave in the past"

    def test_overlapping_request_refused(self, client, db, seeded):
        start = date.today() + timedelta(days=5)
        add_leave(db, seeded["alice"], seeded["team"], start, start, "PENDING_MANAGER_REVIEW")

        response = client.post(
            "/leaves/apply",
            json={"startDate": day(4), "endDate": day(6), "reason": "Trip"},
            headers=as_user(seeded["alice"]),
        )

        assert response.status_code == 400

    @pytest.mark.parametrize("payload", [
        {"startDate": day(1), "endDate": day(2)},
        {"startDate": "2026-02-30", "endDate": day(2), "reason": "x"},
        {"startDate": day(3), "endDate": day(2), "reason": "x"},
    ])
    def test_invalid_input_is_client_error(self, client, seeded, payload):
        response = client.post("/leaves/apply", json=payload, headers=as_user(seeded["alice"]))
        assert response.status_code == 400

    def test_data_failure_is_server_error(self, client, seeded):
        source = FakeLeaveSource(task_error=ConnectionError("db down"))
        app.dependency_overrides[get_decision_engine] = lambda: LeaveDecisionEngine(source, source)

        response = client.post(
            "/leaves/apply",
            json={"startDate": day(1), "endDate": day(1), "reason": "Dentist"},
            headers=as_user(seeded["alice"]),
        )

        assert response.status_code == 503
        history = client.get("/leaves/my", headers=as_user(seeded["alice"])).json()
        assert history["count"] == 0


class TestPreview:
    def test_preview_metrics(self, client, db, seeded):
        start = date.today() + timedelta(days=1)
        add_leave(db, seeded["bob"], seeded["team"], start, start, "APPROVED")
        add_task(db, seeded["alice"], start, 8)

        response = client.post(
            "/leaves/preview",
            json={"startDate": day(1), "endDate": day(2)},
            headers=as_user(seeded["alice"]),
        )

        assert response.status_code == 200
        body = response.json()
        assert body["leaveDays"] == 2
        assert body["impactScore"] == 0.5
        assert body["teamAbsence"] == 25.0

    def test_preview_reversed_range(self, client, seeded):
        response = client.post(
            "/leaves/preview",
            json={"startDate": day(3), "endDate": day(1)},
            headers=as_user(seeded["alice"]),
        )
        assert response.status_code == 400


class TestManagerOverride:
    @pytest.fixture
    def pending_leave(self, db, seeded):
        start = date.today() + timedelta(days=10)
        return add_leave(db, seeded["alice"], seeded["team"], start, start, "PENDING_MANAGER_REVIEW").id

    def test_manager_approves(self, client, seeded, pending_leave):
        response = client.patch(
            f"/leaves/{pending_leave}/status",
            json={"status": "APPROVED", "managerNote": "Fine"},
            headers=as_user(seeded["manager"]),
        )

        assert response.status_code == 200
        assert response.json() == {"message": "Leave approved successfully", "leaveId": pending_leave, "status": "APPROVED"}

        leaves = client.get("/leaves/my", headers=as_user(seeded["alice"])).json()["leaves"]
        assert leaves[0]["status"] == "APPROVED"
        assert leaves[0]["managerNote"] == "Fine"

    def test_employee_cannot_decide(self, client, seeded, pending_leave):
        response = client.patch(
            f"/leaves/{pending_leave}/status", json={"status": "APPROVED"}, headers=as_user(seeded["bob"])
        )
        assert response.status_code == 403

    def test_manager_of_other_team_cannot_decide(self, client, seeded, pending_leave):
        response = client.patch(
            f"/leaves/{pending_leave}/status", json={"status": "REJECTED"}, headers=as_user(seeded["outsider"])
        )
        assert response.status_code == 403

    def test_only_terminal_statuses(self, client, seeded, pending_leave):
        response = client.patch(
            f"/leaves/{pending_leave}/status", json={"status": "AUTO_APPROVED"}, headers=as_user(seeded["manager"])
        )
        assert response.status_code == 400

    def test_missing_leave(self, client, seeded):
        response = client.patch(
            "/leaves/9999/status", json={"status": "APPROVED"}, headers=as_user(seeded["manager"])
        )
        assert response.status_code == 404


class TestTeam:
    def test_team_info(self, client, db, seeded):
        add_leave(db, seeded["bob"], seeded["team"], date.today(), date.today(), "AUTO_APPROVED")

        body = client.get("/team/info", headers=as_user(seeded["alice"])).json()

        assert body["team"]["name"] == "Platform"
        assert body["statistics"] == {"totalMembers": 4, "activeLeaves": 1}

    def test_team_members(self, client, seeded):
        body = client.get("/team/members", headers=as_user(seeded["alice"])).json()

        assert body["count"] == 4
        assert body["teamId"] == seeded["team"]
        assert "email" in body["members"][0]

    def test_my_team(self, client, seeded):
        body = client.get("/team/my-team", headers=as_user(seeded["bob"])).json()

        assert body == {
            "team": {"id": seeded["team"], "name": "Platform", "description": "Core services"},
            "memberCount": 4,
            "myUserId": seeded["bob"],
        }

    def test_my_team_without_team(self, client, db, seeded):
        user = LeaveStore(db).get_user(seeded["carol"])
        user.team_id = None
        db.commit()

        assert client.get("/team/my-team", headers=as_user(seeded["carol"])).status_code == 404


class TestProjects:
    @pytest.fixture
    def projects(self, db, seeded):
        soon = date.today() + timedelta(days=7)
        later = date.today() + timedelta(days=30)
        billing = add_project(db, seeded["team"], "Billing", later)
        search = add_project(db, seeded["team"], "Search", soon)
        brand = add_project(db, seeded["other_team"], "Brand refresh", soon)
        add_task(db, seeded["alice"], soon, 5, title="Index", project_id=search.id)
        add_task(db, seeded["alice"], soon, 3, status="DONE", title="Spec", project_id=search.id)
        return {"billing": billing.id, "search": search.id, "brand": brand.id}

    def test_my_projects(self, client, seeded, projects):
        body = client.get("/projects/my-projects", headers=as_user(seeded["alice"])).json()

        assert body["count"] == 2
        search, billing = body["projects"]
        assert search["name"] == "Search"
        assert search["myTasks"] == {"total": 2, "pending": 1, "pendingHours": 5.0}
        assert billing["myTasks"] == {"total": 0, "pending": 0, "pendingHours": 0}

    def test_deadlines(self, client, seeded, projects):
        body = client.get("/projects/deadlines", headers=as_user(seeded["alice"])).json()

        assert body["count"] == 2
        assert body["deadlines"][0]["projectName"] == "Search"
        assert body["deadlines"][0]["myTaskCount"] == 2
        assert body["deadlines"][0]["pendingHours"] == 5.0

    def test_project_detail_lists_own_tasks(self, client, seeded, projects):
        response = client.get(f"/projects/{projects['search']}", headers=as_user(seeded["alice"]))

        assert response.status_code == 200
        project = response.json()["project"]
        assert project["name"] == "Search"
        assert [t["title"] for t in project["myTasks"]] == ["Index", "Spec"]

    def test_other_team_project_forbidden(self, client, seeded, projects):
        response = client.get(f"/projects/{projects['brand']}", headers=as_user(seeded["alice"]))

        assert response.status_code == 403
        assert response.json()["detail"] == "Access denied: You are not part of this project"

    def test_missing_project(self, client, seeded):
        assert client.get("/projects/9999", headers=as_user(seeded["alice"])).status_code == 404


class TestConcurrentApply:
    @pytest.mark.asyncio
    async def test_same_user_double_submit_stores_one_leave(self, session_factory, seeded):
        """Two overlapping submissions in flight at once: one stored, one refused."""
        start = day(3)
        sessions = [session_factory(), session_factory()]
        try:
            async def submit(session):
                store = LeaveStore(session)
                source = SqlLeaveSource(session_factory)
                return await apply_leave(
                    ApplyLeaveBody(startDate=start, endDate=start, reason="Dentist"),
                    store.get_user(seeded["alice"]),
                    store,
                    LeaveDecisionEngine(source, source),
                )

            results = await asyncio.gather(*(submit(s) for s in sessions), return_exceptions=True)
        finally:
            for session in sessions:
                session.close()

        stored = [r for r in results if isinstance(r, dict)]
        refused = [r for r in results if isinstance(r, HTTPException)]
        assert len(stored) == 1
        assert stored[0]["status"] == "AUTO_APPROVED"
        assert len(refused) == 1
        assert refused[0].status_code == 400

        check = session_factory()
        try:
            assert len(LeaveStore(check).get_leaves_by_user(seeded["alice"])) == 1
        finally:
            check.close()
        assert len(main.apply_locks) == 0

    @pytest.mark.asyncio
    async def test_different_users_do_not_wait_on_each_other(self):
        locks = main.UserLocks()
        async with locks.hold(1):
            async with locks.hold(2):
                assert len(locks) == 2
        assert len(locks) == 0


class TestRequestLayerWiring:
    def test_policy_config_loaded_once(self):
        assert get_decision_engine().config is main.policy_config
        assert get_decision_engine().config is get_decision_engine().config

    @pytest.mark.parametrize("route", [
        main.my_leaves,
        main.update_leave_status,
        main.my_team,
        main.team_info,
        main.team_members,
        main.my_projects,
        main.project_deadlines,
        main.project_detail,
    ])
    def test_database_only_routes_run_in_threadpool(self, route):
        assert not inspect.iscoroutinefunction(route)
