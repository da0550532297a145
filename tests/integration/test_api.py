"""
Integration tests for the administrative API.
"""

from datetime import datetime, timedelta, timezone

from httpx import AsyncClient

from cronlease.constants import JobStatus
from cronlease.utils import utcnow


class TestHealthEndpoints:
    """Tests for health check endpoints."""

    async def test_health_check(self, client: AsyncClient):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    async def test_readiness_check(self, client: AsyncClient):
        response = await client.get("/ready")

        assert response.status_code == 200

    async def test_metrics(self, client: AsyncClient, make_job):
        await make_job()

        response = await client.get("/metrics")

        assert response.status_code == 200
        assert "leases_reclaimed_total" in response.text
        assert 'jobs_by_status{status="waiting"}' in response.text


class TestCreateJob:
    """Tests for POST /v1/jobs."""

    async def test_create_job_success(self, client: AsyncClient):
        response = await client.post(
            "/v1/jobs",
            json={
                "name": "hourly-sync",
                "executor": "echo",
                "expression": "0 * * * *",
                "config": {"message": "hello"},
            },
        )

        assert response.status_code == 201
        data = response.json()
        assert data["name"] == "hourly-sync"
        assert data["status"] == JobStatus.WAITING
        assert data["version"] == 0
        assert data["config"] == {"message": "hello"}
        next_due = datetime.fromisoformat(data["next_due_at"])
        assert next_due > utcnow()
        assert next_due.minute == 0

    async def test_create_job_with_explicit_due_time(self, client: AsyncClient):
        response = await client.post(
            "/v1/jobs",
            json={
                "name": "one-off",
                "executor": "echo",
                "expression": "@every 1d",
                "next_due_at": "2026-03-01T12:00:00",
            },
        )

        assert response.status_code == 201
        assert response.json()["next_due_at"] == "2026-03-01T12:00:00"

    async def test_create_job_converts_aware_due_time_to_utc(self, client: AsyncClient):
        due = datetime(2026, 3, 1, 14, 0, tzinfo=timezone(timedelta(hours=2)))

        response = await client.post(
            "/v1/jobs",
            json={
                "name": "aware",
                "executor": "echo",
                "expression": "@hourly",
                "next_due_at": due.isoformat(),
            },
        )

        assert response.status_code == 201
        assert response.json()["next_due_at"] == "2026-03-01T12:00:00"

    async def test_create_job_duplicate_name(self, client: AsyncClient):
        body = {"name": "dup", "executor": "echo", "expression": "@hourly"}

        assert (await client.post("/v1/jobs", json=body)).status_code == 201
        response = await client.post("/v1/jobs", json=body)

        assert response.status_code == 409

    async def test_create_job_invalid_expression(self, client: AsyncClient):
        response = await client.post(
            "/v1/jobs",
            json={"name": "bad", "executor": "echo", "expression": "every tuesday"},
        )

        assert response.status_code == 422

    async def test_create_job_missing_fields(self, client: AsyncClient):
        response = await client.post("/v1/jobs", json={"name": "incomplete"})

        assert response.status_code == 422


class TestReadJobs:
    """Tests for job lookup and listing."""

    async def test_get_job(self, client: AsyncClient, make_job):
        job = await make_job(name="lookup")

        response = await client.get(f"/v1/jobs/{job.id}")

        assert response.status_code == 200
        assert response.json()["name"] == "lookup"

    async def test_get_job_not_found(self, client: AsyncClient):
        response = await client.get("/v1/jobs/999999")

        assert response.status_code == 404

    async def test_list_jobs(self, client: AsyncClient, make_job):
        for _ in range(3):
            await make_job()
        await make_job(status=JobStatus.PAUSED)

        response = await client.get("/v1/jobs", params={"page_size": 2})

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 4
        assert len(data["jobs"]) == 2
        assert data["has_next"] is True

        response = await client.get("/v1/jobs", params={"status": "paused"})
        data = response.json()
        assert data["total"] == 1
        assert data["jobs"][0]["status"] == "paused"

    async def test_job_stats(self, client: AsyncClient, make_job):
        await make_job()
        await make_job(status=JobStatus.RUNNING)
        await make_job(status=JobStatus.RUNNING)

        response = await client.get("/v1/jobs/stats/summary")

        assert response.status_code == 200
        assert response.json()["stats"] == {"waiting": 1, "running": 2}


class TestJobTransitions:
    """Tests for pause, resume and delete."""

    async def test_pause_and_resume(self, client: AsyncClient, make_job):
        job = await make_job()

        response = await client.post(f"/v1/jobs/{job.id}/pause")
        assert response.status_code == 200
        assert response.json()["status"] == "paused"
        assert response.json()["version"] == job.version + 1

        response = await client.post(f"/v1/jobs/{job.id}/resume")
        assert response.status_code == 200
        assert response.json()["status"] == "waiting"
        assert response.json()["version"] == job.version + 2

    async def test_pause_twice_conflicts(self, client: AsyncClient, make_job):
        job = await make_job(status=JobStatus.PAUSED)

        response = await client.post(f"/v1/jobs/{job.id}/pause")

        assert response.status_code == 409

    async def test_pause_running_job_conflicts(self, client: AsyncClient, make_job):
        job = await make_job(status=JobStatus.RUNNING)

        response = await client.post(f"/v1/jobs/{job.id}/pause")

        assert response.status_code == 409

    async def test_resume_missing_job(self, client: AsyncClient):
        response = await client.post("/v1/jobs/999999/resume")

        assert response.status_code == 404

    async def test_delete_job(self, client: AsyncClient, make_job):
        job = await make_job()

        response = await client.delete(f"/v1/jobs/{job.id}")
        assert response.status_code == 204

        response = await client.get(f"/v1/jobs/{job.id}")
        assert response.status_code == 404

        response = await client.delete(f"/v1/jobs/{job.id}")
        assert response.status_code == 404
