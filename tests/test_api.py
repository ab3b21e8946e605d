"""
LogTrace - API Tests
====================

Tests for the HTTP endpoints.
"""

import httpx
import pytest

from logtrace.main import app


ERROR_LOG = "\n".join([
    "2024-01-01 10:00:00,123 [INFO] com.example.App - Started",
    "2024-01-01 10:00:01,456 [ERROR] com.example.UserService - Request failed",
    "\tat com.example.UserService.getUser(UserService.java:4)",
    "\tat com.example.UserController.show(UserController.java:5)",
    "2024-01-01 10:00:02,000 [INFO] com.example.App - Recovered",
]) + "\n"


@pytest.fixture
def client():
    transport = httpx.ASGITransport(app=app)
    return httpx.AsyncClient(transport=transport, base_url="http://test")


@pytest.fixture
def error_log(project):
    path = project / "logs" / "app.log"
    path.write_text(ERROR_LOG)
    return path


class TestHealthEndpoints:
    """Tests for health and readiness."""

    @pytest.mark.asyncio
    async def test_health(self, client):
        """Test the health endpoint."""
        async with client:
            response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_analysis_id_is_echoed(self, client):
        """Test that the analysis id header is propagated."""
        async with client:
            response = await client.get("/ready", headers={"X-Analysis-ID": "abc-123"})

        assert response.headers["X-Analysis-ID"] == "abc-123"


class TestParseEndpoint:
    """Tests for log parsing over HTTP."""

    @pytest.mark.asyncio
    async def test_parse_log(self, client, error_log):
        """Test parsing a log file."""
        async with client:
            response = await client.post("/api/v1/logs/parse", json={"log_path": str(error_log)})

        assert response.status_code == 200
        body = response.json()
        assert body["format"] == "log4j"
        assert body["total_lines"] == 5
        assert len(body["error_entries"]) == 1
        assert len(body["error_entries"][0]["stack_frames"]) == 2

    @pytest.mark.asyncio
    async def test_parse_streaming(self, client, error_log):
        """Test that streaming mode returns the same result."""
        async with client:
            whole = await client.post("/api/v1/logs/parse", json={"log_path": str(error_log)})
            streamed = await client.post(
                "/api/v1/logs/parse",
                json={"log_path": str(error_log), "stream_mode": True},
            )

        assert streamed.json() == whole.json()

    @pytest.mark.asyncio
    async def test_missing_file(self, client, tmp_path):
        """Test that a missing log file is a 404."""
        async with client:
            response = await client.post(
                "/api/v1/logs/parse", json={"log_path": str(tmp_path / "missing.log")}
            )

        assert response.status_code == 404
        assert response.json()["error"] == "log_file_not_found"

    @pytest.mark.asyncio
    async def test_directory_is_rejected(self, client, tmp_path):
        """Test that a directory is a 400."""
        async with client:
            response = await client.post("/api/v1/logs/parse", json={"log_path": str(tmp_path)})

        assert response.status_code == 400
        assert response.json()["error"] == "not_a_regular_file"


class TestLocateEndpoint:
    """Tests for source location over HTTP."""

    @pytest.mark.asyncio
    async def test_locate_with_project_root(self, client, error_log, project):
        """Test locating errors in an explicit project."""
        async with client:
            response = await client.post(
                "/api/v1/locate",
                json={"log_path": str(error_log), "project_root": str(project)},
            )

        assert response.status_code == 200
        body = response.json()
        assert body["project_root"] == str(project)
        assert body["error_count"] == 1
        location = body["results"][0]["location"]
        assert location["index_used"] is True
        assert location["locations"][0]["file_path"].endswith("UserService.java")
        assert location["locations"][0]["confidence"] == 0.9

    @pytest.mark.asyncio
    async def test_locate_detects_project_root(self, client, error_log, project):
        """Test project root detection from the log location."""
        async with client:
            response = await client.post(
                "/api/v1/locate",
                json={"log_path": str(error_log), "max_results": 1},
            )

        assert response.status_code == 200
        body = response.json()
        assert body["project_root"] == str(project)
        assert len(body["results"][0]["location"]["locations"]) == 1


class TestProjectEndpoints:
    """Tests for project indexing and configuration."""

    @pytest.mark.asyncio
    async def test_index_project(self, client, project):
        """Test indexing a project."""
        async with client:
            response = await client.post("/api/v1/project/index", json={"root_path": str(project)})

        assert response.status_code == 200
        body = response.json()
        assert body["total_files"] == 3
        assert body["language_counts"] == {"Python": 1, "Java": 2}

    @pytest.mark.asyncio
    async def test_index_missing_root(self, client, tmp_path):
        """Test that a missing root is a 400."""
        async with client:
            response = await client.post(
                "/api/v1/project/index", json={"root_path": str(tmp_path / "missing")}
            )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_config(self, client):
        """Test the effective configuration endpoint."""
        async with client:
            response = await client.get("/api/v1/config")

        assert response.status_code == 200
        body = response.json()
        assert body["max_file_size_mb"] == 100
        assert body["max_results"] == 20
