"""
HTTP contract tests for the FastAPI routes.
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from src.api.fastapi import FastAPIApp
from src.models.schemas.session import SessionClaims
from src.models.schemas.workflow import (
    RegistrationState,
    RegistrationStatus,
    RegistrationTriggerResult,
    UploadResult,
)
from src.services.installation.installation_service import InstallationService
from src.services.sessions.cookies import SESSION_COOKIE_NAME
from src.services.sessions.installation_store import SupabaseInstallationStore
from src.services.sessions.session_token import sign_session_token
from src.services.workflows.status_service import WorkflowStatusService
from src.services.workflows.upload_service import WorkflowUploadService
from src.utils.exception import InstallationFlowError, InvalidFileError, add_exception_handlers
from src.utils.logging import logger

CLAIMS = SessionClaims(
    installation_id="42",
    gh_user_login="octocat",
    gh_user_id=1,
    gh_repo_name="FaaSr-workflow",
    gh_avatar_url="https://avatars.example.com/octocat",
)


@pytest.fixture
def upload_service():
    service = MagicMock()
    service.upload_workflow = AsyncMock(return_value=UploadResult(file_name="wf.json", commit_sha="abc123"))
    service.trigger_registration = AsyncMock(
        return_value=RegistrationTriggerResult(
            workflow_run_id=99, workflow_run_url="https://github.com/octocat/FaaSr-workflow/actions/runs/99"
        )
    )
    return service


@pytest.fixture
def status_service():
    service = MagicMock()
    service.get_workflow_status = AsyncMock(
        return_value=RegistrationStatus(
            file_name="wf.json",
            status=RegistrationState.SUCCESS,
            workflow_run_id=99,
            triggered_at=datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc),
            completed_at=datetime(2026, 1, 1, 12, 5, tzinfo=timezone.utc),
        )
    )
    return service


@pytest.fixture
def installation_service():
    service = MagicMock()
    service.build_install_redirect.return_value = "https://github.com/apps/faasr/installations/new?state=install"
    service.handle_installation_callback = AsyncMock(
        return_value="https://app.example.com/install?success=true&login=octocat"
    )
    service.handle_fork_setup_callback = AsyncMock(
        return_value="https://app.example.com/install?error=fork_not_found&message=Fork+not+found"
    )
    service.complete_oauth_installation = AsyncMock(return_value=CLAIMS)
    return service


@pytest.fixture
def client(upload_service, status_service, installation_service):
    app = FastAPIApp().get_app()
    add_exception_handlers(app, logger)
    app.dependency_overrides[WorkflowUploadService] = lambda: upload_service
    app.dependency_overrides[WorkflowStatusService] = lambda: status_service
    app.dependency_overrides[InstallationService] = lambda: installation_service
    app.dependency_overrides[SupabaseInstallationStore] = lambda: MagicMock()
    return TestClient(app)


@pytest.fixture
def signed_in(client):
    client.cookies.set(SESSION_COOKIE_NAME, sign_session_token(CLAIMS, "test-secret"))
    return client


# =============================================================================
# HEALTH AND AUTH
# =============================================================================

def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_auth_status_without_cookie(client):
    response = client.get("/auth-status")

    assert response.status_code == 401
    assert response.json() == {
        "success": False,
        "error": "Unauthorized",
        "message": "Invalid or missing authentication cookie",
    }


def test_auth_status_with_cookie(signed_in):
    response = signed_in.get("/auth-status")

    assert response.status_code == 200
    assert response.json() == {
        "userLogin": "octocat",
        "avatarUrl": "https://avatars.example.com/octocat",
        "repoName": "FaaSr-workflow",
    }


def test_logout_clears_cookie(signed_in):
    response = signed_in.post("/logout")

    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Logged out successfully"}
    set_cookie = response.headers["set-cookie"]
    assert set_cookie.startswith(f"{SESSION_COOKIE_NAME}=")
    assert "Max-Age=0" in set_cookie


def test_logout_rejects_get(client):
    assert client.get("/logout").status_code == 405


# =============================================================================
# INSTALLATION
# =============================================================================

def test_install_returns_redirect_info(client):
    response = client.get("/install")

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["redirectUrl"].endswith("state=install")


def test_callback_redirects_to_frontend(client, installation_service):
    response = client.get(
        "/callback",
        params={"installation_id": "42"},
        headers={"Authorization": "Bearer platform-token"},
        follow_redirects=False,
    )

    assert response.status_code == 302
    assert response.headers["location"] == "https://app.example.com/install?success=true&login=octocat"
    args = installation_service.handle_installation_callback.call_args.args
    assert args[0] == "42"
    assert args[1] == "platform-token"


def test_fork_setup_callback_redirects_with_error(client):
    response = client.get("/auth/callback", params={"installation_id": "42"}, follow_redirects=False)

    assert response.status_code == 302
    assert "error=fork_not_found" in response.headers["location"]


def test_callback_v2_sets_session_cookie(client):
    response = client.get("/callback-v2", params={"code": "oauth-code"})

    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "login": "octocat",
        "message": "GitHub App installed successfully!",
    }
    set_cookie = response.headers["set-cookie"]
    assert set_cookie.startswith(f"{SESSION_COOKIE_NAME}=")
    assert "HttpOnly" in set_cookie


def test_callback_v2_reports_flow_errors(client, installation_service):
    installation_service.complete_oauth_installation.side_effect = InstallationFlowError(
        "missing_code", "Missing authorization code. Please try again."
    )

    response = client.get("/callback-v2")

    assert response.status_code == 400
    assert response.json() == {
        "success": False,
        "error": "missing_code",
        "message": "Missing authorization code. Please try again.",
    }
    assert "set-cookie" not in response.headers


# =============================================================================
# WORKFLOWS
# =============================================================================

def test_upload_requires_session(client, upload_service):
    response = client.post("/workflows", files={"file": ("wf.json", b"{}", "application/json")})

    assert response.status_code == 401
    assert response.json()["error"] == "Authentication required"
    upload_service.upload_workflow.assert_not_called()


def test_upload_requires_file(signed_in):
    response = signed_in.post("/workflows", data={"custom_containers": "true"})

    assert response.status_code == 400
    assert response.json()["error"] == "File is required"


def test_upload_commits_and_triggers(signed_in, upload_service):
    response = signed_in.post(
        "/workflows",
        files={"file": ("wf.json", b'{"a": 1}', "application/json")},
        data={"custom_containers": "true"},
    )

    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "message": "Workflow uploaded and registration triggered",
        "fileName": "wf.json",
        "commitSha": "abc123",
        "workflowRunId": 99,
        "workflowRunUrl": "https://github.com/octocat/FaaSr-workflow/actions/runs/99",
    }
    session, content, file_name = upload_service.upload_workflow.call_args.args
    assert session.user_login == "octocat"
    assert content == b'{"a": 1}'
    assert file_name == "wf.json"
    assert upload_service.trigger_registration.call_args.args[2] is True


def test_upload_reports_validation_errors(signed_in, upload_service):
    upload_service.upload_workflow.side_effect = InvalidFileError(["File must have .json extension"])

    response = signed_in.post("/workflows", files={"file": ("wf.txt", b"{}", "text/plain")})

    assert response.status_code == 400
    assert response.json() == {
        "success": False,
        "error": "Invalid file",
        "details": ["File must have .json extension"],
    }


def test_status_requires_filename(signed_in):
    response = signed_in.get("/workflows")

    assert response.status_code == 400
    assert response.json()["error"] == "filename parameter is required"


def test_status_requires_session(client):
    assert client.get("/workflows", params={"filename": "wf.json"}).status_code == 401


def test_status_reports_registration_state(signed_in, status_service):
    response = signed_in.get("/workflows", params={"filename": "wf.json"})

    assert response.status_code == 200
    body = response.json()
    assert body["fileName"] == "wf.json"
    assert body["status"] == "success"
    assert body["workflowRunId"] == 99
    assert body["triggeredAt"] == "2026-01-01T12:00:00+00:00"
    assert body["completedAt"] == "2026-01-01T12:05:00+00:00"
    assert status_service.get_workflow_status.call_args.args[1] == "wf.json"
