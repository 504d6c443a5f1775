"""
Tests for the installation callback flows.
"""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from src.core.config import Settings
from src.exceptions.github_exceptions import GitHubRateLimitException
from src.models.schemas.installation import Installation, InstallationRepository, PermissionCheckResult
from src.services.installation.installation_service import (
    ERROR_MESSAGES,
    InstallationService,
    map_callback_error,
)
from src.utils.exception import AuthenticationError, InstallationFlowError, InstallationNotFoundError

INSTALLATION = Installation(
    id=42,
    account={"login": "octocat", "id": 7, "avatar_url": "https://avatars.example.com/octocat"},
    permissions={"contents": "write", "actions": "write", "metadata": "read"},
)


@pytest.fixture
def settings():
    return Settings(
        FRONTEND_URL="https://app.example.com",
        GITHUB_INSTALLATION_URL="https://github.com/apps/faasr/installations/new",
        GITHUB_CLIENT_ID="client-id",
        GITHUB_CLIENT_SECRET="client-secret",
        GITHUB_CALLBACK_URL_V2="https://api.example.com/callback-v2",
    )


@pytest.fixture
def github_app():
    app = MagicMock()
    app.get_installation = AsyncMock(return_value=INSTALLATION)
    app.check_installation_permissions = AsyncMock(return_value=PermissionCheckResult(valid=True))
    app.get_installation_repos = AsyncMock(return_value=[])
    app.get_installation_client = AsyncMock()
    return app


@pytest.fixture
def store():
    store = MagicMock()
    store.get_user_id.return_value = "user-1"
    return store


@pytest.fixture
def service(github_app, settings):
    service = InstallationService(github_app, settings)
    service.find_fork = AsyncMock(return_value="FaaSr-workflow")
    return service


@pytest.fixture
def oauth_service(github_app, settings, recording_transport):
    def _make(routes):
        recorder = recording_transport(routes)
        service = InstallationService(github_app, settings, http_transport=recorder.transport)
        service.find_fork = AsyncMock(return_value="FaaSr-workflow")
        return service, recorder
    return _make


def params_of(url: str) -> dict:
    parsed = httpx.URL(url)
    assert parsed.path == "/install"
    return dict(parsed.params)


# =============================================================================
# REDIRECT TARGETS
# =============================================================================

def test_install_redirect_adds_state(service):
    url = httpx.URL(service.build_install_redirect())

    assert url.host == "github.com"
    assert url.params["state"] == "install"


def test_oauth_redirect_carries_client_and_callback(service):
    url = httpx.URL(service.build_oauth_redirect())

    assert url.path == "/login/oauth/authorize"
    assert url.params["client_id"] == "client-id"
    assert url.params["redirect_uri"] == "https://api.example.com/callback-v2"
    assert url.params["state"] == "v2_install"


def test_error_redirect_uses_default_message(service):
    params = params_of(service.error_redirect("no_installations"))

    assert params == {"error": "no_installations", "message": ERROR_MESSAGES["no_installations"]}


@pytest.mark.parametrize(
    "error, not_found_code, expected",
    [
        (GitHubRateLimitException(), "no_fork_found", "rate_limit"),
        (Exception("Missing permission to fork"), "no_fork_found", "missing_permissions"),
        (Exception("fork lookup exploded"), "no_fork_found", "no_fork_found"),
        (InstallationNotFoundError("Installation 9 not found"), "fork_not_found", "fork_not_found"),
        (Exception("socket closed"), "no_fork_found", "installation_failed"),
    ],
)
def test_map_callback_error(error, not_found_code, expected):
    code, _ = map_callback_error(error, not_found_code)
    assert code == expected


def test_map_callback_error_passes_raw_message_for_generic_failures():
    assert map_callback_error(Exception("socket closed")) == ("installation_failed", "socket closed")


# =============================================================================
# PLATFORM FLOW
# =============================================================================

@pytest.mark.asyncio
async def test_installation_callback_stores_binding(service, store):
    url = await service.handle_installation_callback("42", "access-token", store)

    assert params_of(url) == {"success": "true", "login": "octocat"}
    user_id, record = store.save_installation.call_args.args
    assert user_id == "user-1"
    assert record.installation_id == "42"
    assert record.gh_user_id == 7
    assert record.gh_repo_name == "FaaSr-workflow"


@pytest.mark.asyncio
async def test_installation_callback_reuses_fetched_installation(service, github_app, store):
    await service.handle_installation_callback("42", "access-token", store)

    github_app.get_installation.assert_awaited_once_with("42")
    github_app.check_installation_permissions.assert_awaited_once_with("42", installation=INSTALLATION)


@pytest.mark.asyncio
async def test_find_fork_mints_one_token(github_app, settings, make_client, respond):
    client, _ = make_client({
        ("GET", "/repos/octocat/FaaSr-workflow"): respond(200, {
            "name": "FaaSr-workflow",
            "fork": True,
            "parent": {"name": "FaaSr-workflow", "owner": {"login": "FaaSr"}},
        }),
    })
    github_app.get_installation_client.return_value = client
    github_app.get_installation_repos.return_value = [InstallationRepository(id=2, name="FaaSr-workflow")]

    fork_name = await InstallationService(github_app, settings).find_fork("42", "octocat")

    assert fork_name == "FaaSr-workflow"
    github_app.get_installation_client.assert_awaited_once_with("42")
    github_app.get_installation_repos.assert_awaited_once_with("42", client=client)


@pytest.mark.asyncio
async def test_installation_callback_without_id(service, store):
    url = await service.handle_installation_callback(None, "access-token", store)

    assert params_of(url)["error"] == "missing_installation_id"
    store.save_installation.assert_not_called()


@pytest.mark.asyncio
async def test_installation_callback_missing_permissions(service, github_app, store):
    github_app.check_installation_permissions.return_value = PermissionCheckResult(
        valid=False, missing_permissions=["actions:write"]
    )

    url = await service.handle_installation_callback("42", "access-token", store)

    assert params_of(url)["error"] == "missing_permissions"
    store.save_installation.assert_not_called()


@pytest.mark.asyncio
async def test_installation_callback_without_fork(service, store):
    service.find_fork.return_value = None

    url = await service.handle_installation_callback("42", "access-token", store)

    assert params_of(url)["error"] == "no_fork_found"


@pytest.mark.asyncio
async def test_installation_callback_unknown_platform_user(service, store):
    store.get_user_id.side_effect = AuthenticationError("Could not validate credentials")

    url = await service.handle_installation_callback("42", "bad-token", store)

    assert params_of(url)["error"] == "failed_to_get_user"


@pytest.mark.asyncio
async def test_installation_callback_without_platform_token(service, store):
    url = await service.handle_installation_callback("42", None, store)

    assert params_of(url)["error"] == "failed_to_get_user"
    store.get_user_id.assert_not_called()


@pytest.mark.asyncio
async def test_installation_callback_rate_limited(service, github_app, store):
    github_app.get_installation.side_effect = GitHubRateLimitException()

    url = await service.handle_installation_callback("42", "access-token", store)

    assert params_of(url) == {"error": "rate_limit", "message": ERROR_MESSAGES["rate_limit"]}


# =============================================================================
# FORK SETUP
# =============================================================================

@pytest.mark.asyncio
async def test_fork_setup_creates_fork(service, github_app, make_client, respond):
    client, recorder = make_client({
        ("POST", "/repos/FaaSr/FaaSr-workflow/forks"): respond(202, {
            "name": "FaaSr-workflow",
            "html_url": "https://github.com/octocat/FaaSr-workflow",
            "owner": {"login": "octocat"},
        }),
    })
    github_app.get_installation_client.return_value = client

    url = await service.handle_fork_setup_callback("42")

    assert params_of(url) == {
        "success": "true",
        "login": "octocat",
        "forkUrl": "https://github.com/octocat/FaaSr-workflow",
    }
    assert any(r.method == "POST" for r in recorder.requests)
    github_app.check_installation_permissions.assert_awaited_once_with("42", installation=INSTALLATION)


@pytest.mark.asyncio
async def test_fork_setup_when_source_not_forkable(service, github_app, make_client):
    client, _ = make_client({})
    github_app.get_installation_client.return_value = client

    url = await service.handle_fork_setup_callback("42")

    assert params_of(url)["error"] == "fork_not_found"


@pytest.mark.asyncio
async def test_fork_setup_unknown_installation(service, github_app):
    github_app.get_installation.side_effect = InstallationNotFoundError("Installation 42 not found")

    url = await service.handle_fork_setup_callback("42")

    assert params_of(url)["error"] == "fork_not_found"


# =============================================================================
# STATELESS FLOW
# =============================================================================

def oauth_routes(respond, installations):
    return {
        ("POST", "/login/oauth/access_token"): respond(200, {"access_token": "gho_user"}),
        ("GET", "/user/installations"): respond(200, {"installations": installations}),
    }


@pytest.mark.asyncio
async def test_oauth_installation_picks_installation_with_fork(oauth_service, github_app, respond):
    service, recorder = oauth_service(oauth_routes(respond, [
        {"id": 1, "account": {"login": "someorg", "id": 2}},
        {"id": 42, "account": {"login": "octocat", "id": 7, "avatar_url": "https://a.example.com/o"}},
    ]))
    github_app.check_installation_permissions.side_effect = [
        PermissionCheckResult(valid=False, missing_permissions=["contents:write"]),
        PermissionCheckResult(valid=True),
    ]

    claims = await service.complete_oauth_installation("oauth-code")

    assert claims.installation_id == "42"
    assert claims.gh_user_login == "octocat"
    assert claims.gh_user_id == 7
    assert claims.gh_repo_name == "FaaSr-workflow"
    assert recorder.bodies("POST", "/login/oauth/access_token") == [
        {"client_id": "client-id", "client_secret": "client-secret", "code": "oauth-code"}
    ]
    installations_request = next(r for r in recorder.requests if r.url.path == "/user/installations")
    assert installations_request.headers["Authorization"] == "Bearer gho_user"
    service.find_fork.assert_awaited_once_with("42", "octocat")


@pytest.mark.asyncio
async def test_oauth_installation_without_code(service):
    with pytest.raises(InstallationFlowError) as exc_info:
        await service.complete_oauth_installation(None)

    assert exc_info.value.error_code == "missing_code"
    assert exc_info.value.status_code == 400


@pytest.mark.asyncio
async def test_oauth_installation_without_installations(oauth_service, respond):
    service, _ = oauth_service(oauth_routes(respond, []))

    with pytest.raises(InstallationFlowError) as exc_info:
        await service.complete_oauth_installation("oauth-code")

    assert exc_info.value.error_code == "no_installations"


@pytest.mark.asyncio
async def test_oauth_installation_without_fork(oauth_service, respond):
    service, _ = oauth_service(oauth_routes(respond, [{"id": 42, "account": {"login": "octocat", "id": 7}}]))
    service.find_fork.return_value = None

    with pytest.raises(InstallationFlowError) as exc_info:
        await service.complete_oauth_installation("oauth-code")

    assert exc_info.value.error_code == "no_fork_found"
    assert exc_info.value.status_code == 400


@pytest.mark.asyncio
async def test_oauth_installation_failed_exchange(oauth_service, respond):
    service, _ = oauth_service({
        ("POST", "/login/oauth/access_token"): respond(200, {"error": "bad_verification_code"}),
    })

    with pytest.raises(InstallationFlowError) as exc_info:
        await service.complete_oauth_installation("oauth-code")

    assert exc_info.value.error_code == "installation_failed"
    assert exc_info.value.status_code == 500
    assert exc_info.value.message == "No access token in response"
