"""
Shared test fixtures for the Azure DevOps MCP server test suite.

No test talks to Entra ID, the Azure CLI or Azure DevOps. The external
collaborators are replaced by small fakes:

- FakeMsalApp: stands in for msal.PublicClientApplication. Silent and
  interactive outcomes are configured per test, and every call is recorded.
- FakeCredential: an azure-identity style credential that either returns a
  token or raises CredentialUnavailableError.
- FakeConnection: an azure-devops Connection look-alike whose clients return
  canned msrest-like models.

Key fixtures:
- make_token: mints JWT access tokens shaped like Entra ID tokens (PyJWT)
- env_settings: Settings that ignore the real environment and .env file
- clean_token_credentials_env: restores AZURE_TOKEN_CREDENTIALS after each test
"""

import datetime
import time
from types import SimpleNamespace

import jwt
import pytest
from azure.core.credentials import AccessToken
from azure.identity import CredentialUnavailableError

from ado_mcp.auth import SCOPES, TOKEN_CREDENTIALS_ENV
from ado_mcp.config import Settings

AZURE_DEVOPS_AUDIENCE = SCOPES[0].split("/")[0]


# ---------------------------------------------------------------------------
# Environment isolation
# ---------------------------------------------------------------------------
@pytest.fixture(autouse=True)
def clean_token_credentials_env(monkeypatch):
    """
    The azcli strategy writes AZURE_TOKEN_CREDENTIALS into os.environ.

    setenv records the original state (usually unset) so monkeypatch restores
    it at teardown, whatever the code under test wrote in between.
    """
    monkeypatch.setenv(TOKEN_CREDENTIALS_ENV, "")
    monkeypatch.delenv(TOKEN_CREDENTIALS_ENV)


@pytest.fixture
def env_settings():
    """Settings with no PAT and no Codespaces markers, independent of the host."""

    def _env_settings(**overrides) -> Settings:
        values = {
            "azure_devops_pat": None,
            "codespaces": None,
            "codespace_name": None,
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return _env_settings


# ---------------------------------------------------------------------------
# Token factory fixture
# ---------------------------------------------------------------------------
@pytest.fixture
def make_token():
    """
    Factory fixture to generate Entra ID shaped access tokens.

    The signature is irrelevant (nothing verifies it), only the claims are.

    Usage in tests:
        def test_something(make_token):
            token = make_token(upn="alice@contoso.com", exp_hours=1)
    """

    def _make_token(
        upn: str = "alice@contoso.com",
        tenant: str = "tenant-1",
        exp_hours: float = 1.0,
        include_exp: bool = True,
    ) -> str:
        now = datetime.datetime.now(datetime.timezone.utc)
        payload: dict = {
            "aud": AZURE_DEVOPS_AUDIENCE,
            "tid": tenant,
            "upn": upn,
            "iat": now,
        }
        if include_exp:
            payload["exp"] = now + datetime.timedelta(hours=exp_hours)
        return jwt.encode(payload, "test-signing-key-not-verified", algorithm="HS256")

    return _make_token


# ---------------------------------------------------------------------------
# MSAL fake
# ---------------------------------------------------------------------------
def interactive_result(token: str, oid: str = "user-1", tid: str = "tenant-1", username: str = "alice@contoso.com"):
    """An acquire_token_interactive() success result, as MSAL returns it."""
    return {
        "access_token": token,
        "token_type": "Bearer",
        "expires_in": 3599,
        "id_token_claims": {"oid": oid, "tid": tid, "preferred_username": username},
    }


class FakeMsalApp:
    """
    Records calls and replays configured outcomes.

    silent / interactive may be a result dict, None, or an exception instance
    (raised when the method is called). A successful interactive result adds
    the consenting account to the app's account list, like MSAL's cache does,
    unless remember_account is False.
    """

    def __init__(
        self,
        silent=None,
        interactive=None,
        accounts=None,
        interactive_delay: float = 0.0,
        remember_account: bool = True,
    ):
        self.silent = silent
        self.interactive = interactive
        self.accounts = list(accounts or [])
        self.interactive_delay = interactive_delay
        self.remember_account = remember_account
        self.silent_calls: list[dict] = []
        self.interactive_calls = 0

    def acquire_token_silent(self, scopes, account=None, **kwargs):
        self.silent_calls.append(account)
        if isinstance(self.silent, Exception):
            raise self.silent
        return self.silent

    def acquire_token_interactive(self, scopes, **kwargs):
        self.interactive_calls += 1
        if self.interactive_delay:
            time.sleep(self.interactive_delay)
        if isinstance(self.interactive, Exception):
            raise self.interactive
        if self.remember_account and self.interactive and self.interactive.get("access_token"):
            claims = self.interactive["id_token_claims"]
            self.accounts.append(
                {
                    "home_account_id": f"{claims['oid']}.{claims['tid']}",
                    "username": claims["preferred_username"],
                }
            )
        return self.interactive

    def get_accounts(self, username=None):
        return list(self.accounts)


# ---------------------------------------------------------------------------
# azure-identity fake
# ---------------------------------------------------------------------------
class FakeCredential:
    def __init__(self, token: str | None = None, name: str = "fake"):
        self.token = token
        self.name = name
        self.calls = 0

    def get_token(self, *scopes, **kwargs):
        self.calls += 1
        if self.token is None:
            raise CredentialUnavailableError(message=f"{self.name} unavailable")
        return AccessToken(self.token, int(time.time()) + 3600)


# ---------------------------------------------------------------------------
# azure-devops fakes
# ---------------------------------------------------------------------------
class FakeModel:
    """msrest models serialize with as_dict()."""

    def __init__(self, **fields):
        self._fields = fields

    def as_dict(self):
        return dict(self._fields)


class FakeCoreClient:
    def __init__(self):
        self.calls = []

    def get_projects(self, state_filter=None, top=None, skip=None):
        self.calls.append(("get_projects", state_filter, top, skip))
        return [FakeModel(id="p1", name="Fabrikam"), FakeModel(id="p2", name="Tailspin")]

    def get_teams(self, project_id, mine=None, top=None, skip=None):
        self.calls.append(("get_teams", project_id, mine, top, skip))
        return [FakeModel(id="t1", name=f"{project_id} Team")]


class FakeGitClient:
    def __init__(self):
        self.calls = []

    def get_repositories(self, project=None):
        self.calls.append(("get_repositories", project))
        return [FakeModel(id="r1", name="web"), FakeModel(id="r2", name="api")]

    def get_branches(self, repository_id, project=None):
        self.calls.append(("get_branches", repository_id, project))
        return [FakeModel(name="main"), FakeModel(name="release/1.0")]


class FakeConnection:
    def __init__(self, org_url: str = "https://dev.azure.com/contoso", token: str = "token", user_agent: str = ""):
        self.org_url = org_url
        self.token = token
        self.user_agent = user_agent
        self.core_client = FakeCoreClient()
        self.git_client = FakeGitClient()
        self.clients = SimpleNamespace(
            get_core_client=lambda: self.core_client,
            get_git_client=lambda: self.git_client,
        )
