"""
Token acquisition for Azure DevOps.

This module is the authentication core. It turns the configured
authentication type into a single *token provider*: an async callable that
takes no arguments and returns a bearer token string. Every consumer (the
connection provider, tools that call REST endpoints directly, the token
script) depends only on that shape, never on the strategy behind it.

Three token sources implement the shape:

- StaticTokenSource: a personal access token (PAT), returned unchanged.
- ChainedCredentialSource: ambient credentials from the environment
  (Azure CLI session, then DefaultAzureCredential), for headless use.
- InteractiveSessionSource: an MSAL public client that reuses the signed-in
  account silently and falls back to browser consent.

create_authenticator() picks one of them. Exactly one source is active per
process.

Error taxonomy:

    AuthError
    ├── ConfigurationError          missing secret, fatal at startup
    ├── AuthenticationUnavailable   ambient credential chain produced no token
    └── TokenAcquisitionFailed      interactive consent produced no token

A failed *silent* token reuse is not an error: it is a state transition into
the interactive attempt, logged but never raised.
"""

import asyncio
import enum
import logging
import os
from typing import Any, Protocol

import msal
from azure.core.credentials import TokenCredential
from azure.core.exceptions import ClientAuthenticationError
from azure.devops.connection import Connection
from azure.identity import AzureCliCredential, ChainedTokenCredential, DefaultAzureCredential
from msrest.authentication import BasicAuthentication

logger = logging.getLogger(__name__)

# The Azure DevOps resource. Every token request uses this single scope.
SCOPES = ["499b84ac-1321-427f-aa17-267ca6975798/.default"]

# Public client registered for the Azure DevOps MCP server.
CLIENT_ID = "0d50963b-7bb9-4fe7-94c7-a99af00b5136"

AUTHORITY_HOST = "https://login.microsoftonline.com"
DEFAULT_AUTHORITY = f"{AUTHORITY_HOST}/common"

# Restricts DefaultAzureCredential to developer credentials (CLI, azd, ...)
# so it does not try managed identity or workload identity endpoints.
TOKEN_CREDENTIALS_ENV = "AZURE_TOKEN_CREDENTIALS"
DEV_TOKEN_CREDENTIALS = "dev"


class AuthError(Exception):
    """
    Base class for authentication failures.

    Attributes:
        message: Human-readable description, safe to show to the agent
    """

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ConfigurationError(AuthError):
    """A required secret is missing for the selected authentication type."""


class AuthenticationUnavailable(AuthError):
    """No credential in the ambient chain produced a token."""


class TokenAcquisitionFailed(AuthError):
    """Interactive consent completed without a usable access token."""


class TokenProvider(Protocol):
    """Anything that can be awaited for a bearer token."""

    async def __call__(self) -> str: ...


# ---------------------------------------------------------------------------
# Static personal access token
# ---------------------------------------------------------------------------


class StaticTokenSource:
    """
    Serves a personal access token.

    The token never expires from our point of view and is never refreshed,
    so the connection built from it can be reused for the process lifetime.
    """

    def __init__(self, token: str | None, missing_message: str = "A personal access token is required"):
        if not token:
            raise ConfigurationError(missing_message)
        self._token = token

    async def get_token(self) -> str:
        return self._token

    async def __call__(self) -> str:
        return await self.get_token()

    def connect(self, org_url: str, user_agent: str | None = None) -> Connection:
        """Build a PAT-authenticated connection (basic auth, empty user name)."""
        return Connection(
            base_url=org_url,
            creds=BasicAuthentication("", self._token),
            user_agent=user_agent,
        )


# ---------------------------------------------------------------------------
# Ambient credential chain (Azure CLI, environment)
# ---------------------------------------------------------------------------


def build_ambient_credential(tenant_id: str | None = None) -> TokenCredential:
    """
    Build the ambient credential chain.

    With a tenant the Azure CLI credential scoped to that tenant goes first,
    which is what multi-tenant users need; DefaultAzureCredential remains
    the fallback. Without a tenant DefaultAzureCredential is used alone.
    """
    default_credential = DefaultAzureCredential()
    if not tenant_id:
        return default_credential
    return ChainedTokenCredential(AzureCliCredential(tenant_id=tenant_id), default_credential)


AMBIENT_UNAVAILABLE_MESSAGE = (
    "Failed to obtain Azure DevOps token. Ensure you have Azure CLI logged in "
    "(az login) or use interactive type of authentication."
)


class ChainedCredentialSource:
    """Returns the first token produced by an ambient credential chain."""

    def __init__(self, credential: TokenCredential):
        self._credential = credential

    @classmethod
    def from_environment(cls, tenant_id: str | None = None) -> "ChainedCredentialSource":
        return cls(build_ambient_credential(tenant_id))

    async def get_token(self) -> str:
        # azure-identity's sync credentials shell out to the CLI or do blocking
        # HTTP, so they run off the event loop.
        try:
            result = await asyncio.to_thread(self._credential.get_token, *SCOPES)
        except ClientAuthenticationError as exc:
            logger.warning(
                "Ambient credential chain failed",
                extra={"event_data": {"strategy": "azcli", "decision": "unavailable"}},
            )
            raise AuthenticationUnavailable(AMBIENT_UNAVAILABLE_MESSAGE) from exc

        if not result or not result.token:
            raise AuthenticationUnavailable(AMBIENT_UNAVAILABLE_MESSAGE)
        return result.token

    async def __call__(self) -> str:
        return await self.get_token()


# ---------------------------------------------------------------------------
# Interactive session (MSAL public client)
# ---------------------------------------------------------------------------


class SessionState(str, enum.Enum):
    NO_ACCOUNT = "no_account"
    SILENT_ATTEMPT = "silent_attempt"
    INTERACTIVE_ATTEMPT = "interactive_attempt"
    TOKEN_READY = "token_ready"
    FAILED = "failed"


def authority_for(tenant_id: str | None) -> str:
    return f"{AUTHORITY_HOST}/{tenant_id}" if tenant_id else DEFAULT_AUTHORITY


class InteractiveSessionSource:
    """
    Token source backed by a signed-in user.

    Each get_token() call walks the same state machine:

        NO_ACCOUNT ──> SILENT_ATTEMPT ──ok──> TOKEN_READY
                            │
                            └─fail──> INTERACTIVE_ATTEMPT ──ok──> TOKEN_READY
                                                         └─fail─> FAILED

    The silent attempt is skipped when no account has consented yet. Silent
    failures (expired session, revoked consent, network error) are absorbed
    and always lead to the interactive attempt. The account handle lives in
    memory only; it is replaced on every interactive consent and is not
    cleared when a later attempt fails.

    Calls are serialized by a lock, so concurrent first-time callers open one
    browser window; the callers queued behind it reuse the fresh account
    silently.

    Attributes:
        authority: Identity authority URL, fixed at construction
        account: The MSAL account of the last interactive consent, or None
        state: The state reached by the most recent get_token() call
    """

    def __init__(self, tenant_id: str | None = None, app: Any = None):
        self.authority = authority_for(tenant_id)
        self.account: dict | None = None
        self.state = SessionState.NO_ACCOUNT
        self._app = app
        self._lock = asyncio.Lock()

    async def _get_app(self):
        # PublicClientApplication performs authority discovery over the
        # network when constructed, so it is built on first use, off the loop.
        if self._app is None:
            self._app = await asyncio.to_thread(msal.PublicClientApplication, CLIENT_ID, authority=self.authority)
        return self._app

    async def get_token(self) -> str:
        async with self._lock:
            result = None
            if self.account is not None:
                result = await self._acquire_silent(self.account)
            if result is None:
                result = await self._acquire_interactive()
            self.state = SessionState.TOKEN_READY
            return result["access_token"]

    async def __call__(self) -> str:
        return await self.get_token()

    async def _acquire_silent(self, account: dict) -> dict | None:
        """Return a token result for the cached account, or None to go interactive."""
        self.state = SessionState.SILENT_ATTEMPT
        try:
            app = await self._get_app()
            result = await asyncio.to_thread(app.acquire_token_silent, SCOPES, account=account)
        except Exception as exc:  # noqa: BLE001 - every silent failure falls through
            logger.warning(
                "Silent token reuse failed",
                extra={"event_data": {"strategy": "interactive", "reason": type(exc).__name__}},
            )
            return None

        if not result or not result.get("access_token"):
            reason = result.get("error", "no_token") if result else "no_cached_token"
            logger.warning(
                "Silent token reuse unavailable",
                extra={"event_data": {"strategy": "interactive", "reason": reason}},
            )
            return None
        return result

    async def _acquire_interactive(self) -> dict:
        self.state = SessionState.INTERACTIVE_ATTEMPT
        logger.info(
            "Starting interactive sign-in",
            extra={"event_data": {"strategy": "interactive", "authority": self.authority}},
        )
        try:
            # MSAL starts a loopback listener, opens the system browser and
            # blocks until the redirect arrives or its timeout expires.
            app = await self._get_app()
            result = await asyncio.to_thread(app.acquire_token_interactive, SCOPES)
        except Exception as exc:  # noqa: BLE001 - reported as TokenAcquisitionFailed
            self.state = SessionState.FAILED
            raise TokenAcquisitionFailed(f"Failed to obtain Azure DevOps OAuth token: {exc}") from exc

        if not result or not result.get("access_token"):
            self.state = SessionState.FAILED
            detail = (result or {}).get("error_description") or (result or {}).get("error")
            message = "Failed to obtain Azure DevOps OAuth token."
            if detail:
                message = f"{message} {detail}"
            raise TokenAcquisitionFailed(message)

        self.account = await asyncio.to_thread(self._account_for, app, result)
        logger.info(
            "Interactive sign-in succeeded",
            extra={"event_data": {"strategy": "interactive", "decision": "token_ready"}},
        )
        return result

    @staticmethod
    def _account_for(app, result: dict) -> dict | None:
        """Find the cached MSAL account that matches an interactive result, if any."""
        claims = result.get("id_token_claims") or {}
        home_account_id = f"{claims.get('oid')}.{claims.get('tid')}"
        accounts = app.get_accounts()
        for account in accounts:
            if account.get("home_account_id") == home_account_id:
                return account
        username = claims.get("preferred_username")
        for account in accounts:
            if username and account.get("username") == username:
                return account
        return None


# ---------------------------------------------------------------------------
# Strategy selection
# ---------------------------------------------------------------------------


def create_authenticator(
    authentication: str,
    tenant_id: str | None = None,
    pat: str | None = None,
) -> TokenProvider:
    """
    Create the token provider for an authentication type.

    Args:
        authentication: "interactive", "azcli", "env" or "pat". Unrecognized
                        values fall back to "interactive".
        tenant_id: Optional tenant hint for "interactive" and "azcli"
        pat: The personal access token for "env" and "pat"

    Returns:
        An async callable returning a bearer token

    Raises:
        ConfigurationError: If "env" or "pat" is selected without a token
    """
    if authentication == "pat":
        return StaticTokenSource(pat, "--pat argument is required when using 'pat' authentication type")

    if authentication == "env":
        return StaticTokenSource(
            pat,
            "AZURE_DEVOPS_PAT environment variable is required when using 'env' authentication type",
        )

    if authentication == "azcli":
        # Must be set before DefaultAzureCredential is constructed, which
        # reads it to decide which credentials to include.
        os.environ[TOKEN_CREDENTIALS_ENV] = DEV_TOKEN_CREDENTIALS
        return ChainedCredentialSource.from_environment(tenant_id)

    if authentication != "interactive":
        logger.warning(
            "Unknown authentication type, using interactive",
            extra={"event_data": {"requested": authentication, "strategy": "interactive"}},
        )
    return InteractiveSessionSource(tenant_id)
