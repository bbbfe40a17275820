"""
Azure DevOps connections built on top of a token provider.

The tools never see credentials. They receive an AuthContext, the single
record assembled at startup, and ask its connection provider for a
connection whenever they need one:

    token provider ──> connection provider ──> Connection(org_url, bearer token)

For OAuth strategies every call re-acquires the token (MSAL and the Azure
CLI keep their own token caches) and builds a fresh Connection, so
credentials stay current without tracking expiry here. A personal access
token never changes, so its connection is built once and returned as-is.
"""

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

from azure.devops.connection import Connection
from msrest.authentication import BasicTokenAuthentication

from ado_mcp.auth import StaticTokenSource, TokenProvider, create_authenticator
from ado_mcp.config import ServerConfig, Settings
from ado_mcp.tenants import get_org_tenant

logger = logging.getLogger(__name__)

ConnectionProvider = Callable[[], Awaitable[Connection]]
ConnectionFactory = Callable[[str, str, str], Connection]


class UserAgentComposer:
    """
    Builds the User-Agent sent with every Azure DevOps request.

    Starts as "AzureDevOps.MCP/<version> (local)". Once the MCP client has
    introduced itself during the handshake, its name and version are
    appended, exactly once.
    """

    def __init__(self, package_version: str):
        self._user_agent = f"AzureDevOps.MCP/{package_version} (local)"
        self._client_info_appended = False

    @property
    def user_agent(self) -> str:
        return self._user_agent

    def append_client_info(self, name: str | None, version: str | None) -> None:
        if self._client_info_appended or not name or not version:
            return
        self._user_agent = f"{self._user_agent} {name}/{version}"
        self._client_info_appended = True


def bearer_connection(org_url: str, token: str, user_agent: str) -> Connection:
    return Connection(
        base_url=org_url,
        creds=BasicTokenAuthentication({"access_token": token}),
        user_agent=user_agent,
    )


def create_connection_provider(
    token_provider: TokenProvider,
    org_url: str,
    user_agent_composer: UserAgentComposer,
    connection_factory: ConnectionFactory = bearer_connection,
) -> ConnectionProvider:
    """
    Wrap a token provider into a connection provider.

    Args:
        token_provider: Async callable returning a bearer token
        org_url: Organization URL, e.g. "https://dev.azure.com/contoso"
        user_agent_composer: Read on every call so the agent's identity is
                             included once the handshake has happened
        connection_factory: Builds a connection from (org_url, token, user_agent)

    Returns:
        Async callable returning an authenticated Connection
    """
    if isinstance(token_provider, StaticTokenSource):
        connection = token_provider.connect(org_url, user_agent_composer.user_agent)

        async def static_connection() -> Connection:
            return connection

        return static_connection

    async def fresh_connection() -> Connection:
        token = await token_provider()
        return connection_factory(org_url, token, user_agent_composer.user_agent)

    return fresh_connection


@dataclass(frozen=True)
class AuthContext:
    """
    Everything tools need to reach Azure DevOps.

    Attributes:
        org_url: Organization URL
        authentication: The active authentication type
        token_provider: Async callable returning a bearer token (or PAT)
        connection_provider: Async callable returning a Connection
        user_agent_composer: Source of the current User-Agent string
    """

    org_url: str
    authentication: str
    token_provider: TokenProvider
    connection_provider: ConnectionProvider
    user_agent_composer: UserAgentComposer

    @property
    def user_agent(self) -> str:
        return self.user_agent_composer.user_agent


def create_auth_context(
    config: ServerConfig,
    env: Settings,
    user_agent_composer: UserAgentComposer,
    tenant_lookup: Callable[[str], str | None] | None = None,
) -> AuthContext:
    """
    Resolve the configured authentication type into an AuthContext.

    The tenant hint is only resolved for the OAuth strategies. The
    organization's own tenant wins over the --tenant argument.

    Raises:
        ConfigurationError: If the selected PAT strategy has no token
    """
    tenant_lookup = tenant_lookup or get_org_tenant
    tenant_id = None
    pat = None
    if config.authentication == "pat":
        pat = config.pat
    elif config.authentication == "env":
        pat = env.azure_devops_pat
    else:
        tenant_id = tenant_lookup(config.organization) or config.tenant

    token_provider = create_authenticator(config.authentication, tenant_id, pat)
    logger.info(
        "Authentication configured",
        extra={
            "event_data": {
                "organization": config.organization,
                "strategy": config.authentication,
                "tenant": tenant_id,
            }
        },
    )
    return AuthContext(
        org_url=config.org_url,
        authentication=config.authentication,
        token_provider=token_provider,
        connection_provider=create_connection_provider(token_provider, config.org_url, user_agent_composer),
        user_agent_composer=user_agent_composer,
    )
