"""
Azure DevOps MCP server entry point.

Startup sequence:

    1. Read environment settings and parse the command line
    2. Resolve the authentication type into an AuthContext
       (token provider + connection provider + user agent)
    3. Register the tools of the enabled domains
    4. Serve MCP over stdio

A missing PAT for the "pat" or "env" authentication type is fatal: the
process prints a one-line error to stderr and exits with status 1 before
any token is requested. Every other authentication failure happens lazily,
inside a tool call, and is reported to the agent as a tool error.

Running the server:
    mcp-server-azuredevops contoso
    mcp-server-azuredevops contoso -a azcli -d core repositories
    AZURE_DEVOPS_PAT=... mcp-server-azuredevops contoso -a env
"""

import json
import logging
import sys
from typing import Any

from fastmcp import FastMCP
from fastmcp.server.middleware import CallNext, Middleware, MiddlewareContext

from ado_mcp import __version__
from ado_mcp.auth import ConfigurationError
from ado_mcp.config import Settings, parse_args, settings
from ado_mcp.connection import AuthContext, UserAgentComposer, create_auth_context
from ado_mcp.domains import Domain, DomainsManager
from ado_mcp.tools import configure_all_tools

logger = logging.getLogger("ado-mcp")

# ---------------------------------------------------------------------------
# Structured JSON Logging
# ---------------------------------------------------------------------------
# stdout carries the MCP stdio protocol, so every log line goes to stderr.
# MCP clients usually capture the server's stderr into their own log files,
# where one JSON object per line stays greppable.


class JSONLogFormatter(logging.Formatter):
    """
    Formats log records as single-line JSON objects.

    Example output:

        {"timestamp": "2026-10-19 10:30:00,123", "level": "INFO", "logger": "ado_mcp.auth",
         "message": "Interactive sign-in succeeded", "strategy": "interactive"}
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        # Structured fields passed via logger.info("msg", extra={"event_data": {...}})
        if hasattr(record, "event_data"):
            log_entry.update(record.event_data)
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry)


def configure_logging(level: str) -> None:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONLogFormatter())
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        handlers=[handler],
        force=True,
    )


# ---------------------------------------------------------------------------
# Client identification middleware
# ---------------------------------------------------------------------------


class ClientInfoMiddleware(Middleware):
    """
    Appends the MCP client's name and version to the Azure DevOps User-Agent.

    The client announces itself in the initialize handshake; the first request
    after that carries a session with the client parameters. The composer
    ignores every append after the first one.
    """

    def __init__(self, user_agent_composer: UserAgentComposer):
        self._composer = user_agent_composer

    def _client_info(self, context: MiddlewareContext) -> Any:
        fastmcp_context = context.fastmcp_context
        if fastmcp_context is None:
            return None
        try:
            session = fastmcp_context.session
        except (RuntimeError, ValueError):
            return None
        params = getattr(session, "client_params", None)
        return getattr(params, "client_info", None)

    async def on_request(self, context: MiddlewareContext, call_next: CallNext) -> Any:
        client_info = self._client_info(context)
        if client_info is not None:
            self._composer.append_client_info(client_info.name, client_info.version)
        return await call_next(context)


# ---------------------------------------------------------------------------
# Server assembly
# ---------------------------------------------------------------------------


def create_server(context: AuthContext, enabled_domains: set[Domain]) -> FastMCP:
    mcp = FastMCP(
        name="Azure DevOps MCP Server",
        version=__version__,
        instructions=(
            "Access Azure DevOps projects, teams and Git repositories of the "
            "configured organization."
        ),
        middleware=[ClientInfoMiddleware(context.user_agent_composer)],
    )
    configure_all_tools(mcp, context, enabled_domains)
    return mcp


def bootstrap(argv: list[str] | None = None, env: Settings | None = None) -> FastMCP:
    """
    Build the configured server without running it.

    Exits with status 1 if the selected authentication type is missing its
    personal access token.
    """
    env = env or settings
    config = parse_args(argv, env)
    user_agent_composer = UserAgentComposer(__version__)

    try:
        context = create_auth_context(config, env, user_agent_composer)
    except ConfigurationError as exc:
        print(f"Error: {exc.message}", file=sys.stderr)
        raise SystemExit(1) from exc

    enabled_domains = DomainsManager(config.domains).get_enabled_domains()
    logger.info(
        "Server configured",
        extra={
            "event_data": {
                "organization": config.organization,
                "strategy": config.authentication,
                "domains": sorted(domain.value for domain in enabled_domains),
            }
        },
    )
    return create_server(context, enabled_domains)


def main(argv: list[str] | None = None) -> None:
    configure_logging(settings.log_level)
    mcp = bootstrap(argv)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
