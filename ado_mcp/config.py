"""
Server configuration: environment settings and command line arguments.

Two sources feed the configuration:

- Environment variables, read through pydantic-settings. These are the values
  a hosting environment decides (log level, the PAT used by the ``env``
  authentication type, GitHub Codespaces markers).
- Command line arguments, parsed with argparse into a frozen ``ServerConfig``.
  This is what an MCP client puts in its server launch command:

      mcp-server-azuredevops contoso -a azcli -d core repositories

The ``ServerConfig`` record is created once at startup and never mutated.
"""

import argparse
from dataclasses import dataclass, field

from pydantic import Field
from pydantic_settings import BaseSettings

from ado_mcp import __version__

AUTHENTICATION_TYPES = ("interactive", "azcli", "env", "pat")

ORGANIZATION_URL_TEMPLATE = "https://dev.azure.com/{organization}"


class Settings(BaseSettings):
    """
    Environment-derived settings.

    Fields without an explicit alias read from ``ADO_MCP_<FIELD>``. The PAT
    and the Codespaces markers use the names other tools already export, so
    they carry a ``validation_alias`` instead of the prefix.
    """

    # Logging verbosity, one of Python's logging level names.
    log_level: str = "warning"

    # Personal access token consumed by the "env" authentication type.
    azure_devops_pat: str | None = Field(default=None, validation_alias="AZURE_DEVOPS_PAT")

    # GitHub Codespaces sets CODESPACES=true and CODESPACE_NAME in every codespace.
    codespaces: str | None = Field(default=None, validation_alias="CODESPACES")
    codespace_name: str | None = Field(default=None, validation_alias="CODESPACE_NAME")

    model_config = {
        "env_prefix": "ADO_MCP_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        # A shared .env file may hold keys meant for other tools.
        "extra": "ignore",
        "populate_by_name": True,
    }

    @property
    def is_codespace(self) -> bool:
        return self.codespaces == "true" and bool(self.codespace_name)

    @property
    def default_authentication(self) -> str:
        """Codespaces have a logged-in Azure CLI but no browser to consent in."""
        return "azcli" if self.is_codespace else "interactive"


settings = Settings()


@dataclass(frozen=True)
class ServerConfig:
    """
    The configuration record produced by the command line.

    Attributes:
        organization: Azure DevOps organization name (e.g. "contoso")
        authentication: One of AUTHENTICATION_TYPES
        pat: Personal access token for the "pat" authentication type
        tenant: Optional Entra ID tenant for "interactive" and "azcli"
        domains: Domain names to enable, or ["all"]
    """

    organization: str
    authentication: str = "interactive"
    pat: str | None = None
    tenant: str | None = None
    domains: list[str] = field(default_factory=lambda: ["all"])

    @property
    def org_url(self) -> str:
        return ORGANIZATION_URL_TEMPLATE.format(organization=self.organization)


def build_parser(default_authentication: str) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mcp-server-azuredevops",
        description="Azure DevOps MCP Server",
    )
    parser.add_argument("organization", help="Azure DevOps organization name")
    parser.add_argument(
        "-d",
        "--domains",
        nargs="+",
        default=["all"],
        help=(
            "Domain(s) to enable: 'all' for everything, or specific domains "
            "like 'core repositories'. Defaults to 'all'."
        ),
    )
    parser.add_argument(
        "-a",
        "--authentication",
        choices=AUTHENTICATION_TYPES,
        default=default_authentication,
        help=(
            "Type of authentication to use: 'interactive', 'azcli', "
            "'env' (uses AZURE_DEVOPS_PAT) or 'pat' (uses --pat)."
        ),
    )
    parser.add_argument(
        "-p",
        "--pat",
        help="Personal Access Token (required when using 'pat' authentication type)",
    )
    parser.add_argument(
        "-t",
        "--tenant",
        help="Azure tenant ID (applied when using 'interactive' and 'azcli' authentication)",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def parse_args(argv: list[str] | None = None, env: Settings | None = None) -> ServerConfig:
    """Parse command line arguments into a ServerConfig."""
    env = env or settings
    args = build_parser(env.default_authentication).parse_args(argv)
    return ServerConfig(
        organization=args.organization,
        authentication=args.authentication,
        pat=args.pat,
        tenant=args.tenant,
        domains=list(args.domains),
    )
