"""
Tool registration, grouped by domain.

Each domain registers its tools on the FastMCP server only when enabled.
Tools get Azure DevOps clients from the AuthContext's connection provider on
every call; they never handle credentials themselves. Authentication
failures (AuthError) propagate out of the tool and FastMCP reports them to
the agent as a tool error.

Responses are JSON text: msrest models are converted with ``as_dict()``.
"""

import asyncio
import json
import logging
from typing import Any, Iterable

from fastmcp import FastMCP

from ado_mcp.connection import AuthContext
from ado_mcp.domains import Domain

logger = logging.getLogger(__name__)

# Maps each domain to the tools it registers.
DOMAIN_TOOLS: dict[Domain, list[str]] = {
    Domain.CORE: ["core_list_projects", "core_list_project_teams"],
    Domain.REPOSITORIES: ["repo_list_repos_by_project", "repo_list_branches_by_repo"],
}


def _to_json(items: Iterable[Any]) -> str:
    return json.dumps([item.as_dict() for item in items], indent=2)


def configure_core_tools(mcp: FastMCP, context: AuthContext) -> None:
    @mcp.tool(name="core_list_projects", description="List the projects in the Azure DevOps organization.")
    async def core_list_projects(
        state_filter: str | None = None,
        top: int | None = None,
        skip: int | None = None,
    ) -> str:
        connection = await context.connection_provider()
        core_client = connection.clients.get_core_client()
        projects = await asyncio.to_thread(core_client.get_projects, state_filter=state_filter, top=top, skip=skip)
        logger.info("Tool executed: core_list_projects")
        return _to_json(projects)

    @mcp.tool(name="core_list_project_teams", description="List the teams of an Azure DevOps project.")
    async def core_list_project_teams(
        project: str,
        mine: bool | None = None,
        top: int | None = None,
        skip: int | None = None,
    ) -> str:
        connection = await context.connection_provider()
        core_client = connection.clients.get_core_client()
        teams = await asyncio.to_thread(core_client.get_teams, project, mine=mine, top=top, skip=skip)
        logger.info("Tool executed: core_list_project_teams")
        return _to_json(teams)


def configure_repo_tools(mcp: FastMCP, context: AuthContext) -> None:
    @mcp.tool(name="repo_list_repos_by_project", description="List the Git repositories of a project.")
    async def repo_list_repos_by_project(project: str) -> str:
        connection = await context.connection_provider()
        git_client = connection.clients.get_git_client()
        repositories = await asyncio.to_thread(git_client.get_repositories, project)
        logger.info("Tool executed: repo_list_repos_by_project")
        return _to_json(repositories)

    @mcp.tool(name="repo_list_branches_by_repo", description="List the branches of a Git repository.")
    async def repo_list_branches_by_repo(repository_id: str, project: str | None = None) -> str:
        connection = await context.connection_provider()
        git_client = connection.clients.get_git_client()
        branches = await asyncio.to_thread(git_client.get_branches, repository_id, project=project)
        logger.info("Tool executed: repo_list_branches_by_repo")
        return _to_json(branches)


_CONFIGURERS = {
    Domain.CORE: configure_core_tools,
    Domain.REPOSITORIES: configure_repo_tools,
}


def configure_all_tools(mcp: FastMCP, context: AuthContext, enabled_domains: set[Domain]) -> None:
    for domain in Domain:
        if domain in enabled_domains:
            _CONFIGURERS[domain](mcp, context)
