"""
Tool domains.

Tools are grouped into domains so that an MCP client can expose only the
part of Azure DevOps it needs (smaller tool lists mean better tool choice by
the model). Domains are chosen on the command line:

    -d all                  every domain (default)
    -d core repositories    only these
    -d core,repositories    same, comma separated
"""

import enum
import logging

logger = logging.getLogger(__name__)


class Domain(str, enum.Enum):
    CORE = "core"
    REPOSITORIES = "repositories"


ALL_DOMAINS = "all"


class DomainsManager:
    """
    Resolves the requested domain names into a set of Domain values.

    Names are case-insensitive. Unknown names are logged and skipped. If
    nothing valid remains, every domain is enabled.
    """

    def __init__(self, domains: str | list[str] | None = None):
        self._enabled = self._resolve(domains)

    @staticmethod
    def _normalize(domains: str | list[str] | None) -> list[str]:
        if domains is None:
            return [ALL_DOMAINS]
        if isinstance(domains, str):
            domains = [domains]
        names = []
        for item in domains:
            names.extend(part.strip().lower() for part in item.split(",") if part.strip())
        return names

    def _resolve(self, domains: str | list[str] | None) -> set[Domain]:
        names = self._normalize(domains)
        if not names or ALL_DOMAINS in names:
            return set(Domain)

        valid = {domain.value for domain in Domain}
        enabled = set()
        for name in names:
            if name in valid:
                enabled.add(Domain(name))
            else:
                logger.warning(
                    "Ignoring unknown domain '%s'. Available domains: %s",
                    name,
                    ", ".join(sorted(valid)),
                )

        if not enabled:
            logger.warning("No valid domains specified, enabling all domains")
            return set(Domain)
        return enabled

    def get_enabled_domains(self) -> set[Domain]:
        return set(self._enabled)

    def is_enabled(self, domain: Domain) -> bool:
        return domain in self._enabled
