"""
Organization to tenant lookup.

Azure DevOps reports the Entra ID tenant that backs an organization in the
``x-vss-resourcetenant`` response header of the organization's VSSPS
endpoint, even for anonymous requests. Knowing the tenant lets interactive
sign-in go straight to the right authority and lets the Azure CLI
credential request a token for the right directory.
"""

import logging

import httpx

logger = logging.getLogger(__name__)

VSSPS_URL_TEMPLATE = "https://vssps.dev.azure.com/{organization}"
TENANT_HEADER = "x-vss-resourcetenant"

# Reported for organizations that are not backed by a tenant (MSA-only).
EMPTY_TENANT = "00000000-0000-0000-0000-000000000000"


def get_org_tenant(organization: str, client: httpx.Client | None = None) -> str | None:
    """
    Look up the tenant ID of an organization.

    Args:
        organization: Azure DevOps organization name
        client: Optional httpx client (tests pass one with a MockTransport)

    Returns:
        The tenant ID, or None if it cannot be determined
    """
    url = VSSPS_URL_TEMPLATE.format(organization=organization)
    try:
        if client is not None:
            response = client.get(url)
        else:
            with httpx.Client(timeout=10.0) as own_client:
                response = own_client.get(url)
    except httpx.HTTPError as exc:
        logger.warning("Tenant lookup failed for %s: %s", organization, exc)
        return None

    tenant_id = response.headers.get(TENANT_HEADER)
    if not tenant_id or tenant_id == EMPTY_TENANT:
        logger.info("No tenant reported for organization %s", organization)
        return None

    logger.info(
        "Resolved organization tenant",
        extra={"event_data": {"organization": organization, "tenant": tenant_id}},
    )
    return tenant_id
