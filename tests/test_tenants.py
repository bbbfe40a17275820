"""
Tests for the organization tenant lookup (ado_mcp/tenants.py).

httpx.MockTransport stands in for vssps.dev.azure.com.
"""

import httpx

from ado_mcp.tenants import EMPTY_TENANT, TENANT_HEADER, get_org_tenant


def client_returning(headers=None, status_code=404, seen=None):
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(str(request.url))
        return httpx.Response(status_code, headers=headers or {})

    return httpx.Client(transport=httpx.MockTransport(handler))


def test_tenant_read_from_header():
    seen = []
    client = client_returning({TENANT_HEADER: "72f988bf-86f1-41af-91ab-2d7cd011db47"}, seen=seen)

    assert get_org_tenant("contoso", client) == "72f988bf-86f1-41af-91ab-2d7cd011db47"
    assert seen == ["https://vssps.dev.azure.com/contoso"]


def test_empty_tenant_is_none():
    assert get_org_tenant("contoso", client_returning({TENANT_HEADER: EMPTY_TENANT})) is None


def test_missing_header_is_none():
    assert get_org_tenant("contoso", client_returning({}, status_code=200)) is None


def test_network_error_is_none():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("offline", request=request)

    client = httpx.Client(transport=httpx.MockTransport(handler))

    assert get_org_tenant("contoso", client) is None
