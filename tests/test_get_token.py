"""Tests for the token diagnostics script (scripts/get_token.py)."""

from scripts.get_token import describe_token


def test_describe_access_token(make_token):
    token = make_token(upn="alice@contoso.com", tenant="tenant-1", exp_hours=1)

    description = describe_token(token)

    assert description.subject == "alice@contoso.com"
    assert description.tenant == "tenant-1"
    assert description.audience == "499b84ac-1321-427f-aa17-267ca6975798"
    assert description.expires is not None


def test_token_without_expiry(make_token):
    description = describe_token(make_token(include_exp=False))

    assert description.expires is None


def test_personal_access_token_is_opaque():
    assert describe_token("not-a-jwt-personal-access-token") is None
