"""
CLI utility to acquire an Azure DevOps token the way the server would.

Useful when an MCP client reports authentication errors: it runs the same
token provider as the server, outside of any MCP session, and prints who the
token belongs to and when it expires.

Usage examples:

    # Interactive sign-in (opens a browser)
    uv run python -m scripts.get_token

    # Azure CLI session, scoped to a tenant
    uv run python -m scripts.get_token -a azcli --tenant 72f988bf-86f1-41af-91ab-2d7cd011db47

    # Print the raw token as well
    uv run python -m scripts.get_token -a azcli --show-token

Claims are decoded WITHOUT signature verification: this is a diagnostic for
tokens we just received from the identity platform, never a validation step.
Personal access tokens are opaque strings and have no claims to show.
"""

import argparse
import asyncio
import datetime
import sys
from dataclasses import dataclass

import jwt

from ado_mcp.auth import AuthError, create_authenticator
from ado_mcp.config import AUTHENTICATION_TYPES, settings


@dataclass(frozen=True)
class TokenDescription:
    """
    Claims of interest from an Entra ID access token.

    Attributes:
        subject: The "upn", "unique_name" or "sub" claim, whichever is present
        tenant: The "tid" claim
        audience: The "aud" claim (the Azure DevOps resource ID)
        expires: The "exp" claim as an aware datetime, if present
    """

    subject: str | None
    tenant: str | None
    audience: str | None
    expires: datetime.datetime | None


def describe_token(token: str) -> TokenDescription | None:
    """Decode a JWT access token without verification. Returns None for opaque tokens."""
    try:
        claims = jwt.decode(token, options={"verify_signature": False})
    except jwt.DecodeError:
        return None

    expires = None
    if "exp" in claims:
        expires = datetime.datetime.fromtimestamp(claims["exp"], tz=datetime.timezone.utc)

    return TokenDescription(
        subject=claims.get("upn") or claims.get("unique_name") or claims.get("sub"),
        tenant=claims.get("tid"),
        audience=claims.get("aud"),
        expires=expires,
    )


def main() -> None:
    parser = argparse.ArgumentParser(description="Acquire an Azure DevOps token for diagnostics.")
    parser.add_argument(
        "-a",
        "--authentication",
        choices=AUTHENTICATION_TYPES,
        default=settings.default_authentication,
        help="Authentication type (same values as the server)",
    )
    parser.add_argument("-t", "--tenant", help="Azure tenant ID")
    parser.add_argument("-p", "--pat", help="Personal access token for 'pat'")
    parser.add_argument("--show-token", action="store_true", help="Also print the raw token")
    args = parser.parse_args()

    pat = settings.azure_devops_pat if args.authentication == "env" else args.pat

    try:
        token_provider = create_authenticator(args.authentication, args.tenant, pat)
        token = asyncio.run(token_provider())
    except AuthError as exc:
        print(f"Error: {exc.message}", file=sys.stderr)
        sys.exit(1)

    description = describe_token(token)
    print(f"Authentication: {args.authentication}")
    if description is None:
        print("Token:          opaque (personal access token)")
    else:
        print(f"Subject:        {description.subject}")
        print(f"Tenant:         {description.tenant}")
        print(f"Audience:       {description.audience}")
        if description.expires is not None:
            print(f"Expires:        {description.expires.isoformat()}")

    if args.show_token:
        print()
        print(f"Token: {token}")


if __name__ == "__main__":
    main()
