"""Mint a development bearer token.

Usage:
    python create_token.py SUBJECT [GROUP ...]

The email defaults to ``TOKEN_EMAIL`` and the lifetime to
``TOKEN_DAYS`` (30) days.  The token is signed with ``SECRET_KEY``, so
run it with the same environment as the API.
"""
import os
import sys

from team_hub_api.app.core.security import create_access_token
from team_hub_api.app.schemas.auth import TokenRequest


def main(argv: list[str]) -> int:
    if not argv:
        print(__doc__)
        return 1
    claims = TokenRequest(sub=argv[0], email=os.getenv("TOKEN_EMAIL"), groups=argv[1:])
    days = int(os.getenv("TOKEN_DAYS", "30"))
    print(create_access_token(claims.model_dump(exclude_none=True), expires_delta=days * 24 * 60 * 60))
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
