#!/usr/bin/env python3
"""
Mint bearer tokens for local development.
Tokens carry the same claims the hosted identity service issues, signed with
JWT_SECRET_KEY from your .env file.

Usage: python scripts/generate_token.py <identity_id> [email] [--hours N]
"""

import argparse
import uuid
from datetime import timedelta

from retinascan.identity import issue_dev_token


def main():
    parser = argparse.ArgumentParser(description="Mint a development bearer token")
    parser.add_argument("identity_id", nargs="?", help="account id (random UUID if omitted)")
    parser.add_argument("email", nargs="?", default=None)
    parser.add_argument("--hours", type=int, default=24)
    opts = parser.parse_args()

    identity_id = opts.identity_id or str(uuid.uuid4())
    token = issue_dev_token(identity_id, opts.email, expires_in=timedelta(hours=opts.hours))

    print("=" * 70)
    print("RetinaScan Development Token")
    print("=" * 70)
    print(f"\nIdentity id: {identity_id}")
    print(f"Email:       {opts.email or '-'}")
    print(f"Expires in:  {opts.hours}h\n")
    print(token)
    print("\n" + "=" * 70)
    print("Use it as:  Authorization: Bearer <token>")
    print("New identities must POST /api/auth/profile before other calls.")
    print("=" * 70)


if __name__ == "__main__":
    main()
