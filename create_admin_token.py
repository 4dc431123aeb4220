#!/usr/bin/env python3
"""
Print a bearer token with the admin role for local development.

In production admin tokens come from the identity provider; this signs one
with the service's own SECRET_KEY so the admin endpoints can be exercised
locally.

Usage:
    python create_admin_token.py admin@example.com --minutes 120
"""
import argparse
import os
import sys
from datetime import timedelta

sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from shared.utils import create_access_token

def main():
    parser = argparse.ArgumentParser(description="Issue a local admin token")
    parser.add_argument("subject", help="Admin identifier (uid or e-mail)")
    parser.add_argument("--minutes", type=int, default=60, help="Token lifetime")
    args = parser.parse_args()

    token = create_access_token(
        {"sub": args.subject, "role": "admin"},
        expires_delta=timedelta(minutes=args.minutes),
    )
    print(token)

if __name__ == "__main__":
    main()
