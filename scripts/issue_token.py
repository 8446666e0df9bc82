#!/usr/bin/env python3
"""Print a bearer token for a user id (needs AUTH_SECRET in the environment)."""

import argparse

from egym_planner.auth import issue_token

if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("uid", help="User id to embed in the token")
    parser.add_argument("--ttl", type=int, default=None, help="Lifetime in seconds")
    args = parser.parse_args()
    print(issue_token(args.uid, args.ttl))
