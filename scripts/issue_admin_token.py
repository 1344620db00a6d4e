"""
Script to issue a bearer token for an admin, for use against the admin inbox routes.

Usage:
    python scripts/issue_admin_token.py <admin_id> [--role super-admin] [--minutes 120]
"""
import argparse
import sys
from datetime import timedelta
from pathlib import Path

# Add parent directory to path to import modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from auth.auth_utils import create_access_token
from constants import ADMIN_ROLES


def main():
    parser = argparse.ArgumentParser(description="Issue an admin access token")
    parser.add_argument("admin_id", help="Identifier recorded as repliedBy on replies")
    parser.add_argument("--role", default="admin", choices=ADMIN_ROLES)
    parser.add_argument("--minutes", type=int, default=60, help="Token lifetime in minutes")
    args = parser.parse_args()

    token = create_access_token(
        {"sub": args.admin_id, "role": args.role},
        expires_delta=timedelta(minutes=args.minutes)
    )
    print(token)


if __name__ == "__main__":
    main()
