"""Grant or revoke the admin role on an existing account in Supabase."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

ROLES = ("landlord", "admin")


def parse_args() -> argparse.Namespace:
    """Parse CLI arguments."""
    parser = argparse.ArgumentParser(
        description="Set the role of one row in public.accounts.",
    )
    parser.add_argument(
        "account_id",
        type=str,
        help="Account id (the Supabase auth user id).",
    )
    parser.add_argument(
        "--role",
        type=str,
        default="admin",
        choices=ROLES,
        help="Role to store (default: admin).",
    )
    return parser.parse_args()


def set_role(account_id: str, role: str) -> dict:
    """Update the account's role and return the updated row."""
    if role not in ROLES:
        raise ValueError(f"role must be one of {', '.join(ROLES)}")

    from app.utils.supabase_client import get_service_client

    client = get_service_client()
    rows = (
        client.table("accounts").update({"role": role}).eq("id", account_id).execute().data
    )
    if not rows:
        raise RuntimeError(f"Account {account_id} not found; it is created on first sign-in")
    return rows[0]


def main() -> None:
    """CLI entry point."""
    args = parse_args()
    account = set_role(args.account_id, args.role)
    print(f"Account {account['id']} now has role {account['role']}")


if __name__ == "__main__":
    main()
