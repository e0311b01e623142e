"""CLI for tenant administration.

Usage::

    python -m scripts.manage_tenant <command> [options]

Commands:
    create-tenant       Create a new tenant
    list-tenants        List all tenants
    deactivate-tenant   Deactivate a tenant (its header, token claim and
                        subdomain stop resolving)
"""

from __future__ import annotations

import argparse
import sys
from collections.abc import Callable

from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session

from booking_core.config import settings
from booking_core.storage.orm import Tenant


def get_sync_session() -> Session:
    """Create sync session for CLI operations.

    Uses the same database URL as the async app (psycopg v3
    handles both sync and async natively). Tenants are not
    tenant-owned, so no isolation hooks are needed here.
    """
    engine = create_engine(settings.database_url)
    return Session(engine)


def create_tenant(args: argparse.Namespace) -> None:
    """Create a new tenant."""
    subdomain = args.subdomain.lower() if args.subdomain else None
    with get_sync_session() as session:
        existing = session.execute(
            select(Tenant).where(Tenant.name == args.name)
        ).scalar_one_or_none()
        if existing is not None:
            print(f"Tenant already exists: {args.name}", file=sys.stderr)
            sys.exit(1)

        if subdomain is not None:
            taken = session.execute(
                select(Tenant).where(Tenant.subdomain == subdomain)
            ).scalar_one_or_none()
            if taken is not None:
                print(f"Subdomain already in use: {subdomain}", file=sys.stderr)
                sys.exit(1)

        tenant = Tenant(name=args.name, subdomain=subdomain, is_active=True)
        session.add(tenant)
        session.commit()
        print(f"Tenant created: {args.name} (id: {tenant.id})")


def list_tenants(_args: argparse.Namespace) -> None:
    """List all tenants with their subdomain and status."""
    with get_sync_session() as session:
        tenants = session.execute(select(Tenant).order_by(Tenant.name)).scalars().all()

        if not tenants:
            print("No tenants found.")
            return

        print("Tenants:")
        for i, tenant in enumerate(tenants, 1):
            status = "active" if tenant.is_active else "inactive"
            subdomain = tenant.subdomain or "-"
            print(f"  {i}. {tenant.name} [{subdomain}] ({status}) id={tenant.id}")


def deactivate_tenant(args: argparse.Namespace) -> None:
    """Deactivate a tenant."""
    with get_sync_session() as session:
        tenant = session.execute(
            select(Tenant).where(Tenant.name == args.name)
        ).scalar_one_or_none()
        if tenant is None:
            print(f"Tenant not found: {args.name}", file=sys.stderr)
            sys.exit(1)

        if not tenant.is_active:
            print(f"Tenant already inactive: {args.name}", file=sys.stderr)
            sys.exit(1)

        tenant.is_active = False
        session.commit()
        print(f"Tenant deactivated: {args.name}")


def main() -> None:
    """Parse arguments and dispatch to command handler."""
    parser = argparse.ArgumentParser(description="Tenant management CLI")
    sub = parser.add_subparsers(dest="command", required=True)

    # create-tenant
    p = sub.add_parser("create-tenant", help="Create a new tenant")
    p.add_argument("--name", required=True, help="Tenant name")
    p.add_argument("--subdomain", default=None, help="Host label, e.g. 'acme'")

    # list-tenants
    sub.add_parser("list-tenants", help="List all tenants")

    # deactivate-tenant
    p = sub.add_parser("deactivate-tenant", help="Deactivate a tenant")
    p.add_argument("--name", required=True, help="Tenant name")

    args = parser.parse_args()
    commands: dict[str, Callable[[argparse.Namespace], None]] = {
        "create-tenant": create_tenant,
        "list-tenants": list_tenants,
        "deactivate-tenant": deactivate_tenant,
    }
    commands[args.command](args)


if __name__ == "__main__":
    main()
