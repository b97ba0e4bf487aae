from __future__ import annotations

from bizflow.mobile.domain.entities import TenantMembership, UserAccount
from bizflow.mobile.infrastructure.repositories.in_memory import InMemoryUserDirectory

DEMO_PASSWORD = "BizFlow#2024"

DEMO_OWNER_EMAIL = "owner@bizflow.dev"
DEMO_STAFF_EMAIL = "staff@bizflow.dev"
DEMO_ORPHAN_EMAIL = "orphan@bizflow.dev"


def seed_demo_users(directory: InMemoryUserDirectory, password: str = DEMO_PASSWORD) -> None:
    """Demo accounts for local development and the API tests."""
    hashed = directory.hasher.hash(password)
    directory.add(
        UserAccount(
            id="user-owner",
            email=DEMO_OWNER_EMAIL,
            role="owner",
            password_hash=hashed,
            permissions=("customers:read", "customers:write", "orders:read", "orders:write"),
            memberships=(
                TenantMembership(tenant_id="tenant-acme", name="Acme Retail", role="owner"),
                TenantMembership(tenant_id="tenant-globex", name="Globex Wholesale", role="manager"),
            ),
        )
    )
    directory.add(
        UserAccount(
            id="user-staff",
            email=DEMO_STAFF_EMAIL,
            role="staff",
            password_hash=hashed,
            permissions=("customers:read",),
            memberships=(TenantMembership(tenant_id="tenant-acme", name="Acme Retail", role="staff"),),
        )
    )
    # no tenant memberships: exercises TENANT_ACCESS_DENIED at login
    directory.add(
        UserAccount(
            id="user-orphan",
            email=DEMO_ORPHAN_EMAIL,
            role="staff",
            password_hash=hashed,
        )
    )
