#!/usr/bin/env python3
"""
Demo seed script — populates a running server with sample data.

!! NOT FOR PRODUCTION !!
Creates users with known passwords. Intended only for local demos and
frontend development.

Usage:
    # Server running on localhost:8000, admin already promoted with
    # demo/promote_admin.py admin@tmcdemo.com
    python demo/seed.py

    python demo/seed.py --base-url http://localhost:9000

Login credentials after seeding:
    ┌──────────────────────────────┬───────────────────┬─────────┐
    │ Email                        │ Password          │ Role    │
    ├──────────────────────────────┼───────────────────┼─────────┤
    │ admin@tmcdemo.com            │ AdminDemo123!     │ ADMIN   │
    │ dr.house@tmcdemo.com         │ HouseDemo123!     │ DOCTOR  │
    │ dr.cuddy@tmcdemo.com         │ CuddyDemo123!     │ DOCTOR  │
    │ alice.chen@example.com       │ AliceDemo123!     │ PATIENT │
    │ bob.martinez@example.com     │ BobDemo123!       │ PATIENT │
    └──────────────────────────────┴───────────────────┴─────────┘
"""

import argparse
import asyncio
import sys

import httpx

BASE_URL = "http://localhost:8000"

ADMIN = {"email": "admin@tmcdemo.com", "password": "AdminDemo123!", "name": "Admin", "role": "patient"}

USERS = [
    {"email": "dr.house@tmcdemo.com", "password": "HouseDemo123!", "name": "Gregory House", "role": "doctor"},
    {"email": "dr.cuddy@tmcdemo.com", "password": "CuddyDemo123!", "name": "Lisa Cuddy", "role": "doctor"},
    {"email": "alice.chen@example.com", "password": "AliceDemo123!", "name": "Alice Chen", "role": "patient"},
    {"email": "bob.martinez@example.com", "password": "BobDemo123!", "name": "Bob Martinez", "role": "patient"},
]

PACKAGES = [
    {"name": "Starter", "credits": 50, "price": "4.99", "display_order": 1},
    {"name": "Standard", "credits": 120, "bonus_credits": 10, "price": "9.99", "display_order": 2},
    {"name": "Clinic", "credits": 1000, "bonus_credits": 150, "price": "69.00", "display_order": 3},
]


async def signup_or_login(client: httpx.AsyncClient, user: dict) -> dict:
    """Return {"headers", "account_id"} for a user, registering them if needed."""
    response = await client.post("/auth/signup", json=user)
    if response.status_code == 201:
        data = response.json()
        print(f"  + {user['email']} ({data['balance']} welcome credits)")
        token = data["token"]
    elif response.status_code == 409:
        login = await client.post(
            "/auth/login", json={"email": user["email"], "password": user["password"]}
        )
        login.raise_for_status()
        token = login.json()["token"]
        print(f"  = {user['email']} already registered")
    else:
        sys.exit(f"signup failed for {user['email']}: {response.text}")

    headers = {"Authorization": f"Bearer {token}"}
    balance = await client.get("/tmc/balance", headers=headers)
    balance.raise_for_status()
    return {"headers": headers, "account_id": balance.json()["account_id"]}


async def seed(base_url: str) -> None:
    async with httpx.AsyncClient(base_url=base_url, timeout=10) as client:
        print("Users:")
        admin = await signup_or_login(client, ADMIN)
        users = {u["email"]: await signup_or_login(client, u) for u in USERS}

        check = await client.get("/admin/cashbox", headers=admin["headers"])
        if check.status_code == 403:
            sys.exit("admin@tmcdemo.com is not an admin yet; run demo/promote_admin.py first")

        print("Packages:")
        for package in PACKAGES:
            response = await client.post(
                "/admin/credit-packages", json=package, headers=admin["headers"]
            )
            response.raise_for_status()
            print(f"  + {package['name']}: {package['credits']} credits for {package['price']}")

        print("Recharges and links:")
        for email in ("alice.chen@example.com", "bob.martinez@example.com"):
            response = await client.post(
                "/tmc/recharge",
                json={"account_id": users[email]["account_id"], "amount": 200, "method": "manual"},
                headers=admin["headers"],
            )
            response.raise_for_status()
            print(f"  + {email} recharged to {response.json()['new_balance']}")

        response = await client.put(
            f"/admin/commission-links/{users['dr.house@tmcdemo.com']['account_id']}",
            json={"superior_account_id": users["dr.cuddy@tmcdemo.com"]["account_id"]},
            headers=admin["headers"],
        )
        response.raise_for_status()
        print(f"  + dr.house reports to dr.cuddy at {response.json()['percentage']}%")

        response = await client.post(
            "/tmc/transfer",
            json={
                "to_account_id": users["bob.martinez@example.com"]["account_id"],
                "amount": 15,
                "reason": "gift",
                "note": "for your next consultation",
            },
            headers=users["alice.chen@example.com"]["headers"],
        )
        response.raise_for_status()
        print("  + alice sent 15 credits to bob")

    print("Done.")


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed the credit ledger with demo data")
    parser.add_argument("--base-url", default=BASE_URL)
    args = parser.parse_args()
    asyncio.run(seed(args.base_url))


if __name__ == "__main__":
    main()
