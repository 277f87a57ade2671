"""Create QMS Guard DynamoDB tables and seed a demo actor directory.

Usage:
    python scripts/seed_dynamodb.py --endpoint-url http://localhost:4566
"""

from __future__ import annotations

import argparse
from typing import Any

import boto3

TABLE_DEFINITIONS: list[dict[str, Any]] = [
    {"name": "qmsguard-nc-records"},
    {"name": "qmsguard-activity-log"},
    {"name": "qmsguard-actors"},
    {"name": "qmsguard-notification-failures"},
]

DEMO_ACTORS: list[dict[str, Any]] = [
    {"id": "admin-1", "roles": ["admin"], "department_id": "", "full_name": "Site Administrator"},
    {"id": "qa-1", "roles": ["qa"], "department_id": "", "full_name": "QA Officer"},
    {"id": "verifier-1", "roles": ["verifier"], "department_id": "", "full_name": "Verifier"},
    {"id": "manager-ops", "roles": ["manager"], "department_id": "ops", "full_name": "Operations Manager"},
    {"id": "rp-1", "roles": ["responsible_person"], "department_id": "ops", "full_name": "Shift Lead"},
    {"id": "worker-1", "roles": ["viewer"], "department_id": "ops", "full_name": "Line Worker"},
]

DEPARTMENT_MANAGERS: dict[str, str] = {"ops": "manager-ops"}


def create_tables(ddb: Any, suffix: str = "") -> None:
    """Create all QMS Guard tables. Skips if table already exists."""
    client = ddb.meta.client
    existing = client.list_tables().get("TableNames", [])

    for defn in TABLE_DEFINITIONS:
        table_name = f"{defn['name']}{suffix}"
        if table_name in existing:
            print(f"  Table {table_name} already exists, skipping")
            continue
        client.create_table(
            TableName=table_name,
            KeySchema=[
                {"AttributeName": "PK", "KeyType": "HASH"},
                {"AttributeName": "SK", "KeyType": "RANGE"},
            ],
            AttributeDefinitions=[
                {"AttributeName": "PK", "AttributeType": "S"},
                {"AttributeName": "SK", "AttributeType": "S"},
            ],
            BillingMode="PAY_PER_REQUEST",
        )
        print(f"  Created table {table_name}")


def seed_actors(ddb: Any, suffix: str = "") -> None:
    """Load the demo actor directory and department-manager mapping."""
    tbl = ddb.Table(f"qmsguard-actors{suffix}")
    with tbl.batch_writer() as batch:
        for actor in DEMO_ACTORS:
            batch.put_item(Item={
                "PK": f"USER#{actor['id']}", "SK": "PROFILE",
                "roles": set(actor["roles"]),
                "department_id": actor["department_id"],
                "full_name": actor["full_name"],
            })
        for department_id, manager_id in DEPARTMENT_MANAGERS.items():
            batch.put_item(Item={
                "PK": f"DEPT#{department_id}", "SK": "MANAGER", "manager_id": manager_id,
            })
    print(f"  Seeded {len(DEMO_ACTORS)} actors and {len(DEPARTMENT_MANAGERS)} department managers")


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed DynamoDB tables for QMS Guard")
    parser.add_argument("--endpoint-url", default=None, help="DynamoDB endpoint (e.g. http://localhost:4566)")
    parser.add_argument("--table-suffix", default="", help="Table name suffix (e.g. -dev)")
    parser.add_argument("--region", default="us-east-1", help="AWS region")
    parser.add_argument("--skip-actors", action="store_true", help="Create tables only")
    args = parser.parse_args()

    kwargs: dict[str, Any] = {"region_name": args.region}
    if args.endpoint_url:
        kwargs["endpoint_url"] = args.endpoint_url

    ddb = boto3.resource("dynamodb", **kwargs)

    print("Creating tables...")
    create_tables(ddb, suffix=args.table_suffix)

    if not args.skip_actors:
        print("Seeding actors...")
        seed_actors(ddb, suffix=args.table_suffix)

    print("Done!")


if __name__ == "__main__":
    main()
