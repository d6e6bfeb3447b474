#!/usr/bin/env python3
"""
Seed the database with departments and, optionally, sample claims.

Creates the schema, ensures the configured departments exist (each with the
default float), and with ``--samples`` submits a spread of receipts from a
handful of staff, approves some of them and bundles those into a top-up
request so every persona screen has something to show.

Usage:
    python3 scripts/seed_data.py
    python3 scripts/seed_data.py --reset --samples 40
    DATABASE_URL=postgresql://... python3 scripts/seed_data.py
"""

import argparse
import random
import sys
from datetime import timedelta
from decimal import Decimal
from pathlib import Path

# ---------------------------------------------------------------------------
# Project root on sys.path
# ---------------------------------------------------------------------------
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

# ---------------------------------------------------------------------------
# Sample data
# ---------------------------------------------------------------------------
MERCHANTS = {
    "Port and Terminal Operations": ["PSA Corporation Limited", "Jurong Port Pte Ltd"],
    "Transport and Vehicle": ["Shell Singapore", "Esso Singapore", "URA Car Park"],
    "Business Meals": ["Ya Kun Kaya Toast", "Kopitiam", "Din Tai Fung"],
    "Hardware and Operational Supplies": ["SHEN YEE HARDWARE TRADING", "Mr DIY"],
    "Contractor and Pass Fees": ["MPA Port Pass Office", "Certis Cisco"],
    "Fees": ["Singapore Post", "Ninja Van"],
    "Business Travel and Petty Cash": ["Grab Singapore", "ComfortDelGro Taxi"],
    "Other": ["7-Eleven", "Watsons"],
}

AMOUNT_RANGES = {
    "Port and Terminal Operations": (50, 500),
    "Transport and Vehicle": (20, 150),
    "Business Meals": (10, 120),
    "Hardware and Operational Supplies": (15, 350),
    "Contractor and Pass Fees": (30, 200),
    "Fees": (5, 80),
    "Business Travel and Petty Cash": (8, 60),
    "Other": (3, 40),
}

STAFF = {
    "Administration": ["John Tan", "Mary Lim"],
    "Operations": ["Sarah Chen", "Michael Lee"],
    "Logistics": ["Robert Goh", "Emily Teo"],
}

PROJECT_CODES = [
    "Jurong Port Container Ops",
    "Fleet Vehicle Service",
    "Office Supplies Restock",
    "Security Pass Renewal",
    None,
]

GST_RATE = Decimal("0.09")


def _parse_args(argv):
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--database-url", help="Override the configured database URL.")
    parser.add_argument("--config", type=Path, help="Path to a YAML configuration set.")
    parser.add_argument("--reset", action="store_true", help="Drop all tables first.")
    parser.add_argument(
        "--samples", type=int, default=0, metavar="N",
        help="Submit N sample receipts across the seeded departments.",
    )
    parser.add_argument("--random-seed", type=int, default=7)
    return parser.parse_args(argv)


def _seed_samples(orchestrator, departments, count, rng, clock):
    from pettycash_kernel.domain.values import ActorRole

    by_name = {d.name: d for d in departments}
    submitted = []
    for i in range(count):
        dept_name = rng.choice([n for n in STAFF if n in by_name])
        department = by_name[dept_name]
        staff = orchestrator.get_or_create_staff(rng.choice(STAFF[dept_name]), department.id)

        category = rng.choice(list(MERCHANTS))
        low, high = AMOUNT_RANGES[category]
        amount = Decimal(rng.randint(low * 100, high * 100)) / 100
        gst = (amount * GST_RATE / (1 + GST_RATE)).quantize(Decimal("0.01"))
        transaction_date = clock.today() - timedelta(days=rng.randint(0, 40))

        receipt = orchestrator.create_receipt(
            staff_id=staff.id,
            department_id=department.id,
            image_url=f"/files/receipts/{department.id}/sample-{i}.jpg",
            image_key=f"receipts/{department.id}/sample-{i}.jpg",
            category=category,
            merchant_name=rng.choice(MERCHANTS[category]),
            transaction_date=transaction_date,
            amount_total=amount,
            amount_gst=gst,
            project_code=rng.choice(PROJECT_CODES),
            ai_confidence=rng.randint(55, 99),
            ai_reasoning="Sample receipt generated by the seed script.",
        )
        submitted.append(receipt)

    # Approve roughly two thirds, reject a few, leave the rest for review.
    approved_by_department = {}
    for receipt in submitted:
        roll = rng.random()
        if roll < 0.65:
            orchestrator.admin_approve(receipt.id, actor_name="Seed Admin")
            approved_by_department.setdefault(receipt.department_id, []).append(receipt.id)
        elif roll < 0.75:
            orchestrator.reject_receipt(
                receipt.id, "Duplicate submission", ActorRole.ADMIN, "Seed Admin",
            )

    batches = []
    for department_id, receipt_ids in approved_by_department.items():
        if len(receipt_ids) >= 2:
            batches.append(orchestrator.create_batch(
                department_id, receipt_ids[: len(receipt_ids) // 2 + 1], actor_name="Seed Admin",
            ))
    return submitted, batches


def main(argv=None) -> int:
    args = _parse_args(argv)

    from pettycash_config import get_active_config
    from pettycash_kernel.db.engine import (
        create_tables,
        drop_tables,
        get_session,
        init_engine_from_url,
    )
    from pettycash_kernel.db.immutability import register_immutability_listeners
    from pettycash_kernel.domain.clock import SystemClock
    from pettycash_kernel.logging_config import configure_logging
    from pettycash_services import ClaimsOrchestrator

    config = get_active_config(args.config)
    configure_logging(level=config.log_level)
    database_url = args.database_url or config.database_url

    print()
    print(f"  [1/4] Connecting to {database_url.split('@')[-1]}...")
    try:
        init_engine_from_url(database_url, echo=False)
    except Exception as exc:
        print(f"  ERROR: {exc}", file=sys.stderr)
        return 1

    print("  [2/4] Creating schema...")
    if args.reset:
        drop_tables()
    create_tables()
    register_immutability_listeners()

    session = get_session()
    clock = SystemClock()
    try:
        orchestrator = ClaimsOrchestrator(session, config, clock=clock)

        print(f"  [3/4] Seeding {len(config.seed_departments)} departments...")
        departments = orchestrator.seed()

        if args.samples > 0:
            print(f"  [4/4] Submitting {args.samples} sample receipts...")
            receipts, batches = _seed_samples(
                orchestrator, departments, args.samples, random.Random(args.random_seed), clock,
            )
            print(f"        {len(receipts)} receipts, {len(batches)} top-up requests")
        else:
            print("  [4/4] No sample receipts requested.")

        for department in departments:
            balance = orchestrator.get_float(department.id)
            print(
                f"        {department.name:<16} float S${balance.total_float:>9,.2f}"
                f"  remaining S${balance.remaining_float:>9,.2f}"
            )
    finally:
        session.close()

    print()
    return 0


if __name__ == "__main__":
    sys.exit(main())
