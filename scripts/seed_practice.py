#!/usr/bin/env python3
"""
Create a practice (tenant).

Prints the new practice id, which the SMS provider adapter sends as
`tenantId` on every webhook call.

Usage:
    python scripts/seed_practice.py "Smile Dental" --sms-number +61400000000 --mode auto
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from dotenv import load_dotenv
load_dotenv()

from app.core.scheduling.calendar import DEFAULT_BUSINESS_HOURS
from app.infra.database import close_db, get_db_context, init_db
from app.models.database import BookingMode, Practice


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create a practice")
    parser.add_argument("name", help="Practice name used in replies")
    parser.add_argument("--sms-number", default=None, help="Number replies are sent from")
    parser.add_argument("--phone", default=None, help="Practice phone number")
    parser.add_argument("--timezone", default="Australia/Sydney")
    parser.add_argument(
        "--mode",
        choices=[mode.value for mode in BookingMode],
        default=BookingMode.MANUAL.value,
        help="auto books immediately, manual waits for staff to confirm",
    )
    parser.add_argument("--create-tables", action="store_true", help="Run init_db first")
    return parser.parse_args()


async def main() -> int:
    args = parse_args()

    try:
        if args.create_tables:
            await init_db()

        async with get_db_context() as db:
            practice = Practice(
                name=args.name,
                phone=args.phone,
                sms_reply_number=args.sms_number,
                timezone=args.timezone,
                business_hours=DEFAULT_BUSINESS_HOURS,
                booking_mode=BookingMode(args.mode),
            )
            db.add(practice)
            await db.flush()
            practice_id = practice.id
    finally:
        await close_db()

    print(f"Created practice {args.name!r}: {practice_id}")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
