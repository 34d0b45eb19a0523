#!/usr/bin/env python3
"""
Encrypt premium lessons that are still stored as plaintext.

Runs ContentAccessGateway.encrypt_existing_premium_lessons against the
configured database. Dry run by default; pass --apply to write.

Usage:
    python scripts/encrypt_premium_lessons.py            # count candidates
    python scripts/encrypt_premium_lessons.py --apply    # encrypt and commit
"""
import argparse
import asyncio
import sys

from lessonguard.config import settings
from lessonguard.database import AsyncSessionLocal, engine
from lessonguard.services.content_gateway import ContentAccessGateway
from lessonguard.services.entitlement import SubscriptionEntitlement
from lessonguard.services.envelope_encryption import create_envelope_encryption_service
from lessonguard.services.playback_token import create_playback_token_service
from lessonguard.utils.logger import setup_logging


async def run(apply: bool) -> int:
    encryption = create_envelope_encryption_service(provider=settings.ENCRYPTION_PROVIDER)
    try:
        async with AsyncSessionLocal() as session:
            gateway = ContentAccessGateway(
                session,
                SubscriptionEntitlement(session, max_devices=settings.MAX_DEVICES_PER_USER),
                encryption,
                create_playback_token_service(),
            )
            report = await gateway.encrypt_existing_premium_lessons(dry_run=not apply)
            if apply:
                await session.commit()
    finally:
        encryption.key_provider.teardown()
        await engine.dispose()

    print(f"Premium lessons stored as plaintext: {report.total}")
    if report.dry_run:
        print("Dry run, nothing written. Re-run with --apply to encrypt.")
        return 0

    print(f"Encrypted: {report.encrypted}")
    for error in report.errors:
        print(f"  FAILED {error['lesson_id']}: {error['error']}")
    return 1 if report.errors else 0


def main():
    parser = argparse.ArgumentParser(description="Encrypt plaintext premium lessons")
    parser.add_argument(
        "--apply",
        action="store_true",
        help="Encrypt and commit (default is a dry run)"
    )
    args = parser.parse_args()

    setup_logging()
    sys.exit(asyncio.run(run(args.apply)))


if __name__ == "__main__":
    main()
