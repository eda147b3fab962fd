#!/usr/bin/env python3
"""
Show the registration status behind a session id

Usage:
    python scripts/registration_status.py --session-id <id>   # Status for a given session
    python scripts/registration_status.py                     # Session stored on this device
    python scripts/registration_status.py --json              # Machine-readable output
"""

import argparse
import asyncio
import json
from dataclasses import asdict

import structlog

from ira_registration.core.exceptions import RegistrationApiError
from ira_registration.core.logging_config import configure_logging
from ira_registration.infrastructure.registration_client import RegistrationClient
from ira_registration.infrastructure.storage import create_storage
from ira_registration.services.auth.session_identity import SessionIdentityStore
from ira_registration.services.registration.dashboard import load_overview

logger = structlog.get_logger()


async def main() -> int:
    parser = argparse.ArgumentParser(description="Show registration status for a session")
    parser.add_argument("--session-id", help="Progress session id (defaults to the stored one)")
    parser.add_argument("--base-url", help="Registration API base URL (defaults to settings)")
    parser.add_argument("--json", action="store_true", help="Print the overview as JSON")

    args = parser.parse_args()
    configure_logging()

    session_id = args.session_id or SessionIdentityStore(create_storage()).session_id
    if not session_id:
        logger.error("no_session_id")
        print("No session id given and none stored on this device.")
        return 2

    async with RegistrationClient(base_url=args.base_url) as client:
        try:
            overview = await load_overview(client, session_id)
        except RegistrationApiError as e:
            logger.error("status_lookup_failed", kind=e.kind.value, status_code=e.status_code)
            print(f"Lookup failed ({e.kind.value}): {e.message}")
            return 1

    if args.json:
        print(json.dumps({**asdict(overview), "status": overview.status_label}, indent=2))
        return 0

    print(overview.status_label)
    if overview.application_id:
        print(f"Application ID: {overview.application_id}")
    for section in overview.sections:
        marker = "x" if section.saved else " "
        print(f"  [{marker}] {section.label} - {section.description}")
    return 0


if __name__ == "__main__":
    raise SystemExit(asyncio.run(main()))
