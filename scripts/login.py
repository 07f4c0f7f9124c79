#!/usr/bin/env python3
"""Interactive email-link sign-in for SakuraFM.

Sends a login link to the given address, waits for you to click it, then
prints the session id and refresh token. Store both somewhere safe; they are
all the client needs to create chats and send messages later.

Usage:
    python scripts/login.py --email you@example.com
    python scripts/login.py --email you@example.com --attempts 24 --interval 5
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Allow running from project root
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from sakurafm import SakuraClient, SakuraError
from sakurafm.config import settings


async def login(email: str, attempts: int, interval: float) -> int:
    async with SakuraClient() as client:
        try:
            attempt = await client.send_login_email(email)
        except SakuraError as exc:
            print(f"ERROR: {exc.dump()}")
            return 1

        print(f"Login link sent to {email}. Open it in a browser to continue...")
        user = await client.wait_for_login(attempt, max_attempts=attempts, interval=interval)

    if user is None:
        print(f"ERROR: Sign-in was not confirmed after {attempts} attempts.")
        return 1

    print(f"Signed in as {user.username or user.user_email} ({user.user_id})")
    print(f"SESSION_ID={user.session_id}")
    print(f"REFRESH_TOKEN={user.refresh_token}")
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Sign in to SakuraFM by email link")
    parser.add_argument("--email", required=True, help="Account email address")
    parser.add_argument(
        "--attempts",
        type=int,
        default=settings.login_poll_attempts,
        help="Number of times to check for a completed sign-in",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=settings.login_poll_interval,
        help="Seconds between checks",
    )
    args = parser.parse_args()

    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=getattr(logging, settings.log_level),
    )

    sys.exit(asyncio.run(login(args.email, args.attempts, args.interval)))


if __name__ == "__main__":
    main()
