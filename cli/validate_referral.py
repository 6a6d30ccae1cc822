"""CLI for checking a referral token against the backend."""

from __future__ import annotations

import argparse
import asyncio
import json

from integrations.api_client import build_client
from integrations.referral import GateResult, ReferralGate
from utils.logging_context import configure_logging


async def _run(token: str, base_url: str | None) -> GateResult:
    async with build_client(base_url=base_url) as client:
        return await ReferralGate(client).check({"ref": token})


def main() -> None:
    """Parse arguments and print the gate result as JSON to stdout.

    Exits with status 1 when the token is not valid. Example::

        python -m cli.validate_referral --ref 0123456789abcdef01234567
    """

    parser = argparse.ArgumentParser(description="Placement onboarding referral checker")
    parser.add_argument("--ref", required=True, help="Referral token from the invitation link")
    parser.add_argument("--base-url", help="API base URL (defaults to ONBOARDING_API_URL)")
    args = parser.parse_args()

    configure_logging()
    result = asyncio.run(_run(args.ref, args.base_url))
    print(json.dumps(result.as_dict(), indent=2))
    if not result.is_valid:
        raise SystemExit(1)


if __name__ == "__main__":  # pragma: no cover
    main()
