"""Operations commands.

Usage:
    python -m petsanta.cli reconcile [--limit N] [-v]
    python -m petsanta.cli grant-credits USER_ID AMOUNT [--reason TEXT]

Examples:
    # Poll the provider once for every submitted task that is still running
    python -m petsanta.cli reconcile

    # Reconcile at most 50 tasks with verbose logging
    python -m petsanta.cli reconcile --limit 50 -v

    # Grant 100 credits to a user (recorded in the ledger)
    python -m petsanta.cli grant-credits user_123 100 --reason "Support refund"
"""

import asyncio
from argparse import ArgumentParser, Namespace

import structlog

from petsanta.core import timezone  # noqa: F401
from petsanta.core.config import Settings, configure_logging
from petsanta.core.database import setup_db_session
from petsanta.models.credit_usage import MAX_DESCRIPTION_LENGTH
from petsanta.services.billing import ledger
from petsanta.services.exceptions import ServiceError
from petsanta.services.image_generation.kie_client import KieClient
from petsanta.services.image_generation.service import GenerationService
from petsanta.services.storage.blob_client import BlobStorageClient
from petsanta.uow import create_uow_factory

logger = structlog.get_logger()


def parse_args(argv: list[str] | None = None) -> Namespace:
    """Parse command-line arguments."""
    parser = ArgumentParser(description="Pets Santa operations commands")
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging (DEBUG level)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    reconcile = subparsers.add_parser(
        "reconcile",
        help="Poll the provider for submitted tasks that never received a callback",
    )
    reconcile.add_argument(
        "--limit",
        type=int,
        help="Maximum number of tasks to reconcile (default: unlimited)",
    )

    grant = subparsers.add_parser("grant-credits", help="Add credits to a user's balance")
    grant.add_argument("user_id", help="User id")
    grant.add_argument("amount", type=int, help="Credits to add (positive)")
    grant.add_argument("--reason", default="Admin grant", help="Ledger entry description")

    return parser.parse_args(argv)


async def run_reconcile(uow_factory, settings: Settings, limit: int | None) -> int:
    service = GenerationService(
        uow_factory=uow_factory,
        provider=KieClient(
            api_key=settings.kie_ai_api_key,
            base_url=settings.kie_ai_base_url,
            model=settings.kie_ai_model,
            timeout=settings.http_timeout_seconds,
        ),
        storage=BlobStorageClient(
            token=settings.blob_read_write_token,
            api_url=settings.blob_api_url,
            timeout=settings.http_timeout_seconds,
        ),
        settings=settings,
    )
    counts = await service.reconcile_active(limit=limit)
    logger.info("reconcile.complete", **counts)
    print(
        "Reconciled tasks: "
        + ", ".join(f"{status}={count}" for status, count in counts.items())
    )
    return 0


async def run_grant_credits(uow_factory, user_id: str, amount: int, reason: str) -> int:
    if amount <= 0:
        print("Amount must be positive")
        return 1

    description = f"{reason}: {amount} credits"
    if len(description) > MAX_DESCRIPTION_LENGTH:
        print(f"Reason too long (ledger descriptions are capped at {MAX_DESCRIPTION_LENGTH} chars)")
        return 1

    async with await uow_factory() as uow:
        balance = await ledger.credit_purchase(uow, user_id, amount, description)

    logger.info("grant.complete", user_id=user_id, amount=amount, balance=balance)
    print(f"Granted {amount} credits to {user_id}; new balance {balance}")
    return 0


async def async_main(argv: list[str] | None = None) -> int:
    """Main CLI entry point (async).

    Returns:
        Exit code: 0 (success), 1 (error)
    """
    args = parse_args(argv)

    settings = Settings()  # type: ignore[call-arg]
    if args.verbose:
        settings.log_level = "DEBUG"
    configure_logging(settings)

    session_factory = setup_db_session(settings.database_url, pool_size=5)
    uow_factory = create_uow_factory(session_factory)

    try:
        if args.command == "reconcile":
            return await run_reconcile(uow_factory, settings, args.limit)
        return await run_grant_credits(uow_factory, args.user_id, args.amount, args.reason)
    except ServiceError as e:
        logger.error("cli.failed", command=args.command, error=e.message)
        print(f"Error: {e.message}")
        return 1
    finally:
        await session_factory.kw["bind"].dispose()


def main(argv: list[str] | None = None) -> int:
    return asyncio.run(async_main(argv))
