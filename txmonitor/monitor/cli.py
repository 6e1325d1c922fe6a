"""
Transaction monitor CLI commands.

Provides command-line access for watching transactions to completion,
sampling a transaction's ledger status once, and creating tables.
"""

import asyncio
import sys
import structlog

from txmonitor.core.config import get_settings
from txmonitor.core.logging import configure_logging
from txmonitor.db.init import create_tables
from txmonitor.monitor.config import get_monitor_config
from txmonitor.monitor.factory import create_context, create_probe
from txmonitor.monitor.stores import RecordNotFoundError
from txmonitor.monitor.supervisor import AlreadyFinishedError, MonitorSupervisor

logger = structlog.get_logger()


def print_outcomes(supervisor: MonitorSupervisor):
    """Pretty print how watched transactions ended."""
    print("\n=== Monitor Results ===\n")
    for finished in supervisor.metrics.get_history():
        print(
            f"{finished.tx_hash}: {finished.outcome} "
            f"(status={finished.status or '-'}, polls={finished.polls})"
        )
    print()


async def watch_command(tx_hashes: list[str]) -> int:
    """Watch stored transactions until each reaches an outcome."""
    supervisor = MonitorSupervisor(create_context())
    config = supervisor.context.config
    print(f"Poll interval: {config.poll_interval_ms} ms")
    print(f"Time limit: {config.time_limit_ms} ms")
    print("Press Ctrl+C to stop\n")

    for tx_hash in tx_hashes:
        try:
            await supervisor.watch_hash(tx_hash)
        except RecordNotFoundError:
            print(f"Unknown transaction: {tx_hash}")
        except AlreadyFinishedError as e:
            print(str(e))

    try:
        await supervisor.join()
    finally:
        await supervisor.stop_all()

    print_outcomes(supervisor)
    failed = supervisor.metrics.outcomes.get("error", 0)
    return 1 if failed else 0


async def probe_command(tx_hash: str) -> int:
    """Sample one transaction's ledger status once."""
    settings = get_settings()
    probe = create_probe(settings, get_monitor_config(settings))
    result = await probe.get_status(tx_hash, require_receipt=True)

    print(f"\nTransaction: {tx_hash}")
    print(f"Status: {result.status}")
    if result.receipt:
        print(f"Block: {result.receipt.block_number} ({result.receipt.block_hash})")
        print(f"Gas used: {result.receipt.gas_used}")
    if result.network_tx:
        print(f"From: {result.network_tx.from_address}")
        print(f"To: {result.network_tx.to_address}")
        print(f"Value: {result.network_tx.value}")
    print()
    return 0


async def init_db_command() -> int:
    await create_tables()
    print("Tables created.")
    return 0


def main():
    """Main CLI entry point."""
    if len(sys.argv) < 2:
        print("Usage: python -m txmonitor.monitor.cli <command> [options]")
        print("\nCommands:")
        print("  watch <tx_hash>...  Watch stored transactions to completion")
        print("  probe <tx_hash>     Sample a transaction's ledger status once")
        print("  init-db             Create database tables")
        print("\nExamples:")
        print("  python -m txmonitor.monitor.cli watch 0xabc...")
        print("  python -m txmonitor.monitor.cli probe 0xabc...")
        return 1

    configure_logging(get_settings().ENV)
    command = sys.argv[1]

    try:
        if command == "watch" and len(sys.argv) > 2:
            return asyncio.run(watch_command(sys.argv[2:]))
        elif command == "probe" and len(sys.argv) == 3:
            return asyncio.run(probe_command(sys.argv[2]))
        elif command == "init-db":
            return asyncio.run(init_db_command())
        else:
            print(f"Unknown command or missing arguments: {' '.join(sys.argv[1:])}")
            return 1
    except KeyboardInterrupt:
        print("\nInterrupted.")
        return 130
    except Exception as e:
        print(f"Error: {str(e)}")
        logger.exception("cli_error", command=command)
        return 1


if __name__ == "__main__":
    sys.exit(main())
