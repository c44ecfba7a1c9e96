"""Broker Client Walkthrough Job

Exercises every client call against a live account and logs the results.

The job:
1. Reads configuration from config/client_config.json
2. Lists accounts, shares and positions
3. Lists the last year of operations for the configured ticker
4. Lists the last month of daily candles for the same ticker
5. Places a limit order, lists open orders, then cancels the order

Step 5 only runs when ``examples.place_orders`` is true in the config.

Usage:
    python -m tinvest.jobs.examples_job [path/to/config.json]
"""

import json
import logging
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

# Resolve project root (two levels up from this file: tinvest/jobs/ -> project/)
ROOT = Path(__file__).resolve().parents[2]

from tinvest.core.models import CandleInterval, OrderOperation
from tinvest.exchanges.tinkoff import TinkoffClient
from tinvest.exchanges.tinkoff_rest import BrokerAPIError
from tinvest.helpers.frame_helper import candles_to_frame, operations_to_frame
from tinvest.utils.logger import setup_logger

DEFAULT_CONFIG_PATH = ROOT / "config" / "client_config.json"


def load_config(config_path: str) -> dict:
    """Load configuration from JSON file.

    Args:
        config_path: Path to config JSON file

    Returns:
        Dictionary with configuration parameters
    """
    with open(config_path, 'r') as f:
        return json.load(f)


def run_examples(client: TinkoffClient, config: dict, logger: logging.Logger) -> None:
    """Run the walkthrough. Broker errors propagate to the caller."""
    examples_cfg = config.get("examples", {})
    ticker = examples_cfg.get("ticker", "AAPL")
    now = datetime.now(timezone.utc)

    logger.info("========== Accounts ==========")
    for account in client.get_accounts():
        logger.info(f"{account}")

    logger.info("========== Shares ==========")
    shares = client.get_shares()
    logger.info(f"{len(shares)} shares listed")

    logger.info("========== Positions ==========")
    for position in client.get_positions():
        logger.info(f"{position}")

    logger.info("========== Operations ==========")
    operations = client.list_operations(ticker, now - timedelta(days=365), now)
    if operations:
        logger.info("\n" + operations_to_frame(operations).to_string(index=False))

    logger.info("========== Candles ==========")
    candles = client.list_candles(ticker, CandleInterval.DAY, now - timedelta(days=30), now)
    if candles:
        logger.info("\n" + candles_to_frame(candles).tail(5).to_string())

    if not examples_cfg.get("place_orders", False):
        logger.info("Order examples skipped (examples.place_orders is false)")
        return

    logger.info("========== Create limit order ==========")
    order_id = client.create_limit_order(
        ticker,
        OrderOperation.BUY,
        examples_cfg.get("lots", 1),
        examples_cfg.get("limit_price", 100),
    )
    logger.info(f"Order ID {order_id} was created")

    logger.info("========== Orders ==========")
    for order in client.get_orders():
        logger.info(f"{order}")

    logger.info("========== Cancel order ==========")
    client.cancel_order(order_id)
    logger.info(f"Order ID {order_id} was canceled")


def main(argv: list[str]) -> int:
    config_path = Path(argv[1]) if len(argv) > 1 else DEFAULT_CONFIG_PATH
    config = load_config(str(config_path))

    log_level = getattr(logging, config.get("log_level", "INFO").upper(), logging.INFO)
    log_path = config.get("log_path")
    logger = setup_logger("tinvest", ROOT / log_path if log_path else None, level=log_level)
    logger.info(f"Config loaded from: {config_path}")

    client = TinkoffClient.from_config(config, logger)
    try:
        run_examples(client, config, logger)
    except BrokerAPIError as exc:
        logger.error(f"Broker error: {exc}")
        return 1
    finally:
        client.transport.close()
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv))
