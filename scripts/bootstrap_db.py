"""
Scripts - Bootstrap Database.

============================================================
RESPONSIBILITY
============================================================
Initializes the SQL score store for local use.

- Creates the sentiment_scores and visit_logs tables
- Seeds demo scores (random walk per ticker, 2-minute samples)
- Validates setup

============================================================
USAGE
============================================================
python -m scripts.bootstrap_db --database-url sqlite:///sentiment.db --seed-data

Options:
  --drop-existing    Drop existing tables (DANGEROUS)
  --seed-data        Include demo scores
  --validate-only    Only validate, don't create

============================================================
"""

import argparse
import logging
import random
import sys
from datetime import timedelta
from typing import List, Optional

from core.clock import SystemClock
from core.constants import DEFAULT_LOOKBACK_DAYS, SAMPLE_INTERVAL_MINUTES
from database import (
    Base,
    DatabasePersistenceError,
    SentimentScoreRecord,
    create_all_tables,
    create_database_engine,
    create_session_factory,
    get_database_url,
    get_table_row_counts,
    transaction_scope,
    verify_database_connection,
)

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s | %(levelname)s | %(name)s | %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)

logger = logging.getLogger(__name__)

DEFAULT_TICKERS = ["AAPL", "MSFT", "NVDA", "TSLA", "AMZN", "GOOGL"]


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="bootstrap_db",
        description="Create and seed the sentiment score database",
    )
    parser.add_argument("--database-url", type=str, default=None,
                        help="SQLAlchemy URL (default: DATABASE_URL)")
    parser.add_argument("--drop-existing", action="store_true",
                        help="Drop existing tables first (DANGEROUS)")
    parser.add_argument("--seed-data", action="store_true",
                        help="Insert demo scores")
    parser.add_argument("--validate-only", action="store_true",
                        help="Only check connection and tables")
    parser.add_argument("--days", type=int, default=DEFAULT_LOOKBACK_DAYS,
                        help="Days of demo history")
    parser.add_argument("--tickers", type=str, default=",".join(DEFAULT_TICKERS),
                        help="Comma-separated tickers for demo data")
    parser.add_argument("--seed", type=int, default=42,
                        help="Random seed for demo data")
    return parser


def generate_demo_rows(tickers: List[str], days: int, seed: int) -> List[SentimentScoreRecord]:
    """Random-walk scores in [-1, 1], one row per sampling interval."""
    rng = random.Random(seed)
    now = SystemClock().now().replace(second=0, microsecond=0)
    step = timedelta(minutes=SAMPLE_INTERVAL_MINUTES)
    count = int(timedelta(days=days) / step)

    levels = {ticker: rng.uniform(-0.5, 0.5) for ticker in tickers}
    rows = []
    for i in range(count):
        timestamp = now - step * (count - 1 - i)
        scores = {}
        for ticker in tickers:
            levels[ticker] = max(-1.0, min(1.0, levels[ticker] + rng.gauss(0, 0.08)))
            # Occasional gaps: a ticker missing from a sample
            if rng.random() > 0.02:
                scores[ticker] = round(levels[ticker], 4)
        rows.append(SentimentScoreRecord(timestamp=timestamp, scores=scores))
    return rows


def main(argv: Optional[List[str]] = None) -> int:
    """Bootstrap database entry point."""
    args = create_parser().parse_args(argv)

    url = args.database_url or get_database_url()
    if not url:
        logger.error("No database URL: pass --database-url or set DATABASE_URL")
        return 1

    engine = create_database_engine(url)
    try:
        verify_database_connection(engine)

        if args.validate_only:
            for table, count in get_table_row_counts(engine).items():
                status = "OK" if count >= 0 else "MISSING"
                logger.info(f"  [{status}] {table}: {count}")
            return 0

        if args.drop_existing:
            logger.warning("Dropping existing tables")
            Base.metadata.drop_all(bind=engine)

        create_all_tables(engine)

        if args.seed_data:
            tickers = [t.strip() for t in args.tickers.split(",") if t.strip()]
            rows = generate_demo_rows(tickers, args.days, args.seed)
            with transaction_scope(create_session_factory(engine)) as session:
                session.add_all(rows)
            logger.info(f"Seeded {len(rows)} score rows for {len(tickers)} tickers")

        for table, count in get_table_row_counts(engine).items():
            logger.info(f"  {table}: {count} rows")
        return 0

    except DatabasePersistenceError as e:
        logger.error(f"Bootstrap failed: {e}")
        return 1
    finally:
        engine.dispose()


if __name__ == "__main__":
    sys.exit(main())
