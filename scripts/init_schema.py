#!/usr/bin/env python3
"""
Create the ledger tables in Snowflake.

Runs the CREATE TABLE IF NOT EXISTS statements for trainers,
substitutions and balances. Safe to run repeatedly.

Usage:
    python scripts/init_schema.py
    python scripts/init_schema.py --dry-run

Requires:
    - .env file with Snowflake credentials (same variables as the API)
"""

import sys
from pathlib import Path

# Add project root to path so we can import our modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from src.api.dependencies import snowflake_config_from_settings
from src.config.settings import Settings
from src.core.ledger.errors import StorageError
from src.infrastructure.snowflake.client import get_snowflake_connection
from src.infrastructure.snowflake.repositories.ledger import (
    SCHEMA_STATEMENTS,
    SnowflakeLedgerStore,
)


def create_schema(settings: Settings, dry_run: bool = False) -> bool:
    """
    Create the ledger tables.

    Returns True on success. In dry-run mode, prints the DDL instead.
    """
    if dry_run:
        print("\n=== DRY RUN - No statements will be executed ===\n")
        for statement in SCHEMA_STATEMENTS:
            print(statement.strip())
            print()
        print(f"Total: {len(SCHEMA_STATEMENTS)} statements")
        return True

    missing = [m for m in settings.validate_required_fields() if m.startswith("SNOWFLAKE")]
    if missing:
        print(f"ERROR: Missing {', '.join(missing)}")
        return False

    config = snowflake_config_from_settings(settings)

    try:
        print(f"Connecting to Snowflake account: {config.account}")
        with get_snowflake_connection(config) as conn:
            print(f"Using database {config.database}, schema {config.schema}")
            SnowflakeLedgerStore(conn).create_schema()
    except StorageError as e:
        print(f"ERROR: {e}")
        return False

    print("\n=== Schema ready ===")
    return True


def main():
    import argparse

    parser = argparse.ArgumentParser(description='Create ledger tables in Snowflake')
    parser.add_argument('--dry-run', action='store_true', help='Print the DDL, don\'t execute it')
    args = parser.parse_args()

    settings = Settings(snowflake_mock_mode=False)
    success = create_schema(settings, dry_run=args.dry_run)

    sys.exit(0 if success else 1)


if __name__ == '__main__':
    main()
