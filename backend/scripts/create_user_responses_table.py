"""
Create the `user_responses` table in the D1 database.

Run once per environment before serving traffic:

    python backend/scripts/create_user_responses_table.py [--dry-run]

Reads the same environment variables as the API (ACCOUNT_ID,
D1_DATABASE_ID, CLOUDFLARE_API_KEY, EMAIL), from `.env` if present.
"""
import argparse
import asyncio
import sys
from pathlib import Path

# Add parent directory to path to import app modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from app.core.config import get_settings
from app.core.logging import configure_logging, get_logger
from app.services.cloudflare import CloudflareAPIError, get_cloudflare_client

logger = get_logger(__name__)

CREATE_USER_RESPONSES_SQL = """
CREATE TABLE IF NOT EXISTS user_responses (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    email TEXT NOT NULL,
    q1 TEXT, q2 TEXT, q3 TEXT, q4 TEXT, q5 TEXT,
    q6 TEXT, q7 TEXT, q8 TEXT, q9 TEXT, q10 TEXT,
    characteristics TEXT,
    ideal_scent TEXT,
    persona TEXT,
    query TEXT,
    recommendations TEXT,
    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
)
""".strip()


async def create_table(dry_run: bool = False) -> bool:
    settings = get_settings()
    missing = settings.missing_required()
    if dry_run:
        print(CREATE_USER_RESPONSES_SQL)
        return True

    client = get_cloudflare_client()
    if client is None or not settings.d1_database_id:
        print(f"[X] Missing configuration: {', '.join(missing) or 'D1_DATABASE_ID'}")
        return False

    try:
        await client.query_database(settings.d1_database_id, CREATE_USER_RESPONSES_SQL)
    except CloudflareAPIError as exc:
        logger.error("create_user_responses_failed", error=str(exc), errors=exc.errors)
        print(f"[X] Failed to create user_responses: {exc}")
        return False

    print("[OK] user_responses table is ready")
    return True


def main() -> int:
    parser = argparse.ArgumentParser(description="Create the user_responses table in D1")
    parser.add_argument("--dry-run", action="store_true", help="Print the DDL without executing it")
    args = parser.parse_args()

    configure_logging(log_level="INFO", json_output=False)
    ok = asyncio.run(create_table(dry_run=args.dry_run))
    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
