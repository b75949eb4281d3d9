"""
Schema bootstrap: run the static create/drop SQL files.
"""

from __future__ import annotations

import logging
from pathlib import Path

from . import db

logger = logging.getLogger(__name__)

SQL_DIR = Path(__file__).resolve().parent / "sql"
SCHEMA_FILE = SQL_DIR / "schema.sql"
DROP_SCHEMA_FILE = SQL_DIR / "drop.sql"


async def _run_file(database: db.Database, path: Path | str) -> db.QueryResult | db.QueryFailure:
    sql = Path(path).read_text(encoding="utf-8")
    logger.info("schema_file_run path=%s", path)
    return await database.run_script(sql)


async def create_schema(
    database: db.Database,
    schema_file: Path | str = SCHEMA_FILE,
) -> db.QueryResult | db.QueryFailure:
    return await _run_file(database, schema_file)


async def drop_schema(
    database: db.Database,
    drop_file: Path | str = DROP_SCHEMA_FILE,
) -> db.QueryResult | db.QueryFailure:
    return await _run_file(database, drop_file)
