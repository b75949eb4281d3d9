import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request

from core import db

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, os.environ.get("LOG_LEVEL", "INFO").upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()

    # One pool per process; repositories get it from app.state.database.
    database = getattr(app.state, "database", None) or db.Database.from_env()
    try:
        await database.connect()
    except db.PoolError:
        logger.critical("database_unavailable shutting_down=true")
        raise SystemExit(-1)

    app.state.database = database
    try:
        yield
    finally:
        await database.close()


app = FastAPI(lifespan=lifespan)


def get_database(request: Request) -> db.Database:
    return request.app.state.database


@app.get("/health")
async def health(request: Request) -> dict:
    result = await get_database(request).query("SELECT 1 AS ok")
    if not result:
        raise HTTPException(status_code=503, detail="Database unavailable.")
    return {"status": "ok"}
