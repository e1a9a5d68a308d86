import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import auth
import database
from config import settings
from exceptions import LibraryError, StoreUnavailableError
from routers import books, borrow
from utils.dependencies import get_db

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        await database.ensure_indexes(database.db)
    except StoreUnavailableError:
        logger.error("Starting without indexes, uniqueness relies on pre-write checks only")
    yield
    database.client.close()


app = FastAPI(title="Library Catalog API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(LibraryError)
async def library_error_handler(request: Request, exc: LibraryError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Routers
app.include_router(auth.router)
app.include_router(books.router)
app.include_router(borrow.router)


@app.get("/health")
async def health(db=Depends(get_db)):
    connected = await database.check_connection(db)
    return JSONResponse(
        status_code=200 if connected else 503,
        content={"status": "ok" if connected else "unavailable", "database": connected},
    )


if __name__ == "__main__":
    import os
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=int(os.getenv("PORT", 8000)))
