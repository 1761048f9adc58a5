# backoffice/main.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from dotenv import load_dotenv

from backoffice.config import settings
from backoffice.database import init_db
from backoffice.errors import BackofficeError, Unavailable

load_dotenv()

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Router imports
from backoffice.routes.orders import router as orders_router
from backoffice.routes.stock import router as stock_router
from backoffice.routes.products import router as products_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


app = FastAPI(title="Back Office API", version="1.0.0", lifespan=lifespan)

# CORS Configuration
origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173"
]

if settings.FRONTEND_URL:
    origins.append(settings.FRONTEND_URL)

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Domain errors carry their own status code
@app.exception_handler(BackofficeError)
async def backoffice_error_handler(request: Request, exc: BackofficeError):
    if isinstance(exc, Unavailable):
        logger.error("Unavailable on %s %s", request.method, request.url.path, exc_info=exc.__cause__)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# Storage failures are opaque to the caller
@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("Database error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=503, content={"detail": Unavailable.__doc__})


# Router registration
app.include_router(orders_router)
app.include_router(stock_router)
app.include_router(products_router)


@app.get("/")
def read_root():
    return {"message": "Back Office API is running"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("backoffice.main:app", host="0.0.0.0", port=8000)
