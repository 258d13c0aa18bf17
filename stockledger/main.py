# stockledger/main.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from stockledger.config import settings
from stockledger.database import init_db
from stockledger.errors import (
    ImmutableEntry,
    InsufficientStock,
    InventoryError,
    NotAuthenticated,
    NotFound,
    ValidationError,
)

# Router imports
from stockledger.routes.stock import router as stock_router
from stockledger.routes.inventory import router as inventory_router
from stockledger.routes.reports import router as reports_router
from stockledger.routes.logs import router as logs_router

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Engine errors and the HTTP status they map to; first match wins
ERROR_STATUS = (
    (ValidationError, 400),
    (NotAuthenticated, 401),
    (NotFound, 404),
    (InsufficientStock, 409),
    (ImmutableEntry, 409),
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


app = FastAPI(title="Stockledger API", version="1.0.0", lifespan=lifespan)

# CORS Configuration
origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
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


@app.exception_handler(InventoryError)
def inventory_error_handler(request: Request, exc: InventoryError):
    status_code = next((code for cls, code in ERROR_STATUS if isinstance(exc, cls)), 400)
    return JSONResponse(status_code=status_code, content=exc.to_dict())


# Router registration
app.include_router(inventory_router)
app.include_router(reports_router)
app.include_router(logs_router)
app.include_router(stock_router, prefix="/stock")


@app.get("/")
def read_root():
    return {"message": "Stockledger API is running"}
