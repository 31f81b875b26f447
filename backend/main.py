# backend/main.py
import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv

load_dotenv()

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from bootstrap import seed_defaults
from config import settings
from database import SessionLocal, init_db
from services.errors import ServiceError

# Router imports
from routes.auth import router as auth_router
from routes.admin import router as admin_router
from routes.logs import router as logs_router
from routes.products import router as products_router
from routes.categories import router as categories_router
from routes.suppliers import router as suppliers_router
from routes.customers import router as customers_router
from routes.sales import router as sales_router
from routes.stock import router as stock_router
from routes.reports import router as reports_router, dashboard_router

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    if settings.SEED_ON_STARTUP:
        db = SessionLocal()
        try:
            seed_defaults(db)
        finally:
            db.close()
    yield


app = FastAPI(title="Inventory POS API", version="1.0.0", lifespan=lifespan)

# CORS Configuration
origins = [
    "http://localhost:4200",
    "http://127.0.0.1:4200",
]
if settings.FRONTEND_URL and settings.FRONTEND_URL not in origins:
    origins.append(settings.FRONTEND_URL)

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Error responses share one shape: {"detail": ..., "code": ...}
@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "code": exc.code})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"detail": jsonable_encoder(exc.errors()), "code": "validation_error"},
    )


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    logger.warning("Integrity error on %s %s: %s", request.method, request.url.path, exc.orig)
    return JSONResponse(
        status_code=409,
        content={"detail": "Request conflicts with existing data", "code": "integrity_error"},
    )


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("Database error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Database error", "code": "database_error"})


# Router registration
app.include_router(auth_router)
app.include_router(admin_router)
app.include_router(logs_router)
app.include_router(products_router)
app.include_router(categories_router)
app.include_router(suppliers_router)
app.include_router(customers_router)
app.include_router(sales_router)
app.include_router(stock_router)
app.include_router(reports_router)
app.include_router(dashboard_router)


@app.get("/")
def read_root():
    return {"message": "Inventory POS API is running", "version": app.version}
