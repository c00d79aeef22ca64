from fastapi import FastAPI, APIRouter, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
import logging

# Import database components
from erp.database.database import init_db

# Import middleware
from erp.common.middleware import TenantMiddleware, SecurityHeadersMiddleware

# Import routers
from erp.modules.auth.router import auth_router
from erp.modules.company.router import company_router
from erp.modules.numbering.router import settings_router, generation_router, generate_router
from erp.modules.customers.router import customers_router, leads_router
from erp.modules.inventory.router import (
    categories_router, warehouses_router, products_router, stock_router
)
from erp.modules.sales.router import (
    quotations_router, sales_orders_router, invoices_router,
    delivery_notes_router, customer_returns_router
)
from erp.modules.purchasing.router import (
    vendors_router, purchase_orders_router, goods_receiving_router, purchase_returns_router
)
from erp.modules.financial.router import (
    accounts_router, journal_router, payments_router, bank_router, reports_router
)
from erp.modules.hr.router import departments_router, employees_router, leave_router, payroll_router
from erp.modules.mailbox.router import mailbox_router
from erp.modules.system_settings.router import system_settings_router

from erp.core.config import settings

# Configure logging
logging.basicConfig(
    level=logging.INFO if settings.ENVIRONMENT == "production" else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# FastAPI app
app = FastAPI(
    title="PrintSoft ERP API",
    description="Multi-tenant ERP API with atomic document numbering",
    version="1.0.0",
    docs_url="/docs" if settings.ENVIRONMENT != "production" else None,
    redoc_url="/redoc" if settings.ENVIRONMENT != "production" else None
)

# Add middleware (order matters!)
app.add_middleware(GZipMiddleware, minimum_size=1000)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(TenantMiddleware)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Missing or malformed body fields are reported as 400."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=jsonable_encoder({"detail": exc.errors()})
    )


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(request: Request, exc: SQLAlchemyError):
    logger.exception(f"Database error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Error interno de base de datos"}
    )


api_router = APIRouter()
api_router.include_router(auth_router)
api_router.include_router(company_router)
api_router.include_router(settings_router)
api_router.include_router(generation_router)
api_router.include_router(generate_router)
api_router.include_router(customers_router)
api_router.include_router(leads_router)
api_router.include_router(categories_router)
api_router.include_router(warehouses_router)
api_router.include_router(products_router)
api_router.include_router(stock_router)
api_router.include_router(quotations_router)
api_router.include_router(sales_orders_router)
api_router.include_router(invoices_router)
api_router.include_router(delivery_notes_router)
api_router.include_router(customer_returns_router)
api_router.include_router(vendors_router)
api_router.include_router(purchase_orders_router)
api_router.include_router(goods_receiving_router)
api_router.include_router(purchase_returns_router)
api_router.include_router(accounts_router)
api_router.include_router(journal_router)
api_router.include_router(payments_router)
api_router.include_router(bank_router)
api_router.include_router(reports_router)
api_router.include_router(departments_router)
api_router.include_router(employees_router)
api_router.include_router(leave_router)
api_router.include_router(payroll_router)
api_router.include_router(mailbox_router)
api_router.include_router(system_settings_router)

# Same routes under both prefixes; /rest/v1 is kept for older clients
app.include_router(api_router, prefix="/api")
app.include_router(api_router, prefix="/rest/v1", include_in_schema=False)

# Create database tables (only for development - no migrations)
if settings.ENVIRONMENT == "development":
    init_db()


@app.get("/")
async def read_root():
    return {
        "message": "PrintSoft ERP API is running",
        "version": "1.0.0",
        "environment": settings.ENVIRONMENT
    }


@app.get("/health")
async def health_check():
    return {"status": "healthy", "environment": settings.ENVIRONMENT}


@app.on_event("startup")
async def startup_event():
    logger.info("PrintSoft ERP API starting up...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Database: {settings.DB_TYPE}")


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("PrintSoft ERP API shutting down...")
