import logging
from typing import Any

from fastapi import Depends, FastAPI, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from kiosco.core.config import settings
from kiosco.core.errors import AppError, ProductNotFound, ValidationFailed
from kiosco.core.logging_config import configure_logging
from kiosco.core.security import internal_email
from kiosco.db.session import get_db
from kiosco.schemas.auth import LoginRequest, ProfileOut, Role, TokenResponse
from kiosco.schemas.catalog import ProductInput, ProductOut
from kiosco.schemas.sales import CheckoutRequest, CheckoutResponse, DashboardSummary, SaleDetail, SaleOut
from kiosco.schemas.users import BootstrapRequest, UserCreateRequest, UserOut, UserUpdateRequest
from kiosco.services import catalog, reporting, sales, seed, users
from kiosco.services.checkout import CheckoutLine, checkout
from kiosco.services.deps import require_role, require_seed_token

configure_logging(settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="Kiosco POS API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

any_role = require_role()
admin_only = require_role(Role.ADMIN)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error(
            exc.message,
            extra={"code": exc.code, "step": exc.step, "details": exc.details, "path": request.url.path},
        )
    body = exc.to_dict()
    if exc.status_code >= 500 and not settings.expose_error_details:
        body["details"] = None
    return JSONResponse(status_code=exc.status_code, content=body)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    details = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()
    )
    error = ValidationFailed(step="validate_request", details=details)
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("unhandled error", extra={"path": request.url.path})
    error = AppError(details=str(exc) if settings.expose_error_details else None)
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


@app.get("/health")
def health():
    return {"status": "ok"}


# Auth


@app.post("/auth/login", response_model=TokenResponse)
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    return users.authenticate(db, payload.username, payload.password)


@app.get("/auth/me", response_model=ProfileOut)
def me(profile: dict[str, Any] = Depends(any_role)):
    return {**profile, "email": internal_email(profile["username"])}


# Catalog


@app.get("/products", response_model=list[ProductOut])
def list_products(db: Session = Depends(get_db), _: dict = Depends(any_role)):
    return catalog.list_products(db)


@app.post("/products", response_model=ProductOut, status_code=status.HTTP_201_CREATED)
def create_product(payload: ProductInput, db: Session = Depends(get_db), _: dict = Depends(any_role)):
    return catalog.create_product(db, payload)


@app.get("/products/low-stock", response_model=list[ProductOut])
def low_stock_products(
    threshold: int | None = Query(default=None, ge=0),
    db: Session = Depends(get_db),
    _: dict = Depends(any_role),
):
    return catalog.list_low_stock(db, threshold)


@app.get("/products/barcode/{code}", response_model=ProductOut)
def product_by_barcode(code: str, db: Session = Depends(get_db), _: dict = Depends(any_role)):
    product = catalog.find_by_barcode(db, code)
    if not product:
        raise ProductNotFound(details=f"barcode={code}")
    return product


@app.get("/products/{product_id}", response_model=ProductOut)
def get_product(product_id: str, db: Session = Depends(get_db), _: dict = Depends(any_role)):
    return catalog.get_product(db, product_id)


@app.patch("/products/{product_id}", response_model=ProductOut)
def update_product(
    product_id: str,
    payload: ProductInput,
    db: Session = Depends(get_db),
    _: dict = Depends(any_role),
):
    return catalog.update_product(db, product_id, payload)


@app.delete("/products/{product_id}")
def delete_product(product_id: str, db: Session = Depends(get_db), _: dict = Depends(any_role)):
    catalog.delete_product(db, product_id)
    return {"success": True}


# Sales


@app.post("/sales:checkout", response_model=CheckoutResponse, status_code=status.HTTP_201_CREATED)
@app.post(
    "/sales/checkout",
    response_model=CheckoutResponse,
    status_code=status.HTTP_201_CREATED,
    include_in_schema=False,
)
def checkout_sale(
    payload: CheckoutRequest,
    db: Session = Depends(get_db),
    profile: dict[str, Any] = Depends(any_role),
):
    lines = [CheckoutLine(product_id=str(item.product_id), qty=item.qty) for item in payload.items]
    result = checkout(db, lines, payload.payment_method, created_by=profile["id"])
    return CheckoutResponse(sale_id=result.sale_id, total=float(result.total))


@app.get("/sales", response_model=list[SaleOut])
def list_sales(
    limit: int = Query(default=50, ge=1, le=200),
    db: Session = Depends(get_db),
    _: dict = Depends(any_role),
):
    return sales.list_sales(db, limit)


@app.get("/sales/{sale_id}", response_model=SaleDetail)
def get_sale(sale_id: str, db: Session = Depends(get_db), _: dict = Depends(any_role)):
    return sales.get_sale(db, sale_id)


@app.get("/dashboard", response_model=DashboardSummary)
def dashboard(db: Session = Depends(get_db), _: dict = Depends(admin_only)):
    return reporting.build_dashboard(db)


# User administration


@app.get("/admin/users", response_model=list[UserOut])
def list_users(db: Session = Depends(get_db), _: dict = Depends(admin_only)):
    return users.list_users(db)


@app.post("/admin/users", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def create_user(payload: UserCreateRequest, db: Session = Depends(get_db), _: dict = Depends(admin_only)):
    return users.create_user(db, payload.username, payload.password, payload.full_name, payload.role)


@app.patch("/admin/users/{user_id}")
def update_user(
    user_id: str,
    payload: UserUpdateRequest,
    db: Session = Depends(get_db),
    _: dict = Depends(admin_only),
):
    users.update_user(db, user_id, payload.username, payload.full_name, payload.role)
    return {"success": True}


@app.delete("/admin/users/{user_id}")
def delete_user(user_id: str, db: Session = Depends(get_db), admin: dict[str, Any] = Depends(admin_only)):
    users.delete_user(db, user_id, acting_user_id=admin["id"])
    return {"success": True}


@app.post(
    "/admin/bootstrap",
    response_model=UserOut,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_seed_token)],
)
def bootstrap_admin(payload: BootstrapRequest, db: Session = Depends(get_db)):
    return users.bootstrap_admin(db, payload.username, payload.password, payload.full_name)


@app.post("/seed", dependencies=[Depends(require_seed_token)])
def seed_demo(db: Session = Depends(get_db)):
    created = seed.seed_demo_products(db)
    return {"success": True, "created": created}
