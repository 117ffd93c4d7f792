import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import models  # noqa: F401  registers tables on Base.metadata
from .address import router as address_router
from .cart import router as cart_router
from .config import settings, setup_logging
from .database import Base, engine
from .exceptions import MarketplaceError
from .main import auth_router, users_router
from .message import router as message_router
from .notification import router as notification_router
from .order import router as order_router
from .payment import router as payment_router
from .profile import router as profile_router
from .responses import error_body
from .review import router as review_router
from .store import router as store_router
from .wishlist import router as wishlist_router

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Create database tables if they don't exist
    Base.metadata.create_all(bind=engine)
    logger.info("Database ready at %s", engine.url.render_as_string(hide_password=True))
    yield


app = FastAPI(title="Second-hand Marketplace", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router)
app.include_router(users_router)
app.include_router(profile_router, tags=["profiles"])
app.include_router(store_router, tags=["store"])
app.include_router(cart_router, tags=["carts"])
app.include_router(address_router, tags=["addresses"])
app.include_router(order_router, tags=["orders"])
app.include_router(payment_router)
app.include_router(wishlist_router, tags=["wishlists"])
app.include_router(review_router, tags=["reviews"])
app.include_router(message_router, tags=["messages"])
app.include_router(notification_router, tags=["notifications"])


# ---------- Error envelopes ----------

@app.exception_handler(MarketplaceError)
async def marketplace_error_handler(request: Request, exc: MarketplaceError):
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.message))


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(
            str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path")
        )
        message = f"{field}: {first.get('msg')}" if field else first.get("msg")
    else:
        message = "Invalid request"
    return JSONResponse(status_code=400, content=error_body(message))


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    logger.warning("Unhandled integrity error on %s: %s", request.url.path, exc.orig)
    return JSONResponse(status_code=400, content=error_body("Request conflicts with existing data"))


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("Unexpected error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content=error_body("Internal server error"))


@app.get("/")
def root():
    return {"success": True, "message": "Second-hand marketplace backend running"}
