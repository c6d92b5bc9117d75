"""
Zeene Storefront - Application Entry Point
===========================================
FastAPI app initialization, middleware, and router registration.
"""

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.staticfiles import StaticFiles
from fastapi.responses import JSONResponse
from apscheduler.schedulers.background import BackgroundScheduler

from config import settings
from config.database import Base, engine
from common.exceptions import StorefrontError
from common.helpers import get_real_ip
from common.security import rate_limiter, security_headers

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

scheduler_logger = logging.getLogger("storefront.scheduler")
security_logger = logging.getLogger("storefront.security")


# ==========================================
# Import ALL models so Base can see them
# ==========================================
from modules.catalog.models import Product, ProductVariant  # noqa: F401,E402
from modules.cart.models import Cart, CartLine  # noqa: F401,E402
from modules.coupon.models import Coupon, CouponUsage  # noqa: F401,E402
from modules.order.models import Order, OrderItem, OrderStatusLog  # noqa: F401,E402

# ==========================================
# Import routers
# ==========================================
from modules.catalog.routes import router as catalog_router  # noqa: E402
from modules.cart.routes import router as cart_router  # noqa: E402
from modules.coupon.routes import router as coupon_api_router  # noqa: E402
from modules.coupon.admin_routes import router as coupon_admin_router  # noqa: E402
from modules.order.routes import router as order_router  # noqa: E402
from modules.order.admin_routes import router as order_admin_router  # noqa: E402


# ==========================================
# Background Scheduler: Rate-limit window cleanup
# ==========================================
def _purge_rate_limit_windows():
    """Background job: drop expired rate-limit windows every 5 minutes."""
    count = rate_limiter.purge_expired()
    if count:
        scheduler_logger.debug(f"Purged {count} expired rate-limit windows")


scheduler = BackgroundScheduler()


@asynccontextmanager
async def lifespan(app):
    # Auto-create any missing tables (safe for existing tables)
    Base.metadata.create_all(bind=engine)

    scheduler.add_job(_purge_rate_limit_windows, 'interval', minutes=5, id='rate_limit_cleanup')
    scheduler.start()
    scheduler_logger.info("Background scheduler started (rate-limit cleanup: 5m)")
    yield
    scheduler.shutdown()
    scheduler_logger.info("Background scheduler stopped")


# ==========================================
# Create App
# ==========================================
app = FastAPI(
    title="Zeene Storefront",
    description="Storefront cart, coupon and order API",
    version="1.0.0",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url=None,
    lifespan=lifespan,
)

# ==========================================
# Static Files (uploaded receipts)
# ==========================================
os.makedirs(settings.UPLOAD_DIR, exist_ok=True)
app.mount("/static", StaticFiles(directory=settings.STATIC_DIR), name="static")


# ==========================================
# Exception handler: business errors → JSON
# ==========================================
@app.exception_handler(StorefrontError)
async def storefront_error_handler(request: Request, exc: StorefrontError):
    return JSONResponse(
        {"success": False, "message": exc.message, "errors": getattr(exc, "errors", {})},
        status_code=exc.status_code,
    )


# ==========================================
# Middleware: API rate limit (per IP + path)
# ==========================================
@app.middleware("http")
async def api_rate_limit(request: Request, call_next):
    path = request.url.path
    if path.startswith("/api/"):
        ip = get_real_ip(request)
        if not rate_limiter.hit(f"api:{ip}:{path}", settings.API_RATE_LIMIT, settings.API_RATE_WINDOW):
            security_logger.warning(f"Rate limit exceeded: {request.method} {path} from {ip}")
            return JSONResponse(
                {"success": False, "message": "Too many requests. Please try again later.", "errors": {}},
                status_code=429,
                headers={"Retry-After": str(settings.API_RATE_WINDOW)},
            )
    return await call_next(request)


# ==========================================
# Middleware: No-Cache for Admin API
# ==========================================
@app.middleware("http")
async def no_cache_admin(request: Request, call_next):
    """Prevent caching of admin responses so stats are always fresh."""
    response = await call_next(request)
    if request.url.path.startswith("/admin/"):
        response.headers["Cache-Control"] = "no-cache, no-store, must-revalidate"
        response.headers["Pragma"] = "no-cache"
        response.headers["Expires"] = "0"
    return response


# ==========================================
# Middleware: Security Headers
# ==========================================
@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    response = await call_next(request)
    for name, value in security_headers().items():
        response.headers[name] = value
    return response


# ==========================================
# Register Routers
# ==========================================
app.include_router(catalog_router)
app.include_router(cart_router)
app.include_router(coupon_api_router)
app.include_router(coupon_admin_router)
app.include_router(order_router)
app.include_router(order_admin_router)


# ==========================================
# Health check
# ==========================================
@app.get("/health")
async def health():
    return {"status": "ok", "version": "1.0.0"}
