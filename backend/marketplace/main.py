"""
# `marketplace/main.py` - Uygulama giriş noktası

## Genel Bilgi
FastAPI uygulaması burada kurulur: CORS, istek kaydı middleware'i, hata gövdesi
handler'ı, router'lar ve arka planda çalışan scheduler.

---

## Router'lar
**Kimlik doğrulamalı (Bearer token):**
- `/checkout` (misafir kullanıcılar hariç)
- `/cart`
- `/orders`

**Public:**
- `/health`

**Admin (prefix `/admin`):**
- `/admin/orders`

`/logs/recent` admin yetkisi ister (`require_admin`).

---

## Paylaşılan durum (`app.state`)
- `request_log`: son `settings.request_log_capacity` isteğin ring buffer'ı (POST gövdeleri `[REDACTED]`).
- `checkout_rate_limiter`: istemci başına sabit pencere limiti
  (`settings.checkout_rate_limit` istek / `settings.checkout_rate_window_seconds` sn).

---

## Arka Plan Scheduler
- **Kütüphane:** APScheduler (`AsyncIOScheduler`)
- **İş:** `purge_expired_idempotency_records` (süresi dolmuş idempotency kayıtlarını siler)
- **Periyot:** `settings.idempotency_sweep_minutes` dakikada bir

**Olaylar:**
- `startup`: tablolar oluşturulur, scheduler başlatılır.
- `shutdown`: scheduler kapatılır.
"""
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from marketplace.config import settings
from marketplace.core.errors import CheckoutError
from marketplace.core.ratelimit import FixedWindowRateLimiter
from marketplace.core.request_log import RequestLog
from marketplace.database import init_db
from marketplace.routers import carts, checkout, orders, system
from marketplace.services.idempotency_sweep import purge_expired_idempotency_records

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger("marketplace")

# Tek bir scheduler instance'ı
scheduler = AsyncIOScheduler()

app = FastAPI(
    title="Marketplace Checkout API",
    description="Cart, checkout and order endpoints for a multi-seller marketplace.",
    version="1.0.0",
    redirect_slashes=False,
)

app.state.request_log = RequestLog(settings.request_log_capacity)
app.state.checkout_rate_limiter = FixedWindowRateLimiter(
    settings.checkout_rate_limit, settings.checkout_rate_window_seconds
)

# Configure CORS (allow front-end domain or all origins as specified)
allow_origins = [origin.strip() for origin in settings.allowed_origins.split(',')] if settings.allowed_origins else ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def record_request(request: Request, call_next):
    request.app.state.request_log.record(
        request.method,
        str(request.url),
        request.client.host if request.client else None,
        request.headers.get("user-agent"),
    )
    return await call_next(request)


@app.exception_handler(CheckoutError)
async def checkout_error_handler(request: Request, exc: CheckoutError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


app.include_router(system.router)
app.include_router(checkout.router)
app.include_router(carts.router)
app.include_router(orders.router)
app.include_router(orders.admin_router, prefix="/admin")


@app.on_event("startup")
async def _startup():
    init_db()
    if not scheduler.running:
        scheduler.start()
    # Job'u güvenle ekle (varsa üstüne yaz)
    scheduler.add_job(
        purge_expired_idempotency_records,
        "interval",
        minutes=settings.idempotency_sweep_minutes,
        id="idempotency-sweep",
        replace_existing=True,
    )
    logger.info("Marketplace API started")


@app.on_event("shutdown")
async def _shutdown():
    if scheduler.running:
        scheduler.shutdown(wait=False)


# Run the app directly with uvicorn (for development)
if __name__ == "__main__":
    import uvicorn
    uvicorn.run("marketplace.main:app", host="0.0.0.0", port=8000, reload=True)
