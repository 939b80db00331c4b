"""Medflow FastAPI application.

Web server that processes the lifecycle operations synchronously via HTTP.
Each request runs inside the medflow domain context.

Usage:
    uvicorn src.app:app --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# PROTEAN_ENV controls which config overlay is applied:
#   - "test"       → event_processing = "sync"  (notifications fire in UoW)
#   - "production" → event_processing = "async" (notifications fire via Engine)
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from medflow.domain import medflow
from medflow.utils.logging import add_context, clear_context

medflow.init()

# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Medflow API",
    description="Medicine order lifecycle: stock, orders, payments and delivery",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def domain_context_middleware(request: Request, call_next):
    """Push the medflow domain context for each request."""
    clear_context()
    add_context(method=request.method, path=request.url.path)
    with medflow.domain_context():
        response = await call_next(request)
    return response


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
from medflow.api import (  # noqa: E402
    cart_router,
    delivery_router,
    order_router,
    payment_router,
    stock_router,
)

app.include_router(order_router)
app.include_router(cart_router)
app.include_router(payment_router)
app.include_router(delivery_router)
app.include_router(stock_router)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(content={"status": "ok", "domain": {"name": medflow.name}})
