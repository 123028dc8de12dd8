from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from sellerboard.config import settings
from sellerboard.middleware.exceptions import register_exception_handlers
from sellerboard.routers import health, onboarding
from sellerboard.services.lifecycle import lifespan

app = FastAPI(
    title="sellerboard",
    description="Seller onboarding wizard with resumable progress",
    version="0.1.0",
    lifespan=lifespan,
)

# ── Exception Handlers ───────────────────────────────────────
register_exception_handlers(app)

# ── Middleware ───────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[settings.onboarding_token_header],
)

# ── Routers ──────────────────────────────────────────────────
app.include_router(health.router)
app.include_router(onboarding.router, prefix="/api/onboarding", tags=["onboarding"])
