"""
Main FastAPI application for the Imaginify API.
Serves provider webhooks, image and credit routes, startup reads, health and metrics.
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.routes import credits, health, images, startup, webhooks
from app.core.config import settings
from app.core.errors import register_error_handlers
from app.core.lifespan import lifespan
from app.utils.metrics import router as metrics_router


app = FastAPI(
    title="Imaginify API",
    description="Credits ledger, image records and provider webhooks for Imaginify",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS
origins = settings.cors_origins_list
if not origins:
    origins = ["http://localhost:3000", "http://127.0.0.1:3000"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

# Routers
app.include_router(health.router, tags=["health"])
app.include_router(webhooks.router)
app.include_router(startup.router)
app.include_router(images.router)
app.include_router(credits.router)
app.include_router(metrics_router)
