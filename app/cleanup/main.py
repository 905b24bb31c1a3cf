"""
Cleanup service: manual trigger and dry run for the orphaned blob sweeper.
The same sweep runs on the Celery beat schedule.
"""
from fastapi import FastAPI

from app.api.routes import cleanup, health
from app.core.errors import register_error_handlers
from app.core.lifespan import lifespan


app = FastAPI(title="Cleanup Service", lifespan=lifespan)

register_error_handlers(app)

app.include_router(health.router, tags=["health"])
app.include_router(cleanup.router)
