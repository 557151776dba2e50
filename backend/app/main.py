"""FastAPI application."""

from fastapi import FastAPI

from backend.app.api.routes.billing import router as billing_router
from backend.app.api.routes.chat import router as chat_router
from backend.app.api.routes.documents import router as documents_router
from backend.app.api.routes.health import router as health_router
from backend.app.api.routes.metrics import router as metrics_router

app = FastAPI(title="Contract Review API", version="0.1.0")

# Register routes
app.include_router(health_router, tags=["health"])
app.include_router(metrics_router, tags=["metrics"])
app.include_router(documents_router, tags=["documents"])
app.include_router(chat_router, tags=["chat"])
app.include_router(billing_router, tags=["billing"])


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {"message": "Contract Review API", "version": "0.1.0"}
