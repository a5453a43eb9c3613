"""Main FastAPI application entry point."""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import APP_NAME, CORS_ORIGINS, get_settings
from api.routes_dashboard import router as dashboard_router
from api.routes_reference import router as reference_router

app = FastAPI(title=APP_NAME)

# Configure CORS for localhost frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(dashboard_router, prefix="/api")
app.include_router(reference_router, prefix="/api")


@app.get("/api/health")
async def healthcheck():
    """Health check endpoint."""
    return {"status": "ok"}


@app.get("/api/settings")
async def settings():
    """Non-secret runtime settings."""
    return get_settings()
