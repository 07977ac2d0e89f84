"""Main FastAPI application."""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from dealcast import __version__
from dealcast.config import settings
from dealcast.financials import routes as financials_routes
from dealcast.forecast import routes as forecast_routes

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# Create FastAPI app
app = FastAPI(
    title="Dealcast API",
    description="Deal financial projections across a tenant's financial year",
    version=__version__,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(forecast_routes.router, prefix=f"{settings.API_V1_PREFIX}/forecast", tags=["Forecast"])
app.include_router(financials_routes.router, prefix=f"{settings.API_V1_PREFIX}/financials", tags=["Financials"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Dealcast API",
        "version": __version__,
        "docs": "/docs",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "dealcast.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
