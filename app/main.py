"""Main FastAPI application."""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from app.config import settings
from app.forecast import routes as forecast_routes
from app.xero import routes as xero_routes

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

API_VERSION = "0.1.0"

app = FastAPI(
    title="CoachHub API",
    description="Live forecasting wizard and Xero subscription analysis",
    version=API_VERSION,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Forecast wizard: stateless derivation over client-held state
app.include_router(forecast_routes.router, prefix=f"{settings.API_V1_PREFIX}/forecast", tags=["Forecast"])
# Xero: connection status and subscription spend analysis
app.include_router(xero_routes.router, prefix=f"{settings.API_V1_PREFIX}/xero", tags=["Xero"])
app.add_exception_handler(xero_routes.XeroRequestError, xero_routes.xero_request_error_handler)


@app.get("/")
async def root():
    """Service banner with the mounted API areas."""
    return {
        "message": "CoachHub API",
        "version": API_VERSION,
        "environment": settings.APP_ENV,
        "endpoints": {
            "forecast": f"{settings.API_V1_PREFIX}/forecast/live",
            "xero": f"{settings.API_V1_PREFIX}/xero",
        },
        "docs": "/docs",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.APP_ENV == "development",
    )
