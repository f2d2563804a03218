"""Live forecast API routes.

The engine keeps no server-side state: the wizard posts its current state and
gets back the derived figures, the projected year and the panel payload.
"""
from fastapi import APIRouter

from app.forecast.calculations import calculate_forecast
from app.forecast.context import initialize_from_context
from app.forecast.panel import build_panel, resolve_selected_year
from app.forecast.projection import project_year
from app.forecast.types import LiveForecastState
from app.schemas.forecast import CalculateForecastRequest, InitializeForecastRequest

router = APIRouter()


@router.post("/live/initialize")
async def initialize_live_forecast(request: InitializeForecastRequest):
    """
    Build live forecast state from the wizard's business context.

    Fields missing from the context keep their values from ``request.state``
    (or the defaults when no state is given).
    """
    state = request.state.to_state() if request.state else LiveForecastState()
    return initialize_from_context(state, request.context.model_dump())


@router.post("/live/calculate")
async def calculate_live_forecast(request: CalculateForecastRequest):
    """
    Recompute the live forecast for the posted state.

    Returns the Year-1 calculations, the projection for the selected year in
    the requested view mode, and the panel payload built from both.
    """
    state = request.state.to_state()
    calculations = calculate_forecast(state)
    year = resolve_selected_year(state, request.selected_year)

    return {
        "calculations": calculations,
        "projection": project_year(state, year, request.view_mode, calculations),
        "panel": build_panel(state, calculations, year, request.view_mode),
    }
