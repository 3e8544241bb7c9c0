from fastapi import FastAPI, APIRouter, Query
from dotenv import load_dotenv
from starlette.middleware.cors import CORSMiddleware
import os
import logging
import asyncio
from pathlib import Path
from pydantic import RootModel
from typing import List, Optional
from datetime import datetime, timezone

from conversion_state_engine import EngineState, UiEvent, picker_units
from converter_session import ConverterSession
from currency_rates_client import CurrencyRatesClient
from unit_catalog import ConversionUnit, ConverterMode

ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

# Converter session (one per process) and its reference data source
session = ConverterSession()
rates_client = CurrencyRatesClient.from_env()

app = FastAPI(title="CoinSwap Converter")

# Default allowed origins for local development
DEFAULT_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]

cors_origins_env = os.environ.get('CORS_ORIGINS', '')
if cors_origins_env:
    cors_origins = [origin.strip() for origin in cors_origins_env.split(',') if origin.strip()]
else:
    cors_origins = DEFAULT_CORS_ORIGINS

app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_origins=cors_origins,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=[
        "Content-Type",
        "Accept",
        "Origin",
        "Access-Control-Request-Method",
        "Access-Control-Request-Headers",
    ],
    max_age=600,  # Cache preflight for 10 minutes
)

# ==================== HEALTH ENDPOINT (ROOT LEVEL) ====================
@app.get("/api/health")
async def health_check():
    """Health check endpoint for monitoring"""
    return {
        "ok": True,
        "time": datetime.now(timezone.utc).isoformat(),
        "service": "CoinSwap Converter API",
        "version": "1.0.0"
    }

api_router = APIRouter(prefix="/api")

# ==================== MODELS ====================

class ConverterEventBody(RootModel[UiEvent]):
    """Keypad/picker event posted by the calculator front end"""

# ==================== CONVERTER ROUTES ====================

@api_router.get("/converter/state", response_model=EngineState)
async def get_converter_state():
    return session.state

@api_router.post("/converter/events", response_model=EngineState)
async def post_converter_event(body: ConverterEventBody):
    """Apply one UI event and return the new snapshot"""
    return session.dispatch(body.root)

@api_router.get("/converter/units", response_model=List[ConversionUnit])
async def get_converter_units(mode: Optional[ConverterMode] = Query(None)):
    """Picker entries for a mode (defaults to the active mode)"""
    return picker_units(session.state, mode)


app.include_router(api_router)

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

@app.on_event("startup")
async def startup_event():
    """Start the one-shot currency rates fetch"""
    app.state.rates_task = asyncio.create_task(session.load_currency_rates(rates_client))
    logger.info("Started currency rates fetch")
