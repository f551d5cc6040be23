"""FastAPI HTTP surface for the validator.

POST /api/validate runs one assessment and returns the report JSON. The
assessment blocks on the external suite for seconds, so it runs in the
default executor and unrelated requests are never serialized behind it.

Configuration is read once at import from the file named by
``RNGVALIDATOR_CONFIG`` (if any) plus the usual environment overrides.
"""
import asyncio
import os
from typing import Literal, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse
from pydantic import BaseModel, Field

from . import __version__
from .config import load_config
from .engine import Engine
from .models import NumericInput
from .tiers import describe_tiers

config = load_config(os.environ.get("RNGVALIDATOR_CONFIG"))
engine = Engine(config)

app = FastAPI(title="RNG Validator API", version=__version__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


class ValidateRequest(BaseModel):
    numbers: str = Field(..., description="Comma/whitespace separated integers, or base64 data")
    input_format: Literal["numbers", "base64"] = "numbers"
    range_min: Optional[int] = None
    range_max: Optional[int] = None
    bit_width: Optional[int] = Field(None, description="8, 16 or 32")
    debug_log: bool = False


@app.get("/", include_in_schema=False)
async def _root_redirect():
    return RedirectResponse(url="/docs")


@app.post("/api/validate")
async def validate(request: ValidateRequest):
    """Assess a number sequence. Input problems come back as ``valid: false``
    reports with an ``error_kind``, never as server errors."""
    payload = NumericInput(
        numbers=request.numbers,
        input_format=request.input_format,
        range_min=request.range_min,
        range_max=request.range_max,
        bit_width=request.bit_width,
        debug_log=request.debug_log,
    )
    loop = asyncio.get_running_loop()
    report = await loop.run_in_executor(None, engine.validate, payload)
    return report.to_dict()


@app.get("/api/tiers")
async def tiers():
    return {"tiers": describe_tiers()}


@app.get("/health")
async def health():
    return {
        "status": "ok",
        "version": __version__,
        "suite_enabled": engine.driver is not None,
    }
