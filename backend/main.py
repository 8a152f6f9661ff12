"""
MedGuard - FastAPI Backend
Drug Interaction Risk Analysis

Main application entry point with all API routes.
"""

import os
import logging
from pathlib import Path
from datetime import datetime, UTC
from contextlib import asynccontextmanager

from fastapi import FastAPI, File, UploadFile, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from dotenv import load_dotenv

# Load environment variables from backend/.env regardless of launch directory
_ENV_PATH = Path(__file__).resolve().parent / ".env"
load_dotenv(dotenv_path=_ENV_PATH)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# Import pipeline modules
from pipeline.analyzer import analyze_interactions
from pipeline.errors import (
    GenotypeParseError,
    InsufficientDataError,
    InvalidResponseError,
    TransportFailureError,
)
from pipeline.genotype_parser import build_genetic_profile, decode_upload
from pipeline.llm_explainer import generate_narrative, get_generator
from pipeline.report_builder import render_report
from pipeline.rules_loader import get_rules
from pipeline.settings import load_settings
from pipeline.vitals_monitor import compare_vitals

# Import schemas and constants
from models.constants import (
    ALCOHOL_USE_OPTIONS,
    MAX_DNA_UPLOAD_BYTES,
    MEDICATION_FREQUENCIES,
    SEX_OPTIONS,
    SMOKING_STATUS_OPTIONS,
)
from models.schemas import (
    AnalyzeRequest,
    GeneticProfile,
    HealthResponse,
    ReferenceOptionsResponse,
    RiskVerdict,
    VitalsCompareRequest,
    VitalsComparison,
)

_RULES = get_rules()
_VERSION = "1.0.0"


# Application lifespan management
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown events."""
    logger.info("MedGuard starting up...")
    # Missing credentials fail the process here rather than on the first analysis.
    load_settings()
    yield
    await get_generator().close()
    logger.info("MedGuard shutting down...")


# Create FastAPI application
app = FastAPI(
    title="MedGuard",
    description="Drug interaction risk analysis - combines genotype, medications, and vitals into a traffic-light verdict",
    version=_VERSION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, specify allowed origins
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Health Check Endpoint
# =============================================================================

@app.get("/health", response_model=HealthResponse, tags=["System"])
async def health_check():
    """
    Health check endpoint for deployment monitoring.
    """
    return HealthResponse(
        status="healthy",
        version=_VERSION,
        rules_version=_RULES.rules_version,
        timestamp=datetime.now(UTC).isoformat().replace("+00:00", "Z")
    )


# =============================================================================
# Reference Endpoints
# =============================================================================

@app.get("/reference/options", response_model=ReferenceOptionsResponse, tags=["Reference"])
async def reference_options():
    """
    Option lists accepted by the activity score and medication forms.
    """
    return ReferenceOptionsResponse(
        frequencies=MEDICATION_FREQUENCIES,
        sex_options=SEX_OPTIONS,
        smoking_status_options=SMOKING_STATUS_OPTIONS,
        alcohol_use_options=ALCOHOL_USE_OPTIONS,
        recognized_genes=list(_RULES.recognized_genes),
    )


# =============================================================================
# DNA Upload Endpoint
# =============================================================================

@app.post("/dna/upload", response_model=GeneticProfile, tags=["Inputs"])
async def upload_dna(
    dna_file: UploadFile = File(..., description="23andMe raw data export (.txt or .zip)"),
):
    """
    Parse a raw DNA export into a genetic profile.

    - **dna_file**: tab-delimited rsid/chromosome/position/genotype file, optionally zipped
    """
    content = await dna_file.read()
    if len(content) > MAX_DNA_UPLOAD_BYTES:
        raise HTTPException(status_code=400, detail="DNA file exceeds 50MB limit")

    try:
        text = decode_upload(content, dna_file.filename)
        profile = build_genetic_profile(text)
    except GenotypeParseError as e:
        logger.error(f"DNA parsing error: {e}")
        raise HTTPException(status_code=400, detail=f"DNA parsing error: {str(e)}")

    if not profile.cytochrome_data:
        logger.warning("No target SNPs found in DNA file; profile is empty")
    return profile


# =============================================================================
# Main Analysis Endpoint
# =============================================================================

@app.post("/analyze", response_model=RiskVerdict, tags=["Analysis"])
async def analyze(request: AnalyzeRequest):
    """
    Run the interaction analysis.

    1. Activity score from genotype and demographics
    2. Drug-drug interaction scan
    3. Gene-drug interaction scan
    4. Risk classification
    5. Narrative summary from the text service

    A narrative failure fails the whole request; retry the request as a whole.
    """
    try:
        return await analyze_interactions(
            profile=request.genetic_profile,
            medications=request.medications,
            demographics=request.demographics,
            baseline_vitals=request.baseline_vitals,
            narrator=generate_narrative,
        )
    except InsufficientDataError as e:
        raise HTTPException(status_code=422, detail=e.message)
    except TransportFailureError as e:
        logger.error(f"Analysis failed: {e.message}")
        raise HTTPException(status_code=502, detail=f"Analysis failed: {e.message}")
    except InvalidResponseError as e:
        logger.error(f"Analysis failed: {e.message}")
        raise HTTPException(
            status_code=502,
            detail={
                "message": f"Analysis failed: {e.message}",
                "upstream_status": e.status_code,
            },
        )


@app.post("/report", response_class=PlainTextResponse, tags=["Analysis"])
async def export_report(verdict: RiskVerdict):
    """
    Render a verdict as a plain-text report for sharing with a doctor.
    """
    return render_report(verdict)


# =============================================================================
# Vitals Endpoint
# =============================================================================

@app.post("/vitals/compare", response_model=VitalsComparison, tags=["Vitals"])
async def vitals_compare(request: VitalsCompareRequest):
    """
    Compare a follow-up vitals reading against the baseline.
    """
    try:
        return compare_vitals(request.baseline, request.latest)
    except InsufficientDataError as e:
        raise HTTPException(status_code=422, detail=e.message)


# =============================================================================
# Run Application
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", 8000))
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=port,
        reload=os.getenv("ENV", "development") == "development"
    )
