"""
WADO Manifest Service

Indexes DICOM instances per archive and serves Weasis XML manifests that tell
the viewer where and how to retrieve the matching images over WADO.
"""

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from wado_manifest.database import init_db
from wado_manifest.routers import manifest
from wado_manifest.services.archive_config import load_archives_from_config

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create index tables and report configured archives on startup."""
    await init_db()

    archives = load_archives_from_config()
    logger.info(f"Serving manifests for {len(archives)} archive(s)")

    yield


app = FastAPI(
    title="WADO Manifest Service",
    description=(
        "Builds Weasis XML manifests (current multi-archive and legacy "
        "single-archive formats) from an index of DICOM instances."
    ),
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Manifest API ───────────────────────────────────────────────────
app.include_router(manifest.router, prefix="/v2", tags=["Manifest"])


@app.get("/health", tags=["Health"])
async def health_check():
    return {"status": "healthy", "service": "wado-manifest-service"}
