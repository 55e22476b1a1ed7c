"""
Runtime configuration for the panchayat artifacts service.
Every setting is read from the environment once, at import time.
"""

import os
from pathlib import Path

# Durable store configuration
DB_PATH = os.getenv("DB_PATH", "./data/panchayat.db")
DURABLE_STORE_ENABLED = os.getenv("DURABLE_STORE_ENABLED", "true").lower() == "true"

# Artifact cache and generation
ARTIFACT_CACHE_DIR = os.getenv("ARTIFACT_CACHE_DIR", "./data/artifacts")
IMAGE_REENCODE_ENABLED = os.getenv("IMAGE_REENCODE_ENABLED", "true").lower() == "true"
RENDER_DPI = int(os.getenv("RENDER_DPI", "150"))
JPEG_QUALITY = int(os.getenv("JPEG_QUALITY", "90"))
GENERATION_WORKERS = int(os.getenv("GENERATION_WORKERS", "4"))
GENERATION_TIMEOUT_SEC = float(os.getenv("GENERATION_TIMEOUT_SEC", "30"))

# Document branding
PORTAL_NAME = os.getenv("PORTAL_NAME", "Digital e-Gram Panchayat")

# API
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv(
        "CORS_ORIGINS",
        "http://localhost:3000,http://127.0.0.1:3000,http://localhost:3001,http://127.0.0.1:3001",
    ).split(",")
    if origin.strip()
]
DEBUG = os.getenv("DEBUG", "true").lower() == "true"

VERSION = "1.0.0"


def debug_enabled():
    """Check if debug mode is enabled."""
    return os.getenv("DEBUG", "true").lower() == "true"


def ensure_db_directory(db_path: str = None):
    """Ensure the database directory exists."""
    Path(db_path or DB_PATH).parent.mkdir(parents=True, exist_ok=True)


def ensure_cache_directory(cache_dir: str = None) -> Path:
    """Ensure the artifact cache directory exists and return it."""
    path = Path(cache_dir or ARTIFACT_CACHE_DIR)
    path.mkdir(parents=True, exist_ok=True)
    return path


def validate_generation_config():
    """Validate artifact generation configuration and return any issues."""
    issues = []

    if not 36 <= RENDER_DPI <= 600:
        issues.append("RENDER_DPI must be between 36 and 600")

    if not 1 <= JPEG_QUALITY <= 95:
        issues.append("JPEG_QUALITY must be between 1 and 95")

    if GENERATION_WORKERS < 1:
        issues.append("GENERATION_WORKERS must be >= 1")

    if GENERATION_TIMEOUT_SEC <= 0:
        issues.append("GENERATION_TIMEOUT_SEC must be > 0")

    return issues
