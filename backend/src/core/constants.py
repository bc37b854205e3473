"""Application constants and configuration values."""

from core.config import FRONTEND_URL

# Database field lengths
MAX_STRING_LENGTH = 255
MAX_NOTES_LENGTH = 5000
MAX_REASON_LENGTH = 1000

# Database connection settings
DB_POOL_RECYCLE_SECONDS = 300  # 5 minutes

# CORS origins for development and production
_CORS_ORIGINS_RAW = [
    "http://localhost:5173",      # Admin console dev server (Vite)
    FRONTEND_URL,
]

# Filter out None values and empty strings to avoid CORS errors
CORS_ORIGINS = [origin for origin in _CORS_ORIGINS_RAW if origin and origin.strip()]

# Roles
ROLE_ADMIN = "admin"
ROLE_SERVICE_PROVIDER = "service_provider"

# Free-text minimums enforced by the extension workflow
MIN_EXTENSION_REASON_LENGTH = 10
MIN_REJECTION_NOTES_LENGTH = 10

# Upper bounds on lists accepted when finishing work
MAX_PROOFS_PER_FINISH = 20

MINUTES_PER_DAY = 24 * 60
