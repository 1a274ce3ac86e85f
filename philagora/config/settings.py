"""
Configuration Settings for the Philagora Editorial Pipeline

This module centralizes all configuration settings for the pipeline,
including environment variables, API keys, model choices and the
tunable constants used by generation, scoring and ingestion.
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Determine the application root directory
APP_ROOT = Path(__file__).resolve().parent.parent.parent

# Load environment variables from .env file
load_dotenv(dotenv_path=os.path.join(APP_ROOT, '.env'))

# API Keys and Authentication
GOOGLE_AI_API_KEY = os.getenv("GOOGLE_AI_API_KEY")
PLACEHOLDER_API_KEY = "placeholder_key_here"

# Database Settings
DB_SERVER = os.getenv("server", "")
DB_NAME = os.getenv("db", "")
DB_USER = os.getenv("user", "")
DB_PASSWORD = os.getenv("pwd", "")

# Build connection string safely (validation happens in validate_settings())
DB_CONNECTION_STRING = (
    f"DRIVER={{ODBC Driver 18 for SQL Server}}; "
    f"SERVER={DB_SERVER}; "
    f"DATABASE={DB_NAME}; "
    f"UID={DB_USER}; "
    f"PWD={DB_PASSWORD}; "
    f"TrustServerCertificate=yes; MARS_Connection=yes;"
) if all([DB_SERVER, DB_NAME, DB_USER, DB_PASSWORD]) else ""

SCHEMA_FILE = os.path.join(APP_ROOT, "philagora", "data", "schema.sql")

# Application Settings
LOG_FILE = os.getenv("PHILAGORA_LOG_FILE", "philagora.log")

# =============================================================================
# AI Model Settings
# =============================================================================

GENERATION_MODEL = os.getenv("GENERATION_MODEL", "gemini-2.5-flash")
SCORING_MODEL = os.getenv("SCORING_MODEL", "gemini-2.5-flash-lite")

GENERATION_TEMPERATURE = 0.8         # Higher = more creative variation
SYNTHESIS_TEMPERATURE = 0.4          # Lower for precision and consistency
SCORING_TEMPERATURE = 0.3

DEFAULT_MAX_TOKENS = 1024
SYNTHESIS_MAX_TOKENS = 2048          # Synthesis output is longer
SCORING_MAX_TOKENS = 1024

# Hard token caps per target length, enforcing brevity at the API level
LENGTH_MAX_TOKENS = {
    "short": 256,
    "medium": 1024,
    "long": 1536,
}

LLM_REQUEST_TIMEOUT = 60             # Seconds before an LLM call is abandoned

# =============================================================================
# Content Generation Settings
# =============================================================================

# Short-post word-count policy
SHORT_POST_MAX_WORDS = 60
SHORT_POST_MAX_ATTEMPTS = 3
RETRY_DELAY_SECONDS = 1.0            # Pause between generation attempts

# Reject stances outside the fixed enumeration instead of only warning
STRICT_STANCE_VALIDATION = os.getenv("STRICT_STANCE_VALIDATION", "false").lower() == "true"

# Marker that identifies guardrail text already present in a system prompt
GUARDRAIL_SENTINEL = "CRITICAL CONSTRAINT"

# =============================================================================
# News Scout Settings
# =============================================================================

SCORING_BATCH_SIZE = 50              # Candidates scored per run
MIN_WORTHWHILE_SCORE = 40            # Below this an article is not worth reacting to
ARTICLE_DESCRIPTION_MAX_LENGTH = 2000
FEED_FETCH_TIMEOUT = 10              # Seconds to wait for an RSS feed
OG_IMAGE_TIMEOUT = 5                 # Seconds to wait for an article page

# Web Scraping Settings
USER_AGENT = 'Mozilla/5.0 (compatible; Philagora/1.0)'
REQUEST_HEADERS = {
    'User-Agent': USER_AGENT,
    'Accept': 'application/rss+xml, application/atom+xml, application/xml;q=0.9, text/html;q=0.8, */*;q=0.5',
    'Accept-Language': 'en-US,en;q=0.5',
}
