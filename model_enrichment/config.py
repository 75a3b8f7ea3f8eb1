"""Configuration for the model enrichment orchestrator."""

import os

# GCP Project
PROJECT_ID = os.getenv("GOOGLE_CLOUD_PROJECT", os.getenv("GCP_PROJECT_ID"))
VERTEX_LOCATION = os.getenv("VERTEX_LOCATION", "us-central1")

# Firestore collections
MODELS_COLLECTION = os.getenv("MODELS_COLLECTION", "models")
EXECUTIONS_COLLECTION = os.getenv("EXECUTIONS_COLLECTION", "workflow_executions")

WORKFLOW_ID = "ai-model-enrichment"

# Batch pacing
BATCH_DELAY_SECS = float(os.getenv("BATCH_DELAY_SECS", "30"))
CANCEL_POLL_SECS = float(os.getenv("CANCEL_POLL_SECS", "5"))

# Execution record bounds
MAX_LOG_ENTRIES = 100
MAX_SCRAPED_SOURCES = 10

# Candidate selection
MAX_CANDIDATES = 50
CANDIDATE_POOL_LIMIT = 200
REVIEW_LIST_LIMIT = 100

# Watchdog
STALE_EXECUTION_SECS = int(os.getenv("STALE_EXECUTION_SECS", "1800"))  # 30 min without heartbeat
MAX_EXECUTION_SECS = int(os.getenv("MAX_EXECUTION_SECS", "21600"))  # 6 hours

# LLM
DEFAULT_RESEARCH_MODEL = os.getenv("RESEARCH_MODEL", "gemini-2.5-pro")
USE_MOCK_LLM = os.getenv("USE_MOCK_LLM", "false").lower() == "true"

# Estimated USD cost per researched model, by target detail level
COST_PER_MODEL_USD = {
    "basic": 0.02,
    "enhanced": 0.03,
    "premium": 0.05,
}
VALIDATION_COST_MULTIPLIER = 1.5
