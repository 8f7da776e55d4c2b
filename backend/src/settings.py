"""
Runtime settings for the SEO pipeline, read from the environment.
"""
import os

BASE_DIR = os.environ.get("SEO_PIPELINE_BASE_DIR", os.getcwd())

CONFIG_PATH = os.environ.get("CONFIG_PATH", os.path.join(BASE_DIR, "pipeline.config.json"))

DATA_DIR = os.environ.get("DATA_DIR", os.path.join(BASE_DIR, "data"))
ARTICLES_DIR = os.path.join(DATA_DIR, "articles")
SITE_CONTENT_DIR = os.environ.get(
    "SITE_CONTENT_DIR",
    os.path.join(BASE_DIR, "packages", "site-template", "src", "content", "posts"),
)

REPORT_PATH = os.environ.get("REPORT_PATH", os.path.join(DATA_DIR, "logs", "pipeline-report.json"))
REPORT_DATABASE_URL = os.environ.get("REPORT_DATABASE_URL") or None
REPORT_WEBHOOK_URL = os.environ.get("REPORT_WEBHOOK_URL") or os.environ.get("WEBHOOK_URL") or None

LOG_LEVEL = os.environ.get("LOG_LEVEL", "info").lower()
LOG_FORMAT = os.environ.get("LOG_FORMAT", "pretty").lower()

# Credentials checked by stage preconditions
ANTHROPIC_API_KEY_VAR = "ANTHROPIC_API_KEY"
GOOGLE_SERVICE_ACCOUNT_VAR = "GOOGLE_SERVICE_ACCOUNT_KEY_PATH"
