import os

from app.core.env import load_env

load_env()

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_JSON = os.getenv("LOG_JSON", "false").lower() == "true"

# analysis bundles are kept in memory for get-data calls
BUNDLE_TTL_S = int(os.getenv("BUNDLE_TTL_S", "1800"))

DEFAULT_TIMEZONE = os.getenv("DEFAULT_TIMEZONE", "Asia/Ho_Chi_Minh")
