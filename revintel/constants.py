"""Fixed values shared across the workflow engine."""

MAX_RETRIES = 3

DEFAULT_APP_ID = "rip-default-app-id"
HISTORY_COLLECTION = "rip_analyses"

DEFAULT_GEMINI_MODEL = "gemini-2.5-flash-preview-09-2025"
DEFAULT_GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"

# Leads workflow assumptions
ASSUMED_MONTHLY_TRAFFIC = 10000
LEAD_CONVERSION_RATE = 0.03
AVG_LEAD_VALUE = 75

# Email workflow baseline
CURRENT_OPEN_RATE = "22.5%"
CURRENT_CLICK_RATE = "2.8%"

SUCCESS_STATUS = "Success"
