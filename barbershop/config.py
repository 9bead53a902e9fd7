import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

# Firebase Configuration
FIREBASE_PROJECT_ID = os.getenv("FIREBASE_PROJECT_ID")
# Either the service account JSON itself or a path to the JSON file.
# Falls back to Application Default Credentials when unset.
FIREBASE_SERVICE_ACCOUNT = os.getenv("FIREBASE_SERVICE_ACCOUNT")

# Shop
SHOP_NAME = os.getenv("SHOP_NAME", "Pangkas Sahala Sariwangi")
SHOP_TIMEZONE = os.getenv("SHOP_TIMEZONE", "Asia/Jakarta")
SHOP_OPEN_HOUR = int(os.getenv("SHOP_OPEN_HOUR", "8"))
SHOP_CLOSE_HOUR = int(os.getenv("SHOP_CLOSE_HOUR", "20"))
SHOP_CONTACT_NAME = os.getenv("SHOP_CONTACT_NAME", "Akmal")
SHOP_CONTACT_PHONE = os.getenv("SHOP_CONTACT_PHONE", "081312772527")

# Queue
# Used when an appointment carries no serviceDuration of its own
DEFAULT_SERVICE_MINUTES = int(os.getenv("DEFAULT_SERVICE_MINUTES", "20"))
DEFAULT_LOCALE = os.getenv("DEFAULT_LOCALE", "en")

# Notifications
NOTIFICATION_ICON = os.getenv("NOTIFICATION_ICON", "/icons/icon-192.svg")
NOTIFICATION_BADGE = os.getenv("NOTIFICATION_BADGE", "/icons/icon-192.svg")
LOCAL_NOTIFICATION_TIMEOUT_SECONDS = float(os.getenv("LOCAL_NOTIFICATION_TIMEOUT_SECONDS", "10"))
PERMISSION_REQUEST_TIMEOUT_SECONDS = float(os.getenv("PERMISSION_REQUEST_TIMEOUT_SECONDS", "60"))

# Push relay (used by the queue notifier worker and other out-of-process callers)
RELAY_URL = os.getenv("RELAY_URL", "http://localhost:8000/api/send-notification")
RELAY_TIMEOUT_SECONDS = float(os.getenv("RELAY_TIMEOUT_SECONDS", "10"))
RELAY_SERVICE_TOKEN = os.getenv("RELAY_SERVICE_TOKEN")

# BigModel (LLM) Configuration - key never leaves the server
BIGMODEL_API_KEY = os.getenv("BIGMODEL_API_KEY")
BIGMODEL_API_URL = os.getenv(
    "BIGMODEL_API_URL", "https://open.bigmodel.cn/api/paas/v4/chat/completions"
)
BIGMODEL_MODEL = os.getenv("BIGMODEL_MODEL", "glm-4-flash")
BIGMODEL_TIMEOUT_SECONDS = float(os.getenv("BIGMODEL_TIMEOUT_SECONDS", "60"))
CHAT_ENABLE_TOOLS = os.getenv("CHAT_ENABLE_TOOLS", "false").lower() == "true"

# Admin back-office
ADMIN_PAGE_SIZE = int(os.getenv("ADMIN_PAGE_SIZE", "5"))

# Rate limiting
RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"
CHAT_RATE_LIMIT = int(os.getenv("CHAT_RATE_LIMIT", "20"))
CHAT_RATE_WINDOW_SECONDS = int(os.getenv("CHAT_RATE_WINDOW_SECONDS", "60"))
NOTIFY_RATE_LIMIT = int(os.getenv("NOTIFY_RATE_LIMIT", "60"))
NOTIFY_RATE_WINDOW_SECONDS = int(os.getenv("NOTIFY_RATE_WINDOW_SECONDS", "60"))

# Frontend base URL, used to build absolute notification links
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")

# CORS
ALLOWED_ORIGINS = os.getenv(
    "ALLOWED_ORIGINS",
    "http://localhost:5173,http://localhost:3000",
).split(",")
