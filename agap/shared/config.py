import os

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL")
DB_POOL_MIN = int(os.getenv("DB_POOL_MIN", "1"))
DB_POOL_MAX = int(os.getenv("DB_POOL_MAX", "20"))

JWT_SECRET = os.getenv("JWT_SECRET", "change-me")
ACCESS_TOKEN_HOURS = int(os.getenv("ACCESS_TOKEN_HOURS", "24"))

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

# Vision proxy
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
OPENAI_API_URL = os.getenv("OPENAI_API_URL", "https://api.openai.com/v1/chat/completions")
VISION_TIMEOUT_SECONDS = float(os.getenv("VISION_TIMEOUT_SECONDS", "30"))

# Storage buckets (Cloudinary, private delivery)
CLOUDINARY_CLOUD_NAME = os.getenv("CLOUDINARY_CLOUD_NAME")
CLOUDINARY_API_KEY = os.getenv("CLOUDINARY_API_KEY")
CLOUDINARY_API_SECRET = os.getenv("CLOUDINARY_API_SECRET")
REPORT_IMAGES_BUCKET = "report-images"
AVATARS_BUCKET = "avatars"
SIGNED_URL_TTL_SECONDS = int(os.getenv("SIGNED_URL_TTL_SECONDS", "3600"))

# Push notifications (service account JSON)
FIREBASE_CREDENTIALS = os.getenv("FIREBASE_CREDENTIALS")

FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")

# Outgoing mail
SMTP_SERVER = os.getenv("SMTP_SERVER", "smtp.gmail.com")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_USERNAME = os.getenv("SMTP_USERNAME")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD")
FROM_EMAIL = os.getenv("FROM_EMAIL")

GEOCODING_USER_AGENT = os.getenv("GEOCODING_USER_AGENT", "AGAP-WebApp/1.0")
# Iloilo
DEFAULT_MAP_CENTER = (10.7202, 122.5621)

STATUS_POLL_INTERVAL_SECONDS = float(os.getenv("STATUS_POLL_INTERVAL_SECONDS", "2"))
STATUS_POLL_TIMEOUT_SECONDS = float(os.getenv("STATUS_POLL_TIMEOUT_SECONDS", "60"))

ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "admin@agap.ph")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD")
