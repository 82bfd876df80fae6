# config.py
import os
from dotenv import load_dotenv

load_dotenv()

MONGODB_URI = os.getenv("MONGODB_URI", "mongodb://localhost:27017")
MONGODB_DB = os.getenv("MONGODB_DB", "aureus_cbt_db")

JWT_SECRET = os.getenv("JWT_SECRET", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES") or 60 * 24)

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",") if o.strip()]

# Reserved staff address; cannot be self-registered
ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "admin@aureusmedicos.com").lower()

OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
OPENAI_EXTRACTION_MODEL = os.getenv("OPENAI_EXTRACTION_MODEL", "gpt-4o-mini")

SUBSCRIPTION_POLL_SECONDS = float(os.getenv("SUBSCRIPTION_POLL_SECONDS") or 5)

ANALYTICS_RESULT_LIMIT = int(os.getenv("ANALYTICS_RESULT_LIMIT") or 5000)
ANALYTICS_TEST_LIMIT = int(os.getenv("ANALYTICS_TEST_LIMIT") or 500)
ANALYTICS_QUESTION_LIMIT = int(os.getenv("ANALYTICS_QUESTION_LIMIT") or 5000)
