"""
Zeene Storefront - Centralized Configuration
=============================================
All environment variables and constants are loaded here.
No other module should call os.getenv() directly.
"""

import os
import sys
from decimal import Decimal

from dotenv import load_dotenv

load_dotenv()

BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


# ==========================================
# 🗄️ Database
# ==========================================
DB_USER = os.getenv("DB_USER")
DB_PASSWORD = os.getenv("DB_PASSWORD")
DB_HOST = os.getenv("DB_HOST", "localhost")
DB_PORT = os.getenv("DB_PORT", "5432")
DB_NAME = os.getenv("DB_NAME")

DATABASE_URL = os.getenv("DATABASE_URL")
if not DATABASE_URL:
    if all([DB_USER, DB_PASSWORD, DB_HOST, DB_NAME]):
        DATABASE_URL = f"postgresql://{DB_USER}:{DB_PASSWORD}@{DB_HOST}:{DB_PORT}/{DB_NAME}"
    else:
        # Local development only
        DATABASE_URL = f"sqlite:///{os.path.join(BASE_DIR, 'storefront.db')}"


# ==========================================
# 🔐 Security
# ==========================================
SECRET_KEY = os.getenv("SECRET_KEY")

if not SECRET_KEY:
    print("[ERROR] Critical: SECRET_KEY missing in .env")
    sys.exit(1)

ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 60 * 24 * 7  # 7 days

SESSION_COOKIE = "cart_session"
COOKIE_SECURE = os.getenv("COOKIE_SECURE", "false").lower() == "true"
COOKIE_SAMESITE = os.getenv("COOKIE_SAMESITE", "lax")

# Rate limiting (per client IP)
API_RATE_LIMIT = 50           # requests per window on /api/*
API_RATE_WINDOW = 60          # seconds
CHECKOUT_RATE_LIMIT = 10      # order submissions per window
CHECKOUT_RATE_WINDOW = 60     # seconds


# ==========================================
# 📧 Email
# ==========================================
RESEND_API_KEY = os.getenv("RESEND_API_KEY", "")
EMAIL_PROVIDER = os.getenv("EMAIL_PROVIDER", "resend" if RESEND_API_KEY else "console")
EMAIL_FROM = os.getenv("EMAIL_FROM", "no-reply@zeene.store")
STORE_ADMIN_EMAIL = os.getenv("STORE_ADMIN_EMAIL", "zeene.contact@gmail.com")
STORE_NAME = os.getenv("STORE_NAME", "ZEENE")
EMAIL_TIMEOUT = 10  # seconds


# ==========================================
# 📁 File Upload (payment receipts)
# ==========================================
STATIC_DIR = os.getenv("STATIC_DIR", os.path.join(BASE_DIR, "static"))
UPLOAD_DIR = os.path.join(STATIC_DIR, "uploads")
ALLOWED_IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp", ".gif"}
MAX_FILE_SIZE = 5 * 1024 * 1024  # 5 MB
RECEIPT_IMAGE_MAX_SIZE = (1600, 1600)


# ==========================================
# 🔧 App
# ==========================================
DEBUG = os.getenv("DEBUG", "false").lower() == "true"
TEMPLATE_DIR = os.path.join(BASE_DIR, "templates")
CURRENCY = os.getenv("CURRENCY", "PKR")

# Default cap for cart lines when neither variant nor product reports stock
DEFAULT_MAX_QUANTITY = 100

# Minimum order total after discount
MIN_ORDER_TOTAL = Decimal("0")

# Base URL for public links (receipts, emails)
BASE_URL = os.getenv("BASE_URL", "http://127.0.0.1:8000")
