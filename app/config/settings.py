"""
Application settings and configuration
"""
import os
from dotenv import load_dotenv

load_dotenv()

class Settings:
    # Application
    APP_NAME = "Sultanah Travel Booking"
    VERSION = "1.0.0"
    DEBUG = os.getenv("DEBUG", "False") == "True"
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    TIMEZONE = os.getenv("TIMEZONE", "Asia/Jakarta")
    
    # Security
    SECRET_KEY = os.getenv("SECRET_KEY", "your-secret-key-change-in-production")
    ALGORITHM = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES = 60 * 24  # 24 hours
    
    # CORS
    ALLOWED_ORIGINS = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

    # Midtrans Snap
    MIDTRANS_SERVER_KEY = os.getenv("MIDTRANS_SERVER_KEY", "")
    MIDTRANS_CLIENT_KEY = os.getenv("MIDTRANS_CLIENT_KEY", "")
    MIDTRANS_IS_PRODUCTION = os.getenv("MIDTRANS_IS_PRODUCTION", "False") == "True"
    MIDTRANS_SNAP_URL = (
        "https://app.midtrans.com/snap/v1" if MIDTRANS_IS_PRODUCTION
        else "https://app.sandbox.midtrans.com/snap/v1"
    )
    MIDTRANS_API_URL = (
        "https://api.midtrans.com/v2" if MIDTRANS_IS_PRODUCTION
        else "https://api.sandbox.midtrans.com/v2"
    )

    # Token service used by the checkout flow (this service's own endpoint by default)
    TRANSACTION_TOKEN_URL = os.getenv("TRANSACTION_TOKEN_URL", "http://localhost:8000/api/create-transaction")
    HTTP_TIMEOUT_SECONDS = float(os.getenv("HTTP_TIMEOUT_SECONDS", "20"))

    # Checkout
    VOUCHER_DISCOUNT = 200000  # flat, in IDR
    CUSTOMER_ROLE = "current-jamaah"
    DASHBOARD_PATH = "/dashboard"
    HOME_PATH = "/"
    MIN_PASSWORD_LENGTH = 6
    CHECKOUT_SESSION_TTL_SECONDS = int(os.getenv("CHECKOUT_SESSION_TTL_SECONDS", "7200"))  # idle sessions are dropped

settings = Settings()
