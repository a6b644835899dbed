import os

from dotenv import load_dotenv

load_dotenv()

# Database
DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME", "storefront")

# Cache
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")

# Auth settings
ACCESS_TOKEN_SECRET = os.getenv("ACCESS_TOKEN_SECRET", "dev-access-secret-change-me")
REFRESH_TOKEN_SECRET = os.getenv("REFRESH_TOKEN_SECRET", "dev-refresh-secret-change-me")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 15
REFRESH_TOKEN_EXPIRE_DAYS = 7

ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
CLIENT_URL = os.getenv("CLIENT_URL", "http://localhost:5173")

# Payment gateway
PAYMENT_API_KEY = os.getenv("PAYMENT_API_KEY", "")
PAYMENT_API_URL = os.getenv("PAYMENT_API_URL", "https://api.stripe.com/v1")
CURRENCY = os.getenv("CURRENCY", "usd")

# Media CDN
MEDIA_API_URL = os.getenv("MEDIA_API_URL")
MEDIA_API_KEY = os.getenv("MEDIA_API_KEY", "")
MEDIA_FOLDER = os.getenv("MEDIA_FOLDER", "products")

# Coupon policy (amounts in minor units)
COUPON_AWARD_THRESHOLD = 20000
COUPON_DISCOUNT_PERCENTAGE = 10
COUPON_VALID_DAYS = 30
COUPON_CODE_PREFIX = "GIFT"
COUPON_CODE_SUFFIX_LENGTH = 4

ANALYTICS_WINDOW_DAYS = 7
RECOMMENDED_SAMPLE_SIZE = 4

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


def is_production() -> bool:
    return ENVIRONMENT == "production"
