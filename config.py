import os

from dotenv import load_dotenv
load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME")

APP_ENV = os.getenv("APP_ENV", "development")
IS_PRODUCTION = APP_ENV == "production"

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

# Admin session
JWT_SECRET = os.getenv("JWT_SECRET", "devsecret")
PWD_SALT = os.getenv("PWD_SALT", "salt")
ACCESS_TOKEN_EXPIRE_MINUTES = 60 * 24
ADMIN_COOKIE = "admin_token"

# Cart cookie
CART_SECRET = os.getenv("CART_SECRET", JWT_SECRET)
CART_COOKIE = "cart"
CART_COOKIE_MAX_AGE = 60 * 60 * 24 * 7

PRODUCTS_CACHE_TAG = "products"
CATALOG_CACHE_TTL = int(os.getenv("CATALOG_CACHE_TTL", "3600"))
