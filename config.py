"""
Runtime settings for the Wordingo API.

Every value can be overridden through an environment variable of the same
name.
"""
import os

# Database
DATABASE_URL = os.getenv("DATABASE_URL", "mongodb://localhost:27017")
DATABASE_NAME = os.getenv("DATABASE_NAME", "wordingo")

# Security settings
SECRET_KEY = os.getenv("SECRET_KEY", "super-secret-dev-key")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 60 * 24 * 30))

# OTP login (development service: every phone receives the same code)
OTP_CODE = os.getenv("OTP_CODE", "123456")
OTP_TTL_MINUTES = int(os.getenv("OTP_TTL_MINUTES", "30"))
EXPOSE_OTP = os.getenv("EXPOSE_OTP", "true").lower() == "true"

# HTTP
API_PREFIX = os.getenv("API_PREFIX", "/api")
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
    if origin.strip()
]
PORT = int(os.getenv("PORT", 8000))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Attempts made by the registration manager when another request updated
# the same event between its read and its write.
REGISTRATION_RETRIES = int(os.getenv("REGISTRATION_RETRIES", "3"))
