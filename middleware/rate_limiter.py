"""
Rate limiting middleware for FastAPI using slowapi.
Keeps the public contact form from being used to flood the admin inbox.
"""
import os

from dotenv import load_dotenv
from slowapi import Limiter
from slowapi.util import get_remote_address

load_dotenv()

RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() not in ("0", "false", "no")

# Shared limiter (attached to app.state in main.py)
limiter = Limiter(key_func=get_remote_address, enabled=RATE_LIMIT_ENABLED)

RATE_LIMIT_CONTACT = "10/hour"  # 10 contact submissions per hour per IP
