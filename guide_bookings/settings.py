import os

db_url = os.environ.get("DB_URL", "sqlite://:memory:")
users_ms_url = os.environ.get("USERS_MS_URL", "http://localhost:8000")
REDIS_URL = os.environ.get("REDIS_URL", "redis://localhost:6379/0")

# Daily window in which bookable slots are offered (naive local time)
WORKING_DAY_START = os.environ.get("WORKING_DAY_START", "09:00")
WORKING_DAY_END = os.environ.get("WORKING_DAY_END", "18:00")
SLOT_MINUTES = int(os.environ.get("SLOT_MINUTES", "60"))
SLOTS_CACHE_TTL = int(os.environ.get("SLOTS_CACHE_TTL", "60"))

TORTOISE_MODULES = {"models": ["guide_bookings.models"]}
