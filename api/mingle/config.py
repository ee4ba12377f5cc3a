import os

STORE_BACKEND = os.getenv("STORE_BACKEND", "memory").strip().lower()
DATABASE_URL = os.getenv("DATABASE_URL", "postgresql+psycopg2://postgres:postgres@db:5432/mingle")

MATCH_WINDOW_HOURS = float(os.getenv("MATCH_WINDOW_HOURS", "3"))
INTEREST_TTL_HOURS = float(os.getenv("INTEREST_TTL_HOURS", "24"))
CHECKIN_DURATION_HOURS = float(os.getenv("CHECKIN_DURATION_HOURS", "24"))
LIKES_PER_VENUE = int(os.getenv("LIKES_PER_VENUE", "3"))

# Flat cap: messages a single sender may post into one match.
MESSAGE_LIMIT_PER_USER = int(os.getenv("MESSAGE_LIMIT_PER_USER", "3"))
MESSAGE_MAX_LENGTH = int(os.getenv("MESSAGE_MAX_LENGTH", "2000"))
TYPING_TTL_SECONDS = float(os.getenv("TYPING_TTL_SECONDS", "5"))

COLLABORATOR_TIMEOUT_SECONDS = float(os.getenv("COLLABORATOR_TIMEOUT_SECONDS", "2.0"))
CHECKIN_SERVICE_URL = os.getenv("CHECKIN_SERVICE_URL", "").strip()
BLOCK_CACHE_TTL_SECONDS = int(os.getenv("BLOCK_CACHE_TTL_SECONDS", "300"))
NOTIFICATION_CHANNEL = os.getenv("NOTIFICATION_CHANNEL", "").strip().lower()

JWT_SECRET = os.getenv("JWT_SECRET", "")
ACCESS_TOKEN_TTL_MINUTES = int(os.getenv("ACCESS_TOKEN_TTL_MINUTES", "60"))
DEV_MODE = os.getenv("DEV_MODE", "false").lower() == "true"

RL_INTEREST_LIMIT = int(os.getenv("RL_INTEREST_LIMIT", "60"))
RL_MESSAGE_SEND_LIMIT = int(os.getenv("RL_MESSAGE_SEND_LIMIT", "60"))
RL_REMATCH_LIMIT = int(os.getenv("RL_REMATCH_LIMIT", "20"))
RL_WINDOW_SECONDS = int(os.getenv("RL_WINDOW_SECONDS", "60"))
