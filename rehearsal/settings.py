import os
from dotenv import load_dotenv

load_dotenv()

store_backend = os.getenv("STORE_BACKEND", "redis")
redis_host = os.getenv("REDIS_HOST", "redis")
redis_port = int(os.getenv("REDIS_PORT", "6379"))
redis_db = int(os.getenv("REDIS_DB", "0"))
store_namespace = os.getenv("STORE_NAMESPACE", "rehearsal")

# Exactly one rehearsal is live at a time, under this key.
session_key = os.getenv("SESSION_KEY", "live-session")

pepper_data = os.getenv("PEPPER_DATA", "")
identity_ttl_hours = float(os.getenv("IDENTITY_TTL_HOURS", "24"))
sweep_interval_hours = float(os.getenv("SWEEP_INTERVAL_HOURS", "1"))
transaction_max_retries = int(os.getenv("TRANSACTION_MAX_RETRIES", "32"))
log_level = os.getenv("LOG_LEVEL", "INFO").upper()

if __name__ == "__main__":
    print(store_backend, redis_host, redis_port, redis_db, session_key, log_level)
