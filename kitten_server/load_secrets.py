import os
from dotenv import load_dotenv

load_dotenv()

redis_host = os.getenv("REDIS_HOST", "localhost")
redis_port = int(os.getenv("REDIS_PORT", "6379"))
redis_db = int(os.getenv("REDIS_DB", "0"))
store_backend = os.getenv("STORE_BACKEND", "redis")
frontend_origins = [
    origin.strip()
    for origin in os.getenv("FRONTEND_ORIGINS", "http://localhost:3000").split(",")
    if origin.strip()
]
keepalive_interval = float(os.getenv("KEEPALIVE_INTERVAL", "30"))
deck_seed = int(os.getenv("DECK_SEED")) if os.getenv("DECK_SEED") else None
log_level = os.getenv("LOG_LEVEL", "INFO").upper()

if __name__ == "__main__":
    print(redis_host, redis_port, redis_db, store_backend, frontend_origins, keepalive_interval)
