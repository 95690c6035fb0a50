import os
from dotenv import load_dotenv

load_dotenv()

# memory | redis | sql
storage_backend = os.getenv("STORAGE_BACKEND", "sql")
redis_host = os.getenv("REDIS_HOST", "redis")
redis_port = int(os.getenv("REDIS_PORT", "6379"))
database_url = os.getenv("DATABASE_URL")

snapshot_max_age_hours = float(os.getenv("SNAPSHOT_MAX_AGE_HOURS", "8"))
snapshot_max_age_ms = int(snapshot_max_age_hours * 60 * 60 * 1000)
purge_interval_hours = float(os.getenv("PURGE_INTERVAL_HOURS", "1"))

total_rounds = int(os.getenv("TOTAL_ROUNDS", "10"))
summary_delay_seconds = float(os.getenv("SUMMARY_DELAY_SECONDS", "1.5"))
leaderboard_limit = int(os.getenv("LEADERBOARD_LIMIT", "50"))

geo_api_url = os.getenv("GEO_API_URL", "http://localhost:8080")
ai_duel_api_url = os.getenv("AI_DUEL_API_URL", geo_api_url)
http_timeout_seconds = float(os.getenv("HTTP_TIMEOUT_SECONDS", "10"))
app_check_token = os.getenv("APP_CHECK_TOKEN")

if __name__ == "__main__":
    print(storage_backend, redis_host, redis_port, database_url, snapshot_max_age_ms, geo_api_url)
