import os

JWT_SECRET = os.getenv("JWT_SECRET", "")
ACCESS_TOKEN_TTL_MINUTES = int(os.getenv("ACCESS_TOKEN_TTL_MINUTES", "480"))
DEV_MODE = os.getenv("DEV_MODE", "false").lower() == "true"

# "user:secret,user2:secret2"; a secret starting with "$argon2" is verified as a hash.
ANALYTICS_ADMIN_USERS = os.getenv("ANALYTICS_ADMIN_USERS", "")
ANALYTICS_COORDINATOR_USERS = os.getenv("ANALYTICS_COORDINATOR_USERS", "")
ANALYTICS_ASSESSOR_USERS = os.getenv("ANALYTICS_ASSESSOR_USERS", "")

CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")
    if origin.strip()
]

STATS_WINDOW_DAYS = int(os.getenv("STATS_WINDOW_DAYS", "30"))
TRENDS_WINDOW_MONTHS = int(os.getenv("TRENDS_WINDOW_MONTHS", "6"))
FUNNEL_BASE_LEADS = int(os.getenv("FUNNEL_BASE_LEADS", "1245"))

RL_LOGIN_LIMIT = int(os.getenv("RL_LOGIN_LIMIT", "20"))
RL_SUBMIT_LIMIT = int(os.getenv("RL_SUBMIT_LIMIT", "30"))
RL_WINDOW_SECONDS = int(os.getenv("RL_WINDOW_SECONDS", "60"))
