import os

SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "carelink"),
}

DEBUG = True
LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")

# If enabled, app will apply schema.sql on startup (idempotent: CREATE IF NOT EXISTS)
AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "1")))

# Billing rates frozen onto each shift at clock-out
HOURLY_RATE_CENTS = int(os.getenv("HOURLY_RATE_CENTS", "6500"))
KM_RATE_CENTS = int(os.getenv("KM_RATE_CENTS", "85"))

# "log" writes emails to the log, "smtp" delivers them
NOTIFIER = os.getenv("NOTIFIER", "log")
SMTP_CONFIG = {
    "host": os.getenv("SMTP_HOST", "localhost"),
    "port": int(os.getenv("SMTP_PORT", "587")),
    "user": os.getenv("SMTP_USER", ""),
    "password": os.getenv("SMTP_PASSWORD", ""),
    "sender": os.getenv("SMTP_FROM", ""),
    "use_tls": bool(int(os.getenv("SMTP_USE_TLS", "1"))),
}
