import os

SECRET_KEY = os.getenv("SECRET_KEY", "please-set-SECRET_KEY")

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "carelink"),
}

DEBUG = False
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "0")))

HOURLY_RATE_CENTS = int(os.getenv("HOURLY_RATE_CENTS", "6500"))
KM_RATE_CENTS = int(os.getenv("KM_RATE_CENTS", "85"))

NOTIFIER = os.getenv("NOTIFIER", "smtp")
SMTP_CONFIG = {
    "host": os.getenv("SMTP_HOST", "localhost"),
    "port": int(os.getenv("SMTP_PORT", "587")),
    "user": os.getenv("SMTP_USER", ""),
    "password": os.getenv("SMTP_PASSWORD", ""),
    "sender": os.getenv("SMTP_FROM", ""),
    "use_tls": bool(int(os.getenv("SMTP_USE_TLS", "1"))),
}
