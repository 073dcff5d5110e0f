import os
from dotenv import load_dotenv

load_dotenv(override=True)

class Settings:
    PROJECT_NAME = "Alarma-Inteligente"

    # Database settings
    DATABASE_NAME = os.getenv("DATABASE_NAME", "alarma")
    DATABASE_USER = os.getenv("DATABASE_USER", "postgres")
    DATABASE_PASSWORD = os.getenv("DATABASE_PASSWORD", "yourpassword")
    DATABASE_HOST = os.getenv("DATABASE_HOST", "postgres-db")
    DATABASE_PORT = int(os.getenv("DATABASE_PORT", 5432))
    DATABASE_URL = os.getenv(
        "DATABASE_URL",
        f"postgresql://{DATABASE_USER}:{DATABASE_PASSWORD}@{DATABASE_HOST}:{DATABASE_PORT}/{DATABASE_NAME}",
    )

    # Redis / Celery settings
    REDIS_URL = os.getenv("REDIS_URL", "redis://redis:6379/0")
    CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", REDIS_URL)
    LIVE_CHANNEL = os.getenv("LIVE_CHANNEL", "alarm_events")

    # JWT settings
    SECRET_KEY = os.getenv("SECRET_KEY", "use_random_secret_key")
    ALGORITHM = os.getenv("ALGORITHM", "HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 3000))

    # SMTP settings for email notifications
    SMTP_SERVER = os.getenv("SMTP_SERVER")
    SMTP_PORT = int(os.getenv("SMTP_PORT") or 465)
    SMTP_EMAIL = os.getenv("SMTP_EMAIL")
    SMTP_PASSWORD = os.getenv("SMTP_PASSWORD")
    MAIL_BACKEND = os.getenv("MAIL_BACKEND", "smtp")  # "smtp" or "celery"
    MAIL_TIMEOUT_SECONDS = float(os.getenv("MAIL_TIMEOUT_SECONDS", 15))

    # Video capture settings
    FFMPEG_BINARY = os.getenv("FFMPEG_BINARY", "ffmpeg")
    CAMERA_STREAM_URL = os.getenv("CAMERA_STREAM_URL")
    CAPTURE_SENSOR_TYPES = os.getenv("CAPTURE_SENSOR_TYPES", "motion")
    CAPTURE_DEFAULT_SECONDS = int(os.getenv("CAPTURE_DEFAULT_SECONDS", 10))
    CAPTURE_MAX_SECONDS = int(os.getenv("CAPTURE_MAX_SECONDS", 60))
    CAPTURE_GRACE_SECONDS = float(os.getenv("CAPTURE_GRACE_SECONDS", 5))
    VIDEO_DIR = os.getenv("VIDEO_DIR", "videos")
    VIDEO_URL_PREFIX = os.getenv("VIDEO_URL_PREFIX", "/videos")

    SHUTDOWN_GRACE_SECONDS = float(os.getenv("SHUTDOWN_GRACE_SECONDS", 20))

    @property
    def capture_sensor_types(self):
        return {t.strip() for t in self.CAPTURE_SENSOR_TYPES.split(",") if t.strip()}

settings = Settings()
