import os
from dotenv import load_dotenv

load_dotenv()


def _flag(name, default="false"):
    return os.getenv(name, default).lower() in ("1", "true", "yes")


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./quiz.sqlite")

# Fix for SQLAlchemy requiring 'postgresql://' instead of 'postgres://'
if DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql://", 1)

SECRET_KEY = os.getenv("SECRET_KEY", "quiz-secret-change-me")
DEBUG = _flag("DEBUG")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Sessions (seconds)
SESSION_COOKIE = os.getenv("SESSION_COOKIE", "quiz_session")
SESSION_MAX_AGE = int(os.getenv("SESSION_MAX_AGE", str(4 * 60 * 60)))
SESSION_CLEANUP_INTERVAL = int(os.getenv("SESSION_CLEANUP_INTERVAL", str(15 * 60)))
LOGIN_MAX_IDLE = int(os.getenv("LOGIN_MAX_IDLE", str(5 * 60)))

# Users
QUIZ_OPEN_REGISTER = _flag("QUIZ_OPEN_REGISTER")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "1234")

# Attachments
CLOUDINARY_URL = os.getenv("CLOUDINARY_URL")
CLOUDINARY_FOLDER = os.getenv("CLOUDINARY_FOLDER", "core/quiz/attachments")
UPLOAD_DIR = os.getenv("UPLOAD_DIR", os.path.join(os.getcwd(), "uploads"))
MAX_UPLOAD_SIZE = int(os.getenv("MAX_UPLOAD_SIZE", str(20 * 1024 * 1024)))
ATTACHMENT_COOLDOWN = int(os.getenv("ATTACHMENT_COOLDOWN", "60"))

# Quizzes
ITEMS_PER_PAGE = int(os.getenv("ITEMS_PER_PAGE", "10"))
QUIZZES_PER_DAY = int(os.getenv("QUIZZES_PER_DAY", "50"))

# OAuth providers. A provider without credentials has no routes.
GITHUB_CLIENT_ID = os.getenv("GITHUB_CLIENT_ID")
GITHUB_CLIENT_SECRET = os.getenv("GITHUB_CLIENT_SECRET")
TWITTER_CONSUMER_KEY = os.getenv("TWITTER_CONSUMER_KEY")
TWITTER_CONSUMER_SECRET = os.getenv("TWITTER_CONSUMER_SECRET")
GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID")
GOOGLE_CLIENT_SECRET = os.getenv("GOOGLE_CLIENT_SECRET")
LINKEDIN_CLIENT_ID = os.getenv("LINKEDIN_CLIENT_ID")
LINKEDIN_CLIENT_SECRET = os.getenv("LINKEDIN_CLIENT_SECRET")
