import os


ALLOWED_IMPORT_TYPES = ("image/jpeg", "image/png", "image/webp", "image/gif")


class Config:
    """
    Base configuration object.

    Reads from environment at *instance* creation time so that values
    loaded via python-dotenv in create_app() are honored.
    """

    def __init__(self):
        # Environment / mode
        self.ENV = os.getenv("FLASK_ENV", os.getenv("ENV", "development"))
        self.DEBUG = bool(int(os.getenv("FLASK_DEBUG", "0"))) if os.getenv("FLASK_DEBUG") is not None else self.ENV != "production"

        self.SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret")
        if self.ENV == "production" and self.SECRET_KEY == "dev-secret":
            raise RuntimeError("SECRET_KEY must be set in production")

        # Database: production never falls back to SQLite
        uri = os.getenv("SQLALCHEMY_DATABASE_URI")
        if uri:
            self.SQLALCHEMY_DATABASE_URI = uri
        else:
            if self.ENV == "production":
                raise RuntimeError("SQLALCHEMY_DATABASE_URI must be set in production")
            self.SQLALCHEMY_DATABASE_URI = "sqlite:///dev.db"

        self.SQLALCHEMY_TRACK_MODIFICATIONS = False

        # JSON clients send the token in the X-CSRFToken header
        self.WTF_CSRF_TIME_LIMIT = None

        # Image import
        self.MAX_IMPORT_MB = int(os.getenv("MAX_IMPORT_MB", "10"))
        self.ALLOWED_IMPORT_TYPES = ALLOWED_IMPORT_TYPES
        self.IMPORT_BUDGET_SECONDS = float(os.getenv("IMPORT_BUDGET_SECONDS", "60"))
        self.IMPORT_DISCONNECT_POLL_SECONDS = float(os.getenv("IMPORT_DISCONNECT_POLL_SECONDS", "0.25"))

        # Remote fetch; the deadline leaves headroom inside the import budget
        self.FETCH_USER_AGENT = os.getenv("FETCH_USER_AGENT", "TheSocialStudio/1.0")
        self.FETCH_CONNECT_TIMEOUT = float(os.getenv("FETCH_CONNECT_TIMEOUT", "10"))
        self.FETCH_READ_TIMEOUT = float(os.getenv("FETCH_READ_TIMEOUT", "20"))
        self.FETCH_DEADLINE_SECONDS = float(os.getenv("FETCH_DEADLINE_SECONDS", "40"))
        self.FETCH_MAX_REDIRECTS = int(os.getenv("FETCH_MAX_REDIRECTS", "10"))

        # Blob storage
        #  - database: objects live in the stored_objects table
        #  - filesystem: objects live under UPLOADS_DIR/<bucket>/
        self.STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "database")
        self.STORAGE_BUCKET = os.getenv("STORAGE_BUCKET", "thesocialstudio.appspot.com")
        self.STORAGE_HOST = os.getenv("STORAGE_HOST", "firebasestorage.googleapis.com")
        self.STORAGE_CACHE_CONTROL = os.getenv("STORAGE_CACHE_CONTROL", "public, max-age=31536000")
        self.UPLOADS_DIR = os.getenv("UPLOADS_DIR", "./uploads")

        # Rate limiting
        self.RATELIMIT_DEFAULT = os.getenv("RATELIMIT_DEFAULT", "100 per minute")
        self.IMPORT_RATELIMIT = os.getenv("IMPORT_RATELIMIT", "30 per minute")
        self.RATELIMIT_STORAGE_URI = os.getenv("RATELIMIT_STORAGE_URI", "memory://")

        # Callers other than the browser session:
        #  - Authorization: Bearer <token>, signed with SECRET_KEY (see "flask issue-token")
        #  - AUTH_TRUSTED_HEADER names a header an upstream identity proxy sets to the uid;
        #    leave unset unless every request passes through that proxy
        self.AUTH_TOKEN_SALT = os.getenv("AUTH_TOKEN_SALT", "studio-api-token")
        self.AUTH_TOKEN_MAX_AGE = int(os.getenv("AUTH_TOKEN_MAX_AGE", "3600"))
        self.AUTH_TRUSTED_HEADER = os.getenv("AUTH_TRUSTED_HEADER") or None

        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

        # Secure session cookies in production
        if self.ENV == "production":
            self.SESSION_COOKIE_SECURE = True
            self.REMEMBER_COOKIE_SECURE = True
            self.SESSION_COOKIE_HTTPONLY = True
            self.REMEMBER_COOKIE_HTTPONLY = True

    def __call__(self):
        # Lets Config() be passed to app.config.from_object
        return self
