"""Extension singletons, bound to the app in ``create_app``."""

import bcrypt
from flask_caching import Cache
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_login import LoginManager
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from flask_wtf import CSRFProtect

db = SQLAlchemy()
migrate = Migrate()
login_manager = LoginManager()
csrf = CSRFProtect()
cache = Cache()

# Storage comes from RATELIMIT_STORAGE_URI
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["2000 per day", "300 per hour"],
)

__all__ = [
    "db",
    "migrate",
    "login_manager",
    "csrf",
    "cache",
    "limiter",
    "bcrypt",
]
