"""
extensions.py - Flask Extensions
Initialize Flask extensions here to avoid circular imports.
Extensions are created here but initialized in app.py with init_app().
"""

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_login import LoginManager
from flask_bcrypt import Bcrypt
from authlib.integrations.flask_client import OAuth

from storage import LocalStorage

# Database ORM
db = SQLAlchemy()

# Database Migration Tool
# Usage: flask db init, flask db migrate, flask db upgrade
migrate = Migrate()

# User Session Management
login_manager = LoginManager()

# Password Hashing
bcrypt = Bcrypt()

# OAuth clients for Google, GitHub and Facebook.
# Providers are registered in app.py once the config is loaded.
oauth = OAuth()

# Image storage on local disk (post images and avatars)
storage = LocalStorage()
