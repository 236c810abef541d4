"""
app.py - Application Factory
Entry point for the Picblog Flask application.
Uses the Application Factory pattern for modularity and testing.
"""

import logging
import os

from flask import Flask, render_template
from flask_login import current_user

from config import config
from extensions import db, migrate, login_manager, bcrypt, oauth

logger = logging.getLogger(__name__)

# Static gallery shown on the welcome page
GALLERY = [
    {'title': 'Image1', 'src': '1.svg'},
    {'title': 'Image2', 'src': '2.svg'},
    {'title': 'Image3', 'src': '3.svg'},
    {'title': 'Image4', 'src': '4.svg'},
    {'title': 'Image6', 'src': '1.svg'},
    {'title': 'Image7', 'src': '4.svg'},
    {'title': 'Image8', 'src': '3.svg'},
    {'title': 'Image9', 'src': '2.svg'},
    {'title': 'Image10', 'src': '4.svg'},
    {'title': 'Image11', 'src': '3.svg'},
]


def create_app(config_name='development'):
    """
    Application Factory Function

    Args:
        config_name (str): Configuration to use ('development', 'production', 'testing')

    Returns:
        Flask: Configured Flask application instance
    """
    app = Flask(__name__)

    config_class = config[config_name]
    app.config.from_object(config_class)
    config_class.init_app(app)

    configure_logging(app)

    # Initialize extensions with the app
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    bcrypt.init_app(app)
    oauth.init_app(app)

    # Configure Flask-Login
    login_manager.login_view = 'auth.login'
    login_manager.login_message = 'Unauthorized'
    login_manager.login_message_category = 'error'

    @login_manager.user_loader
    def load_user(user_id):
        """Load user by ID for Flask-Login session management"""
        from models import User
        return db.session.get(User, int(user_id))

    from blueprints.auth.social import register_providers
    register_providers(oauth)

    register_blueprints(app)
    register_error_handlers(app)
    register_context_processors(app)

    # Import models so Flask-Migrate can detect them
    with app.app_context():
        import models  # noqa: F401

    os.makedirs(app.config['UPLOAD_FOLDER'], exist_ok=True)
    logger.debug('App created with %s config', config_name)
    return app


def configure_logging(app):
    """
    Root logger level follows LOG_LEVEL; module loggers propagate to it.
    """
    level = app.config.get('LOG_LEVEL', 'INFO')
    logging.basicConfig(
        level=level,
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s',
    )
    logging.getLogger().setLevel(level)
    app.logger.setLevel(level)


def register_blueprints(app):
    """
    Register all application blueprints (modular route handlers)
    """
    from blueprints.auth.routes import auth_bp
    from blueprints.posts.routes import posts_bp
    from blueprints.profiles.routes import profiles_bp

    app.register_blueprint(auth_bp, url_prefix='/auth')
    app.register_blueprint(posts_bp, url_prefix='/post')
    app.register_blueprint(profiles_bp, url_prefix='/profile')

    @app.route('/')
    def index():
        """Welcome page"""
        return render_template('welcome.html', data=GALLERY)


def register_error_handlers(app):
    """
    Register custom error handlers for common HTTP errors
    """
    @app.errorhandler(404)
    def not_found(error):
        return render_template('errors/404.html'), 404

    @app.errorhandler(413)
    def too_large(error):
        return render_template('errors/413.html'), 413

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()  # Rollback any failed database transactions
        logger.error('Internal server error: %s', error)
        return render_template('errors/500.html'), 500

    @app.errorhandler(403)
    def forbidden(error):
        return render_template('errors/403.html'), 403


def register_context_processors(app):
    """
    Share the logged-in user's profile with every template.
    """
    @app.context_processor
    def inject_profile():
        if current_user.is_authenticated:
            return {'profile': current_user.profile}
        return {'profile': None}


# Run the application
if __name__ == '__main__':
    app = create_app(os.environ.get('FLASK_CONFIG', 'development'))
    app.run(host='0.0.0.0', port=int(os.environ.get('PORT', 5000)))
