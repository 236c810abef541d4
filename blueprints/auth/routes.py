"""
blueprints/auth/routes.py - Authentication Blueprint
Handles local login/signup, logout and OAuth login via Google, GitHub and Facebook.
"""

import logging
from functools import wraps

from authlib.integrations.base_client import MismatchingStateError, OAuthError
from flask import Blueprint, render_template, redirect, url_for, flash, request, abort
from flask_login import login_user, logout_user, login_required, current_user
from requests import RequestException
from sqlalchemy.exc import SQLAlchemyError

from blueprints.auth.social import PROVIDERS, fetch_social_user
from errors import BlogError, ValidationError
from extensions import oauth
from models import User
from validators import validate_login, validate_signup

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__)


def guest_only(f):
    """
    Logged-in users are sent to their posts instead
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if current_user.is_authenticated:
            return redirect(url_for('posts.index'))
        return f(*args, **kwargs)
    return decorated_function


def _safe_next(next_page):
    if next_page and next_page.startswith('/') and not next_page.startswith('//'):
        return next_page
    return None


@auth_bp.route('/login', methods=['GET', 'POST'])
@guest_only
def login():
    """
    Email + password login
    """
    if request.method == 'POST':
        try:
            payload = validate_login(request.form)
        except ValidationError as e:
            flash(e.message, 'error')
            return render_template('auth/login.html'), 400

        user = User.find_by_email(payload['email'])
        if user is None:
            flash('User not found', 'error')
            return redirect(url_for('auth.login'))

        if not user.check_password(payload['password']):
            flash('Invalid credentials', 'error')
            return redirect(url_for('auth.login'))

        login_user(user, remember=True)
        flash('Logged in', 'success')
        return redirect(_safe_next(request.args.get('next')) or url_for('index'))

    return render_template('auth/login.html')


@auth_bp.route('/signup', methods=['GET', 'POST'])
@guest_only
def signup():
    """
    Local account creation. The new user is logged in right away.
    """
    if request.method == 'POST':
        try:
            payload = validate_signup(request.form)
        except ValidationError as e:
            flash(e.message, 'error')
            return render_template('auth/signup.html'), 400

        try:
            user = User.create_user(**payload)
        except BlogError as e:
            flash(e.message, 'error')
            return redirect(url_for('auth.signup'))
        except SQLAlchemyError:
            flash('Could not create the account. Please try again.', 'error')
            return redirect(url_for('auth.signup'))

        login_user(user, remember=True)
        flash('Account created, and you are logged in', 'success')
        return redirect(url_for('index'))

    return render_template('auth/signup.html')


@auth_bp.route('/logout')
@login_required
def logout():
    logout_user()
    flash('Logged out', 'success')
    return redirect(url_for('index'))


def _client_for(provider):
    if provider not in PROVIDERS:
        abort(404)
    client_name, social_auth = PROVIDERS[provider]
    return client_name, social_auth, oauth.create_client(client_name)


@auth_bp.route('/<provider>/redirect')
@guest_only
def social_redirect(provider):
    """
    Send the user to the provider's consent page
    """
    _, _, client = _client_for(provider)
    callback = url_for('auth.social_callback', provider=provider, _external=True)
    return client.authorize_redirect(callback)


@auth_bp.route('/<provider>/callback')
@guest_only
def social_callback(provider):
    """
    Provider callback: exchange the code, then find or create the user
    """
    client_name, social_auth, client = _client_for(provider)

    error = request.args.get('error')
    if error:
        logger.info('%s login failed: %s', client_name, error)
        if error == 'access_denied':
            flash('Access was denied', 'error')
        else:
            flash('Redirection error', 'error')
        return redirect(url_for('auth.login'))

    try:
        token = client.authorize_access_token()
    except MismatchingStateError:
        flash('Request expired. Retry again', 'error')
        return redirect(url_for('auth.login'))
    except (OAuthError, RequestException) as e:
        logger.warning('%s token exchange failed: %s', client_name, e)
        flash('Redirection error', 'error')
        return redirect(url_for('auth.login'))

    try:
        social_user = fetch_social_user(client_name, client, token)
        user = User.create_social_auth_user(
            email=social_user.email,
            first_name=social_user.first_name,
            last_name=social_user.last_name,
            avatar_url=social_user.avatar_url,
            social_auth=social_auth,
        )
    except BlogError as e:
        flash(e.message, 'error')
        return redirect(url_for('auth.login'))
    except (OAuthError, RequestException, SQLAlchemyError):
        logger.exception('%s login failed', client_name)
        flash('Redirection error', 'error')
        return redirect(url_for('auth.login'))

    login_user(user, remember=True)
    flash('Logged In', 'success')
    return redirect(url_for('posts.index'))
