"""
blueprints/profiles/routes.py - Profiles Blueprint
Public profile pages and editing of the logged-in user's own profile.
"""

import logging

from flask import Blueprint, render_template, redirect, url_for, flash, request, current_app
from flask_login import login_required, current_user
from sqlalchemy.exc import SQLAlchemyError

from blueprints.responses import reply
from errors import NotFoundError, ValidationError
from extensions import storage
from models import Post, User
from storage import StorageError
from validators import validate_profile

logger = logging.getLogger(__name__)

profiles_bp = Blueprint('profiles', __name__)


@profiles_bp.route('/<email>')
def show(email):
    """
    Profile and posts of the user with this email
    """
    try:
        user = Post.get_all_by_user_email(email)
    except NotFoundError as e:
        flash(e.message, 'error')
        return redirect(request.referrer or url_for('index'))
    return render_template('profile/index.html', user=user)


@profiles_bp.route('/<int:user_id>/edit')
@login_required
def edit(user_id):
    if current_user.id != user_id:
        flash('Not authorized to perform this action', 'error')
        return redirect(url_for('posts.index'))

    try:
        user = User.get_user_by_id(user_id)
    except NotFoundError as e:
        flash(e.message, 'error')
        return redirect(request.referrer or url_for('index'))
    return render_template('profile/edit.html', user=user)


@profiles_bp.route('/<int:user_id>', methods=['PUT', 'POST'])
@login_required
def update(user_id):
    """
    Update names, password and avatar. Owner only.
    Scripts get JSON replies, form posts a flash and redirect.
    """
    if current_user.id != user_id:
        return reply('Not authorized to perform this action', 400, url_for('posts.index'))

    edit_url = url_for('profiles.edit', user_id=user_id)
    try:
        payload = validate_profile(request.form, request.files)
    except ValidationError as e:
        return reply(e.message, 400, edit_url)

    avatar_key = None
    if payload['avatar']:
        prefix = f"{current_app.config['UPLOAD_DIR_NAME']}/{user_id}"
        try:
            avatar_key = storage.put(payload['avatar'], prefix)
        except StorageError as e:
            logger.error('Avatar upload failed for user %s: %s', user_id, e)
            return reply('Could not save the image', 400, edit_url)

    try:
        user = User.update_user(
            user_id,
            first_name=payload['first_name'],
            last_name=payload['last_name'],
            password=payload['password'],
            avatar=avatar_key,
        )
    except (NotFoundError, SQLAlchemyError) as e:
        if avatar_key:
            storage.delete(avatar_key)
        message = e.message if isinstance(e, NotFoundError) else 'Could not update the profile'
        return reply(message, 400, edit_url)

    return reply('User updated', 200, url_for('profiles.show', email=user.email))
