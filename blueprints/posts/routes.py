"""
blueprints/posts/routes.py - Posts Blueprint
Create, browse, search, edit and delete posts. Each post carries one image
kept in local storage and any number of tags.
"""

import logging
import os

from flask import (Blueprint, render_template, redirect, url_for, flash, request, current_app,
                   jsonify, send_file, abort)
from flask_login import login_required, current_user
from sqlalchemy.exc import SQLAlchemyError

from blueprints.responses import reply
from errors import NotFoundError, ValidationError
from extensions import db, storage
from models import Post
from storage import StorageError
from validators import validate_post

logger = logging.getLogger(__name__)

posts_bp = Blueprint('posts', __name__)

NOT_AUTHORIZED = 'Not authorized to perform this action'


def _back(default_endpoint='posts.index'):
    return redirect(request.referrer or url_for(default_endpoint))


def _upload_dir():
    """Images of a user live under uploads/<user id>/"""
    return f"{current_app.config['UPLOAD_DIR_NAME']}/{current_user.id}"


@posts_bp.route('/', methods=['GET'])
@login_required
def index():
    """
    The logged-in user's posts, newest first
    """
    try:
        user = Post.get_all_by_user(current_user.id)
    except NotFoundError as e:
        flash(e.message, 'error')
        return _back('index')
    return render_template('post/index.html', user=user)


@posts_bp.route('/all')
def feed():
    """Every post, newest first"""
    return render_template('post/list.html', posts=Post.get_all(), heading='All posts')


@posts_bp.route('/search')
def search():
    """
    Posts with a tag containing ?tag=
    """
    term = request.args.get('tag', '').strip()
    posts = Post.search(term) if term else []
    return render_template('post/list.html', posts=posts, term=term,
                           heading=f'Posts tagged "{term}"' if term else 'Search posts')


@posts_bp.route('/create')
@login_required
def create():
    return render_template('post/create.html')


@posts_bp.route('/', methods=['POST'])
@login_required
def store():
    """
    Save a new post. Validation errors are returned as JSON (400).
    The image is written first and removed again if the insert fails.
    """
    try:
        payload = validate_post(request.form, request.files, image_required=True)
    except ValidationError as e:
        return jsonify(e.message), 400

    try:
        key = storage.put(payload['image'], _upload_dir())
    except StorageError as e:
        logger.error('Upload failed for user %s: %s', current_user.id, e)
        flash('Could not save the image', 'error')
        return _back('posts.create')

    try:
        Post.store_post(
            user_id=current_user.id,
            title=payload['title'],
            description=payload['description'],
            tags=payload['tags'],
            storage_prefix=key,
        )
    except SQLAlchemyError:
        storage.delete(key)
        flash('Could not create the post', 'error')
        return _back('posts.create')

    flash('Post created', 'success')
    return redirect(url_for('posts.index'))


@posts_bp.route('/<int:post_id>')
def show(post_id):
    """Post detail, available to everyone"""
    try:
        post = Post.get_post_by_id(post_id)
    except NotFoundError as e:
        flash(e.message, 'error')
        return _back('index')
    return render_template('post/show.html', post=post)


@posts_bp.route('/<int:post_id>/edit')
@login_required
def edit(post_id):
    try:
        post = Post.get_post_by_id(post_id)
    except NotFoundError as e:
        flash(e.message, 'error')
        return _back()

    if not post.is_owned_by(current_user):
        flash(NOT_AUTHORIZED, 'error')
        return _back()

    return render_template('post/edit.html', post=post)


@posts_bp.route('/<int:post_id>', methods=['PUT', 'POST'])
@login_required
def update(post_id):
    """
    Update a post. Scripts get JSON replies, form posts a flash and redirect.
    A new image replaces the old file.
    """
    edit_url = url_for('posts.edit', post_id=post_id)
    try:
        payload = validate_post(request.form, request.files, image_required=False)
    except ValidationError as e:
        return reply(e.message, 400, edit_url)

    post = db.session.get(Post, post_id)
    if post is None:
        return reply('Post not found', 400, url_for('posts.index'))

    if not post.is_owned_by(current_user):
        return reply(NOT_AUTHORIZED, 400, url_for('posts.index'))

    old_key = post.storage_prefix
    new_key = None
    if payload['image']:
        try:
            new_key = storage.put(payload['image'], _upload_dir())
        except StorageError as e:
            logger.error('Upload failed for post %s: %s', post_id, e)
            return reply('Could not save the image', 400, edit_url)

    try:
        Post.update_post(
            post_id,
            title=payload['title'],
            description=payload['description'],
            tags=payload['tags'],
            storage_prefix=new_key,
        )
    except NotFoundError as e:
        if new_key:
            storage.delete(new_key)
        return reply(e.message, 400, url_for('posts.index'))
    except SQLAlchemyError:
        if new_key:
            storage.delete(new_key)
        return reply('Could not update the post', 400, edit_url)

    if new_key and old_key:
        storage.delete(old_key)

    return reply('Post updated', 200, url_for('posts.show', post_id=post_id))


@posts_bp.route('/<int:post_id>', methods=['DELETE'])
@posts_bp.route('/<int:post_id>/delete', methods=['POST'])
@login_required
def destroy(post_id):
    try:
        post = Post.get_post_by_id(post_id)
    except NotFoundError as e:
        flash(e.message, 'error')
        return _back()

    if not post.is_owned_by(current_user):
        flash(NOT_AUTHORIZED, 'error')
        return _back()

    key = post.storage_prefix
    try:
        db.session.delete(post)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception('Could not delete post %s', post_id)
        flash('Could not delete the post', 'error')
        return _back()

    storage.delete(key)
    flash('Post deleted', 'success')
    return redirect(url_for('posts.index'))


@posts_bp.route('/download/<int:post_id>')
def download(post_id):
    """Send the post image as an attachment"""
    post = db.session.get(Post, post_id)
    if post is None or not storage.exists(post.storage_prefix):
        abort(404)
    path = storage.path_for(post.storage_prefix)
    return send_file(path, as_attachment=True, download_name=os.path.basename(path))
