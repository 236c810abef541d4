"""
validators.py - Form Validation
Each validator returns a dict of cleaned values or raises ValidationError
with the messages collected per field.
"""

import os
import re

from flask import current_app

from errors import ValidationError
from storage import file_extension

EMAIL_REGEX = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')


class _Errors(dict):
    """field -> list of messages, in the order they were added"""

    def add(self, field, message):
        self.setdefault(field, []).append(message)

    def raise_if_any(self):
        if self:
            raise ValidationError(dict(self))


def _text(form, field):
    return (form.get(field) or '').strip()


def _check_password(errors, password, field='password'):
    config = current_app.config
    if len(password) < config['PASSWORD_MIN_LENGTH']:
        errors.add(field, 'Password must be 8 characters long')
    if not re.match(config['PASSWORD_REGEX'], password):
        errors.add(field, 'Password must be 8 characters long, with one uppercase, '
                          'lowercase, number and special character')


def _check_alpha(errors, value, field, label):
    if value and not value.isalpha():
        errors.add(field, f'The {label} must contain alphabets only')


def file_size(file):
    stream = file.stream
    stream.seek(0, os.SEEK_END)
    size = stream.tell()
    stream.seek(0)
    return size


def _check_image(errors, file, field, required):
    """Images must be jpg or png and at most MAX_IMAGE_SIZE bytes."""
    if not file or not file.filename:
        if required:
            errors.add(field, 'The Image is required')
        return None

    config = current_app.config
    if file_extension(file.filename) not in config['ALLOWED_EXTENSIONS']:
        errors.add(field, 'Image should be jpg or png only')
    if file_size(file) > config['MAX_IMAGE_SIZE']:
        errors.add(field, 'Image size should not be greater than 2mb')
    return file


def parse_tags(form):
    """
    Tags arrive as repeated `tags` fields and/or a comma separated string.
    """
    raw = form.getlist('tags') if hasattr(form, 'getlist') else form.get('tags', [])
    if isinstance(raw, str):
        raw = [raw]
    tags = []
    for entry in raw:
        for tag in (entry or '').split(','):
            tag = tag.strip().lower()
            if tag and tag not in tags:
                tags.append(tag)
    return tags


def validate_login(form):
    errors = _Errors()
    email = _text(form, 'email').lower()
    password = _text(form, 'password')

    if not email:
        errors.add('email', 'The email is required')
    elif not EMAIL_REGEX.match(email):
        errors.add('email', 'Email should be a valid email id')

    if not password:
        errors.add('password', 'The password is required')
    elif len(password) < current_app.config['PASSWORD_MIN_LENGTH']:
        errors.add('password', 'Password must be 8 characters long')

    errors.raise_if_any()
    return {'email': email, 'password': password}


def validate_signup(form):
    errors = _Errors()
    first_name = _text(form, 'firstName')
    last_name = _text(form, 'lastName')
    email = _text(form, 'email').lower()
    password = _text(form, 'password')

    for field, value, label in (('firstName', first_name, 'first name'),
                                ('lastName', last_name, 'last name')):
        if not value:
            errors.add(field, f'The {field} is required')
        _check_alpha(errors, value, field, label)

    if not email:
        errors.add('email', 'The email is required')
    elif not EMAIL_REGEX.match(email):
        errors.add('email', 'Please provide valid email')

    if not password:
        errors.add('password', 'The password is required')
    else:
        _check_password(errors, password)

    errors.raise_if_any()
    return {
        'first_name': first_name,
        'last_name': last_name,
        'email': email,
        'password': password,
    }


def validate_post(form, files, image_required=True):
    """
    Post store/update payload. The image is required on store only.
    """
    errors = _Errors()
    config = current_app.config
    title = _text(form, 'title')
    description = _text(form, 'description')
    tags = parse_tags(form)

    if not title:
        errors.add('title', 'The title is required')
    elif len(title) > config['TITLE_MAX_LENGTH']:
        errors.add('title', 'Title can not be longer than 50 characters')

    if not description:
        errors.add('description', 'The description is required')
    elif len(description) > config['DESCRIPTION_MAX_LENGTH']:
        errors.add('description', 'Description can not be longer than 400 characters')

    image = _check_image(errors, files.get('postImage'), 'postImage', image_required)

    if not tags:
        errors.add('tags', 'At least one tag should be entered')
    elif any(len(tag) > config['TAG_MAX_LENGTH'] for tag in tags):
        errors.add('tags', 'A tag can not be longer than 100 characters')

    errors.raise_if_any()
    return {
        'title': title,
        'description': description,
        'tags': tags,
        'image': image,
    }


def validate_profile(form, files):
    """All profile fields are optional."""
    errors = _Errors()
    first_name = _text(form, 'firstName')
    last_name = _text(form, 'lastName')
    password = _text(form, 'password')

    _check_alpha(errors, first_name, 'firstName', 'first name')
    _check_alpha(errors, last_name, 'lastName', 'last name')
    if password:
        _check_password(errors, password)

    avatar = _check_image(errors, files.get('avatar'), 'avatar', required=False)

    errors.raise_if_any()
    return {
        'first_name': first_name or None,
        'last_name': last_name or None,
        'password': password or None,
        'avatar': avatar,
    }
