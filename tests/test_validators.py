"""
Tests for form validation and error message filtering.
"""

import io

import pytest
from werkzeug.datastructures import FileStorage, ImmutableMultiDict, MultiDict

from errors import ValidationError, filter_messages
from validators import (parse_tags, validate_login, validate_post, validate_profile,
                        validate_signup)


def upload(name='photo.jpg', size=10):
    return FileStorage(stream=io.BytesIO(b'0' * size), filename=name)


def files(**kwargs):
    return MultiDict(kwargs)


def test_filter_messages_keeps_first_message_per_field():
    errors = {
        'title': ['The title is required', 'ignored'],
        'tags': ['At least one tag should be entered'],
        'empty': [],
    }
    assert filter_messages(errors) == 'The title is required, At least one tag should be entered'
    assert filter_messages({}) is None


def test_validation_error_message():
    error = ValidationError({'email': ['Email should be a valid email id']})
    assert str(error) == 'Email should be a valid email id'
    assert error.errors == {'email': ['Email should be a valid email id']}


def test_parse_tags_accepts_lists_and_commas():
    form = ImmutableMultiDict([('tags', 'Beach, sky'), ('tags', 'sea'), ('tags', 'beach')])
    assert parse_tags(form) == ['beach', 'sky', 'sea']


def test_login_requires_valid_email(ctx):
    with pytest.raises(ValidationError) as info:
        validate_login({'email': 'nope', 'password': 'short'})
    assert info.value.message == ('Email should be a valid email id, '
                                  'Password must be 8 characters long')


def test_login_normalizes_email(ctx):
    payload = validate_login({'email': ' ADA@Example.com ', 'password': 'whatever1'})
    assert payload['email'] == 'ada@example.com'


@pytest.mark.parametrize('password', ['short', 'alllowercase1!', 'NoDigits!!', 'NoSpecial123'])
def test_signup_rejects_weak_passwords(ctx, password):
    form = {'firstName': 'Ada', 'lastName': 'Lovelace', 'email': 'ada@example.com',
            'password': password}
    with pytest.raises(ValidationError) as info:
        validate_signup(form)
    assert 'password' in info.value.errors


def test_signup_names_must_be_alphabetic(ctx):
    form = {'firstName': 'Ada1', 'lastName': '', 'email': 'ada@example.com',
            'password': 'Secret@123'}
    with pytest.raises(ValidationError) as info:
        validate_signup(form)
    assert info.value.errors['firstName'] == ['The first name must contain alphabets only']
    assert info.value.errors['lastName'] == ['The lastName is required']


def test_signup_ok(ctx):
    payload = validate_signup({'firstName': 'Ada', 'lastName': 'Lovelace',
                               'email': 'Ada@example.com', 'password': 'Secret@123'})
    assert payload == {'first_name': 'Ada', 'last_name': 'Lovelace',
                       'email': 'ada@example.com', 'password': 'Secret@123'}


def test_post_store_requires_image_and_tags(ctx):
    form = ImmutableMultiDict({'title': 'Sunset', 'description': 'Sea'})
    with pytest.raises(ValidationError) as info:
        validate_post(form, files())
    assert info.value.message == 'The Image is required, At least one tag should be entered'


def test_post_update_image_is_optional(ctx):
    form = ImmutableMultiDict({'title': 'Sunset', 'description': 'Sea', 'tags': 'beach'})
    payload = validate_post(form, files(), image_required=False)
    assert payload['image'] is None
    assert payload['tags'] == ['beach']


def test_post_length_limits(ctx):
    form = ImmutableMultiDict({'title': 'x' * 51, 'description': 'y' * 401, 'tags': 'a'})
    with pytest.raises(ValidationError) as info:
        validate_post(form, files(postImage=upload()))
    assert info.value.errors['title'] == ['Title can not be longer than 50 characters']
    assert info.value.errors['description'] == [
        'Description can not be longer than 400 characters']


@pytest.mark.parametrize('name,size,message', [
    ('photo.gif', 10, 'Image should be jpg or png only'),
    ('photo.jpg', 2 * 1024 * 1024 + 1, 'Image size should not be greater than 2mb'),
])
def test_post_image_rules(ctx, name, size, message):
    form = ImmutableMultiDict({'title': 'Sunset', 'description': 'Sea', 'tags': 'a'})
    with pytest.raises(ValidationError) as info:
        validate_post(form, files(postImage=upload(name, size)))
    assert info.value.errors['postImage'] == [message]


def test_profile_fields_are_optional(ctx):
    payload = validate_profile({}, files())
    assert payload == {'first_name': None, 'last_name': None, 'password': None, 'avatar': None}


def test_profile_password_must_be_strong(ctx):
    with pytest.raises(ValidationError):
        validate_profile({'password': 'weak'}, files())


def test_post_tag_length_limit(ctx):
    form = ImmutableMultiDict({'title': 'Sunset', 'description': 'Sea',
                               'tags': 'ok, ' + 'x' * 101})
    with pytest.raises(ValidationError) as info:
        validate_post(form, files(postImage=upload()))
    assert info.value.errors['tags'] == ['A tag can not be longer than 100 characters']


@pytest.mark.parametrize('name', ['фото.png', '.jpg'])
def test_post_image_without_ascii_stem_is_accepted(ctx, name):
    form = ImmutableMultiDict({'title': 'Sunset', 'description': 'Sea', 'tags': 'a'})
    payload = validate_post(form, files(postImage=upload(name)))
    assert payload['image'].filename == name
