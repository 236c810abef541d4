"""
Shared fixtures: an app per test with an in-memory database and a temporary
upload folder.
"""

import io

import pytest

from app import create_app
from extensions import db
from models import User

PASSWORD = 'Secret@123'
JPEG_BYTES = b'\xff\xd8\xff\xe0' + b'\x00' * 64


def image_file(name='photo.jpg', content=JPEG_BYTES):
    """A file tuple the Flask test client sends as a multipart upload."""
    return (io.BytesIO(content), name)


def login(client, email='ada@example.com', password=PASSWORD, **kwargs):
    return client.post('/auth/login', data={'email': email, 'password': password}, **kwargs)


@pytest.fixture
def app(tmp_path):
    """Create and configure a test Flask application."""
    app = create_app('testing')
    app.config['UPLOAD_FOLDER'] = str(tmp_path / 'storage')

    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def ctx(app):
    """App context for tests that talk to the models directly."""
    with app.app_context():
        yield app


@pytest.fixture
def client(app):
    """Create a test client."""
    return app.test_client()


@pytest.fixture
def make_user(app):
    """Create a local user and return its id."""
    def _make(email='ada@example.com', first_name='Ada', last_name='Lovelace', password=PASSWORD):
        with app.app_context():
            return User.create_user(first_name, last_name, email, password).id
    return _make


@pytest.fixture
def auth_client(client, make_user):
    """A client logged in as ada@example.com; the user id is on .user_id"""
    client.user_id = make_user()
    response = login(client)
    assert response.status_code == 302
    return client


@pytest.fixture
def create_post(auth_client):
    """Create a post through the store route and return its id."""
    def _create(title='Sunset', description='Over the sea', tags='beach, sky', name='photo.jpg'):
        response = auth_client.post('/post/', data={
            'title': title,
            'description': description,
            'tags': tags,
            'postImage': image_file(name),
        })
        assert response.status_code == 302, response.data
        return response
    return _create
