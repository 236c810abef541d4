"""
Tests for the posts blueprint.
"""

import pytest

from extensions import db, storage
from models import Post, Tag
from tests.conftest import image_file, login, PASSWORD


def only_post(app):
    with app.app_context():
        post = Post.query.one()
        return post.id, post.storage_prefix, post.tag_titles


def test_index_requires_login(client):
    response = client.get('/post/', follow_redirects=True)
    assert b'Unauthorized' in response.data


def test_store_post(auth_client, app, create_post):
    response = create_post(title='Sunset AT Sea', tags='Beach, sky')
    assert response.headers['Location'].endswith('/post/')

    post_id, key, tags = only_post(app)
    assert tags == ['beach', 'sky']
    assert key.startswith(f'uploads/{auth_client.user_id}/')
    with app.app_context():
        assert storage.exists(key)

    page = auth_client.get('/post/')
    assert b'Post created' in page.data
    assert b'sunset at sea' in page.data
    assert b'base64,' in page.data


def test_store_validation_error_is_json(auth_client, app):
    response = auth_client.post('/post/', data={'title': '', 'description': 'Sea',
                                                'postImage': image_file()})
    assert response.status_code == 400
    assert response.get_json() == 'The title is required, At least one tag should be entered'
    with app.app_context():
        assert Post.query.count() == 0


def test_store_rejects_wrong_image_type(auth_client):
    response = auth_client.post('/post/', data={'title': 'T', 'description': 'D', 'tags': 'a',
                                                'postImage': image_file('anim.gif')})
    assert response.status_code == 400
    assert response.get_json() == 'Image should be jpg or png only'


def test_store_removes_image_when_insert_fails(auth_client, app, monkeypatch):
    from sqlalchemy.exc import SQLAlchemyError

    def broken_store(**kwargs):
        raise SQLAlchemyError('db down')

    monkeypatch.setattr(Post, 'store_post', broken_store)
    response = auth_client.post('/post/', data={'title': 'T', 'description': 'D', 'tags': 'a',
                                                'postImage': image_file()},
                                follow_redirects=True)

    assert b'Could not create the post' in response.data
    with app.app_context():
        upload_dir = storage.path_for(f'uploads/{auth_client.user_id}')
        assert list(upload_dir.iterdir()) == []


def test_show_is_public(create_post, app):
    create_post()
    post_id, _, _ = only_post(app)

    response = app.test_client().get(f'/post/{post_id}')
    assert response.status_code == 200
    assert b'sunset' in response.data
    assert b'#beach' in response.data


def test_show_missing_post(client):
    response = client.get('/post/99', follow_redirects=True)
    assert b'Post not found' in response.data


def test_feed_and_search(create_post, app):
    create_post(title='Beach day', tags='beach, summer')
    create_post(title='Mountains', tags='hills')
    anonymous = app.test_client()

    feed = anonymous.get('/post/all')
    assert b'beach day' in feed.data and b'mountains' in feed.data

    found = anonymous.get('/post/search?tag=SUM')
    assert b'beach day' in found.data
    assert b'mountains' not in found.data

    empty = anonymous.get('/post/search?tag=')
    assert b'No posts found' in empty.data


def test_update_post(auth_client, app, create_post):
    create_post(tags='beach, sky')
    post_id, old_key, _ = only_post(app)

    response = auth_client.put(f'/post/{post_id}', data={
        'title': 'Sunrise', 'description': 'Hills', 'tags': ['sky', 'hills'],
        'postImage': image_file('new.png'),
    })

    assert response.status_code == 200
    assert response.get_json() == 'Post updated'
    _, new_key, tags = only_post(app)
    assert tags == ['hills', 'sky']
    assert new_key != old_key and new_key.endswith('.png')
    with app.app_context():
        assert storage.exists(new_key)
        assert not storage.exists(old_key)
        assert Tag.query.filter_by(title='beach').count() == 1


def test_update_without_image_keeps_file(auth_client, app, create_post):
    create_post()
    post_id, key, _ = only_post(app)

    response = auth_client.post(f'/post/{post_id}', data={
        'title': 'Renamed', 'description': 'Same image', 'tags': 'beach'},
        headers={'X-Requested-With': 'XMLHttpRequest'})

    assert response.status_code == 200
    assert response.get_json() == 'Post updated'
    assert only_post(app)[1] == key


def test_update_missing_post(auth_client):
    response = auth_client.put('/post/42', data={'title': 'T', 'description': 'D', 'tags': 'a'})
    assert response.status_code == 400
    assert response.get_json() == 'Post not found'


def test_only_owner_can_change_post(create_post, app, make_user):
    create_post()
    post_id, key, _ = only_post(app)

    make_user(email='grace@example.com', first_name='Grace', last_name='Hopper')
    other = app.test_client()
    login(other, email='grace@example.com', password=PASSWORD)

    response = other.put(f'/post/{post_id}', data={'title': 'Mine', 'description': 'D',
                                                   'tags': 'a'})
    assert response.status_code == 400
    assert response.get_json() == 'Not authorized to perform this action'

    response = other.get(f'/post/{post_id}/edit', follow_redirects=True)
    assert b'Not authorized to perform this action' in response.data

    response = other.post(f'/post/{post_id}/delete', follow_redirects=True)
    assert b'Not authorized to perform this action' in response.data
    with app.app_context():
        assert db.session.get(Post, post_id) is not None
        assert storage.exists(key)


def test_edit_form(auth_client, app, create_post):
    create_post(tags='beach, sky')
    post_id, _, _ = only_post(app)

    response = auth_client.get(f'/post/{post_id}/edit')
    assert response.status_code == 200
    assert b'beach, sky' in response.data


def test_destroy_post(auth_client, app, create_post):
    create_post()
    post_id, key, _ = only_post(app)

    response = auth_client.delete(f'/post/{post_id}', follow_redirects=True)

    assert b'Post deleted' in response.data
    with app.app_context():
        assert Post.query.count() == 0
        assert not storage.exists(key)
        assert Tag.query.count() == 2


def test_download_image(create_post, app):
    create_post()
    post_id, key, _ = only_post(app)

    response = app.test_client().get(f'/post/download/{post_id}')
    assert response.status_code == 200
    assert 'attachment' in response.headers['Content-Disposition']
    assert response.data.startswith(b'\xff\xd8')


def test_download_missing(client):
    assert client.get('/post/download/5').status_code == 404


@pytest.mark.parametrize('name', ['фото.png', '.png'])
def test_store_keeps_png_extension(create_post, app, name):
    create_post(name=name)
    post_id, key, _ = only_post(app)
    assert key.endswith('.png')

    response = app.test_client().get(f'/post/download/{post_id}')
    assert response.mimetype == 'image/png'
    assert response.headers['Content-Disposition'].endswith('.png')
    response.close()


def test_store_rejects_overlong_tag(auth_client):
    response = auth_client.post('/post/', data={'title': 'T', 'description': 'D',
                                                'tags': 'x' * 101, 'postImage': image_file()})
    assert response.status_code == 400
    assert response.get_json() == 'A tag can not be longer than 100 characters'


def test_form_update_redirects_with_flash(auth_client, app, create_post):
    create_post()
    post_id, _, _ = only_post(app)

    response = auth_client.post(f'/post/{post_id}', data={
        'title': 'Renamed', 'description': 'By form', 'tags': 'beach'})
    assert response.status_code == 302
    assert response.headers['Location'].endswith(f'/post/{post_id}')

    page = auth_client.get(f'/post/{post_id}')
    assert b'Post updated' in page.data
    assert b'renamed' in page.data


def test_form_update_validation_error_returns_to_edit(auth_client, app, create_post):
    create_post()
    post_id, _, _ = only_post(app)

    response = auth_client.post(f'/post/{post_id}', data={'title': '', 'description': 'D',
                                                          'tags': 'a'},
                                follow_redirects=True)
    assert response.request.path == f'/post/{post_id}/edit'
    assert b'The title is required' in response.data


def test_missing_image_is_read_once_per_card(create_post, app, caplog):
    create_post()
    post_id, key, _ = only_post(app)
    with app.app_context():
        storage.delete(key)

    caplog.set_level('ERROR', logger='models')
    response = app.test_client().get(f'/post/{post_id}')

    assert response.status_code == 200
    assert b'base64,' not in response.data
    unreadable = [r for r in caplog.records if 'unreadable' in r.getMessage()]
    assert len(unreadable) == 1
