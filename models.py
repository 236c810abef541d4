"""
models.py - Database Models for Picblog
Users, profiles, posts and tags. Post <-> Tag is many-to-many through tag_posts.
"""

import logging
from datetime import datetime

from flask_login import UserMixin
from sqlalchemy import event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import joinedload, selectinload, validates

from config import Config
from errors import ConflictError, NotFoundError
from extensions import db, bcrypt, storage
from storage import StorageError

logger = logging.getLogger(__name__)


# Pivot table between posts and tags
tag_posts = db.Table(
    'tag_posts',
    db.Column('id', db.Integer, primary_key=True),
    db.Column('post_id', db.Integer, db.ForeignKey('posts.id', ondelete='CASCADE'), nullable=False),
    db.Column('tag_id', db.Integer, db.ForeignKey('tags.id', ondelete='CASCADE'), nullable=False),
    db.Column('created_at', db.DateTime, default=datetime.utcnow),
    db.Column('updated_at', db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow),
    db.UniqueConstraint('post_id', 'tag_id', name='uq_tag_posts_post_tag'),
)


def normalize_tags(tags):
    """Trim, lower-case and de-duplicate tag titles, keeping their order."""
    seen = []
    for tag in tags or []:
        title = (tag or '').strip().lower()
        if title and title not in seen:
            seen.append(title)
    return seen


class User(UserMixin, db.Model):
    """
    Authentication record. Display data lives on Profile.
    Social auth users have no password.
    """
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password = db.Column(db.String(180), nullable=True)
    remember_me_token = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    posts = db.relationship('Post', back_populates='user', cascade='all, delete-orphan',
                            order_by=lambda: [Post.created_at.desc(), Post.id.desc()])
    profile = db.relationship('Profile', back_populates='user', uselist=False,
                              cascade='all, delete-orphan')

    def __repr__(self):
        return f'<User {self.email}>'

    @validates('email')
    def _lower_email(self, key, value):
        return value.strip().lower() if value else value

    def set_password(self, password):
        self.password = bcrypt.generate_password_hash(password.strip()).decode('utf-8')

    def check_password(self, password):
        """Social auth accounts have no password and never match."""
        if not self.password or not password:
            return False
        return bcrypt.check_password_hash(self.password, password.strip())

    @classmethod
    def find_by_email(cls, email):
        return cls.query.filter_by(email=(email or '').strip().lower()).first()

    @classmethod
    def create_user(cls, first_name, last_name, email, password):
        """
        Create a local account and its profile.

        Raises:
            ConflictError: the email is already registered
        """
        if cls.find_by_email(email):
            raise ConflictError('User already exists')

        try:
            user = cls(email=email)
            user.set_password(password)
            db.session.add(user)
            db.session.flush()  # Get user.id

            Profile.update_or_create_profile(
                user_id=user.id,
                first_name=first_name,
                last_name=last_name,
                social_auth=Config.SOCIAL_LOCAL,
            )
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception('Could not create user %s', email)
            raise

        logger.info('Created user %s', user.email)
        return user

    @classmethod
    def create_social_auth_user(cls, email, first_name, last_name, social_auth, avatar_url=None):
        """
        Find or create the account for an OAuth login.

        An existing account may only sign in through the provider it was
        created with.

        Raises:
            ConflictError: the email belongs to an account of another provider
        """
        user = cls.find_by_email(email)

        if user:
            if user.profile is None or user.profile.social_auth != social_auth:
                logger.warning('User %s already exists with a different auth', email)
                raise ConflictError('User already exists with this email')
            return user

        try:
            user = cls(email=email)
            db.session.add(user)
            db.session.flush()

            Profile.update_or_create_profile(
                user_id=user.id,
                first_name=first_name or '',
                last_name=last_name or '',
                avatar_url=avatar_url,
                social_auth=social_auth,
            )
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception('Could not create %s user %s', social_auth, email)
            raise

        logger.info('Created %s user %s', social_auth, user.email)
        return user

    @classmethod
    def update_user(cls, user_id, first_name=None, last_name=None, password=None, avatar=None):
        """
        Update password and profile fields. Only the given values change.

        Args:
            avatar: storage key of a newly uploaded avatar; the previous
                locally stored avatar is deleted once the update is committed

        Raises:
            NotFoundError: no such user
        """
        user = db.session.get(cls, user_id)
        if user is None:
            raise NotFoundError('User not found')

        profile = user.profile
        if profile is None:
            profile = Profile(user=user, first_name=first_name or '', last_name=last_name or '',
                              social_auth=Config.SOCIAL_LOCAL)
            db.session.add(profile)

        old_avatar = profile.storage_prefix if avatar else None

        try:
            if password:
                user.set_password(password)
            if first_name:
                profile.first_name = first_name
            if last_name:
                profile.last_name = last_name
            if avatar:
                profile.storage_prefix = avatar
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception('Could not update user %s', user_id)
            raise

        if old_avatar and old_avatar != avatar:
            storage.delete(old_avatar)

        return user

    @classmethod
    def get_user_by_id(cls, user_id):
        user = cls.query.options(
            joinedload(cls.profile),
            selectinload(cls.posts),
        ).filter_by(id=user_id).first()
        if user is None:
            raise NotFoundError('User not found')
        return user


class Profile(db.Model):
    """
    Per-user display data: names and avatar.
    avatar_url holds a provider picture URL, storage_prefix a locally stored upload.
    """
    __tablename__ = 'profiles'

    id = db.Column(db.Integer, primary_key=True)
    first_name = db.Column(db.String(50), nullable=False)
    last_name = db.Column(db.String(50), nullable=False)
    full_name = db.Column(db.String(180), nullable=False)
    storage_prefix = db.Column(db.String(255), nullable=True)
    avatar_url = db.Column(db.String(255), nullable=True)
    social_auth = db.Column(db.String(20), nullable=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'),
                        nullable=False, unique=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = db.relationship('User', back_populates='profile')

    def __repr__(self):
        return f'<Profile {self.full_name}>'

    @validates('first_name', 'last_name')
    def _lower_name(self, key, value):
        return (value or '').strip().lower()

    @property
    def avatar_base64(self):
        """Locally stored avatar as base64, or None."""
        if not self.storage_prefix:
            return None
        try:
            return storage.get_base64(self.storage_prefix)
        except (OSError, StorageError) as e:
            logger.error('Avatar %s unreadable: %s', self.storage_prefix, e)
            return None

    @classmethod
    def update_or_create_profile(cls, user_id, first_name, last_name, avatar_url=None,
                                 social_auth=None, storage_prefix=None):
        """Upsert the profile of user_id and commit."""
        profile = cls.query.filter_by(user_id=user_id).first()
        if profile is None:
            profile = cls(user_id=user_id)
            db.session.add(profile)

        profile.first_name = first_name
        profile.last_name = last_name
        if avatar_url:
            profile.avatar_url = avatar_url
        if social_auth:
            profile.social_auth = social_auth
        if storage_prefix:
            profile.storage_prefix = storage_prefix

        try:
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception('Could not save profile for user %s', user_id)
            raise
        return profile

    @classmethod
    def get_profile_by_id(cls, profile_id):
        profile = cls.query.options(
            joinedload(cls.user).selectinload(User.posts),
        ).filter_by(id=profile_id).first()
        if profile is None:
            raise NotFoundError('Profile not found')
        return profile


@event.listens_for(Profile, 'before_insert')
@event.listens_for(Profile, 'before_update')
def _fill_full_name(mapper, connection, profile):
    profile.full_name = f'{profile.first_name} {profile.last_name}'.strip()


class Tag(db.Model):
    """
    Free-text label, stored lower-cased and unique
    """
    __tablename__ = 'tags'

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(100), unique=True, nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    posts = db.relationship('Post', secondary=tag_posts, back_populates='tags')

    def __repr__(self):
        return f'<Tag {self.title}>'

    @classmethod
    def get_all_by_titles(cls, titles):
        if not titles:
            return []
        return cls.query.filter(cls.title.in_(titles)).all()

    @classmethod
    def resolve(cls, titles):
        """
        Existing tags for the given titles plus new (pending) ones for the
        rest, in input order. Does not commit.
        """
        titles = normalize_tags(titles)
        existing = {tag.title: tag for tag in cls.get_all_by_titles(titles)}

        resolved = []
        for title in titles:
            tag = existing.get(title)
            if tag is None:
                tag = cls(title=title)
                db.session.add(tag)
            resolved.append(tag)
        return resolved

    @classmethod
    def store_tags(cls, titles):
        """Find or create every title and return the tag ids in order."""
        try:
            tags = cls.resolve(titles)
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception('Could not store tags %s', titles)
            raise
        return [tag.id for tag in tags]


class Post(db.Model):
    """
    User-authored post with one image and any number of tags
    """
    __tablename__ = 'posts'

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(50), nullable=False)
    description = db.Column(db.String(400), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'),
                        nullable=False, index=True)
    storage_prefix = db.Column(db.String(255), nullable=False)
    image_url = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = db.relationship('User', back_populates='posts')
    tags = db.relationship('Tag', secondary=tag_posts, back_populates='posts',
                           order_by='Tag.title')

    def __repr__(self):
        return f'<Post {self.id} {self.title!r}>'

    @validates('title', 'description')
    def _lower_text(self, key, value):
        return value.lower() if value else value

    @property
    def tag_titles(self):
        return [tag.title for tag in self.tags]

    @property
    def image_base64(self):
        """Stored image as base64. A missing file is logged, not raised."""
        try:
            return storage.get_base64(self.storage_prefix)
        except (OSError, StorageError) as e:
            logger.error('Image %s of post %s unreadable: %s', self.storage_prefix, self.id, e)
            return None

    def is_owned_by(self, user):
        """Only the author may view the edit form, update or delete a post."""
        return bool(user) and getattr(user, 'is_authenticated', False) and user.id == self.user_id

    @classmethod
    def _newest_first(cls, query):
        return query.order_by(cls.created_at.desc(), cls.id.desc())

    @classmethod
    def get_all(cls):
        return cls._newest_first(
            cls.query.options(selectinload(cls.user).joinedload(User.profile),
                              selectinload(cls.tags))
        ).all()

    @classmethod
    def get_all_by_user(cls, user_id):
        """The user with profile and posts (newest first)."""
        user = User.query.options(
            joinedload(User.profile),
            selectinload(User.posts).selectinload(cls.tags),
        ).filter_by(id=user_id).first()
        if user is None:
            raise NotFoundError('User not found')
        return user

    @classmethod
    def get_all_by_user_email(cls, email):
        user = User.query.options(
            joinedload(User.profile),
            selectinload(User.posts).selectinload(cls.tags),
        ).filter_by(email=(email or '').strip().lower()).first()
        if user is None:
            raise NotFoundError('User not found')
        return user

    @classmethod
    def store_post(cls, user_id, title, description, tags, storage_prefix):
        """
        Create a post and attach its tags in one transaction.
        Tags that do not exist yet are created; existing ones are reused.
        """
        try:
            post = cls(
                title=title,
                description=description,
                user_id=user_id,
                storage_prefix=storage_prefix,
            )
            db.session.add(post)
            post.tags = Tag.resolve(tags)
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception('Could not create post for user %s', user_id)
            raise

        logger.info('Post %s created by user %s', post.id, user_id)
        return post

    @classmethod
    def get_post_by_id(cls, post_id):
        post = cls.query.options(
            joinedload(cls.user).joinedload(User.profile),
            selectinload(cls.tags),
        ).filter_by(id=post_id).first()
        if post is None:
            raise NotFoundError('Post not found')
        return post

    @classmethod
    def update_post(cls, post_id, title, description, tags, storage_prefix=None):
        """
        Update a post in one transaction.
        Tags missing from `tags` are detached, new titles are created and
        already attached tags keep their pivot rows.

        Raises:
            NotFoundError: no such post
        """
        post = cls.query.options(selectinload(cls.tags)).filter_by(id=post_id).first()
        if post is None:
            db.session.rollback()
            raise NotFoundError('Post not found')

        try:
            post.title = title
            post.description = description
            if storage_prefix:
                post.storage_prefix = storage_prefix
            post.tags = Tag.resolve(tags)
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception('Could not update post %s', post_id)
            raise

        logger.info('Post %s updated', post.id)
        return post

    @classmethod
    def find_all(cls, ids):
        if not ids:
            return []
        return cls.query.filter(cls.id.in_(ids)).all()

    @classmethod
    def search(cls, term):
        """Distinct posts having a tag whose title contains term."""
        term = (term or '').strip().lower()
        if not term:
            return []
        query = cls.query.options(selectinload(cls.tags)) \
            .join(cls.tags) \
            .filter(Tag.title.contains(term, autoescape=True)) \
            .distinct()
        return cls._newest_first(query).all()
