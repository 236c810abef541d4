"""
blueprints/auth/social.py - OAuth Providers
Registers the Google, GitHub and Facebook clients with Authlib and maps each
provider's user payload onto the fields a Profile needs.
"""

from collections import namedtuple

from config import Config
from errors import BlogError

# URL slug -> (Authlib client name, social_auth value stored on the profile)
PROVIDERS = {
    'google': ('google', Config.SOCIAL_GOOGLE),
    'github': ('github', Config.SOCIAL_GITHUB),
    'fb': ('facebook', Config.SOCIAL_FACEBOOK),
}

SocialUser = namedtuple('SocialUser', ['email', 'first_name', 'last_name', 'avatar_url'])

FACEBOOK_GRAPH = 'https://graph.facebook.com/v19.0/'


def register_providers(oauth):
    """
    Client ids and secrets come from <NAME>_CLIENT_ID / <NAME>_CLIENT_SECRET
    in the app config.
    """
    oauth.register(
        name='google',
        server_metadata_url='https://accounts.google.com/.well-known/openid-configuration',
        client_kwargs={'scope': 'openid email profile'},
    )
    oauth.register(
        name='github',
        access_token_url='https://github.com/login/oauth/access_token',
        authorize_url='https://github.com/login/oauth/authorize',
        api_base_url='https://api.github.com/',
        client_kwargs={'scope': 'read:user user:email'},
    )
    oauth.register(
        name='facebook',
        access_token_url=FACEBOOK_GRAPH + 'oauth/access_token',
        authorize_url='https://www.facebook.com/v19.0/dialog/oauth',
        api_base_url=FACEBOOK_GRAPH,
        client_kwargs={'scope': 'email public_profile'},
    )


def split_name(name):
    """'Ada Lovelace' -> ('Ada', 'Lovelace'); a single word has no last name."""
    parts = (name or '').split()
    if not parts:
        return '', ''
    return parts[0], parts[1] if len(parts) > 1 else ''


def fetch_social_user(client_name, client, token):
    """
    Read the signed-in user from the provider.

    Raises:
        BlogError: the provider did not share an email address
    """
    if client_name == 'google':
        info = token.get('userinfo') or client.userinfo(token=token)
        user = SocialUser(
            email=info.get('email'),
            first_name=info.get('given_name', ''),
            last_name=info.get('family_name', ''),
            avatar_url=info.get('picture'),
        )
    elif client_name == 'github':
        data = client.get('user', token=token).json()
        email = data.get('email')
        if not email:
            # Private emails are only listed by the emails endpoint
            emails = client.get('user/emails', token=token).json()
            email = next((e['email'] for e in emails
                          if e.get('primary') and e.get('verified')), None)
        first_name, last_name = split_name(data.get('name') or data.get('login'))
        user = SocialUser(email, first_name, last_name, data.get('avatar_url'))
    elif client_name == 'facebook':
        data = client.get('me?fields=id,name,email,picture.type(large)', token=token).json()
        picture = ((data.get('picture') or {}).get('data') or {}).get('url')
        first_name, last_name = split_name(data.get('name'))
        user = SocialUser(data.get('email'), first_name, last_name, picture)
    else:
        raise BlogError(f'Unknown provider {client_name}')

    if not user.email:
        raise BlogError('Email address not shared by the provider')
    return user
