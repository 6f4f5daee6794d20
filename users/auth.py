import logging
from datetime import datetime, timedelta, timezone

import bcrypt
from django.conf import settings
from jose import JWTError, jwt

from hackernews.errors import AuthenticationError
from users.models import UserModel

logger = logging.getLogger(__name__)


# ========== passwords ==========

# bcrypt only looks at the first 72 bytes of a password; newer releases of the bcrypt package
# raise instead of silently truncating, so truncate here.
def _password_bytes(password):
    return password.encode('utf-8')[:72]


def hash_password(password):
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(_password_bytes(password), salt).decode('utf-8')


def check_password(password, hashed):
    try:
        return bcrypt.checkpw(_password_bytes(password), hashed.encode('utf-8'))
    except ValueError:
        # stored value is not a bcrypt hash
        return False


# ========== tokens ==========

def create_token(user_id):
    """Return a signed JWT carrying the user's primary key in its 'userId' claim."""
    claims = {'userId': user_id}
    if settings.JWT_EXPIRATION_MINUTES > 0:
        claims['exp'] = (datetime.now(timezone.utc) +
                         timedelta(minutes=settings.JWT_EXPIRATION_MINUTES))
    return jwt.encode(claims, settings.APP_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_token(token):
    """Verify the token's signature and expiry, and return its 'userId' claim."""
    try:
        claims = jwt.decode(token, settings.APP_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as e:
        logger.info('Rejected auth token: %s', e)
        raise AuthenticationError('Not authenticated')
    user_id = claims.get('userId')
    if user_id is None:
        raise AuthenticationError('Not authenticated')
    return user_id


def get_user_id(context):
    """Return the id of the user whose token is in the request's Authorization header.

    'context' is whatever graphene was given as context_value: a Django HttpRequest when serving
    over HTTP, or any object with a META dict in tests. Raises AuthenticationError if the header is
    missing, doesn't use the Bearer scheme, or carries a bad token.
    """
    meta = getattr(context, 'META', None) or {}
    auth = meta.get('HTTP_AUTHORIZATION', None)
    if not auth or not auth.startswith('Bearer '):
        raise AuthenticationError('Not authenticated')
    return decode_token(auth[7:].strip())


def get_user(context):
    """Like get_user_id(), but return the UserModel. A token for a deleted user is rejected."""
    user_id = get_user_id(context)
    try:
        return UserModel.objects.get(pk=user_id)
    except UserModel.DoesNotExist:
        logger.info('Token refers to unknown user %s', user_id)
        raise AuthenticationError('Not authenticated')
