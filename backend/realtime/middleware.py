"""WebSocket authentication middleware for JWT and Cookie-based auth."""

import logging
from urllib.parse import parse_qs

from channels.db import database_sync_to_async
from channels.middleware import BaseMiddleware
from django.contrib.auth import get_user_model
from django.contrib.auth.models import AnonymousUser
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import AccessToken

User = get_user_model()
logger = logging.getLogger(__name__)


@database_sync_to_async
def _get_active_user(user_id):
    try:
        return User.objects.get(id=user_id, is_active=True)
    except User.DoesNotExist:
        return AnonymousUser()


class JWTOrCookieAuthMiddleware(BaseMiddleware):
    """
    Authenticate WebSocket connections using either:
    1. JWT access token in querystring (?token=...) - mobile clients
    2. Session cookies set by an upstream AuthMiddlewareStack - browsers

    Anything else connects as AnonymousUser and is closed by the consumer.
    """

    async def __call__(self, scope, receive, send):
        params = parse_qs(scope.get("query_string", b"").decode())

        token_list = params.get("token")
        if token_list:
            try:
                access = AccessToken(token_list[0])
                scope["user"] = await _get_active_user(access["user_id"])
            except (TokenError, KeyError) as e:
                logger.debug("JWT auth failed: %s", e)
                scope["user"] = AnonymousUser()
            return await super().__call__(scope, receive, send)

        if "session" in scope:
            scope["user"] = scope.get("user", AnonymousUser())
        else:
            scope["user"] = AnonymousUser()
        return await super().__call__(scope, receive, send)
