"""
Bearer token authentication.

This module defines a subclass of ``rest_framework_simplejwt``'s
``JWTAuthentication`` that additionally rejects accounts whose clinic
status is no longer ACTIVE. Tokens issued before an account was
deactivated therefore stop working immediately instead of at expiry.
Keeping the class in its own module avoids circular imports when DRF
loads authentication classes from settings.
"""
from __future__ import annotations

from rest_framework_simplejwt.authentication import JWTAuthentication
from rest_framework_simplejwt.exceptions import AuthenticationFailed


def account_is_active(user) -> bool:
    """simplejwt ``USER_AUTHENTICATION_RULE``: Django's flag and the clinic status."""
    return user is not None and bool(getattr(user, 'is_account_active', False))


class BearerJWTAuthentication(JWTAuthentication):
    """``Authorization: Bearer <access token>`` for active accounts only."""

    def get_user(self, validated_token):
        user = super().get_user(validated_token)
        if not account_is_active(user):
            raise AuthenticationFailed('Account is not active', code='user_inactive')
        return user
