"""
Authentication endpoints: login, token refresh, logout and "who am I".

Tokens are simplejwt access/refresh pairs. Only users whose account
status is ACTIVE may log in. Access tokens of users deactivated later
are refused by :class:`clinic.authentication.BearerJWTAuthentication`,
and their refresh tokens can no longer be rotated.
"""
from __future__ import annotations

import structlog
from django.contrib.auth import authenticate
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.exceptions import AuthenticationFailed, ValidationError
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework_simplejwt.exceptions import InvalidToken, TokenError
from rest_framework_simplejwt.serializers import TokenRefreshSerializer
from rest_framework_simplejwt.settings import api_settings as jwt_settings
from rest_framework_simplejwt.token_blacklist.models import BlacklistedToken, OutstandingToken
from rest_framework_simplejwt.tokens import RefreshToken

from clinic.authentication import account_is_active
from clinic.models import User
from clinic.responses import ok
from clinic.serializers.auth import LoginSerializer, LogoutSerializer
from clinic.services import audit
from clinic.services.users import format_user
from clinic.throttling import LoginRateThrottle

logger = structlog.get_logger(__name__)


@api_view(['POST'])
@permission_classes([AllowAny])
@throttle_classes([LoginRateThrottle])
def login_view(request):
    s = LoginSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    username = s.validated_data['username']

    user = authenticate(request, username=username, password=s.validated_data['password'])
    if user is None:
        audit.log_action(user=None, action=audit.LOGIN_FAILED, object_type='User',
                         detail={'username': username, 'reason': 'bad_credentials'}, request=request)
        raise AuthenticationFailed('Invalid username or password')
    if not user.is_account_active:
        audit.log_action(user=user, action=audit.LOGIN_FAILED, object_type='User', object_id=user.id,
                         detail={'reason': 'account_' + user.status.lower()}, request=request)
        raise AuthenticationFailed('Account is not active')

    refresh = RefreshToken.for_user(user)
    refresh['role'] = user.role
    audit.log_action(user=user, action=audit.LOGIN, object_type='User', object_id=user.id, request=request)
    logger.info('login', user_id=user.id, role=user.role)
    return ok({
        'access': str(refresh.access_token),
        'refresh': str(refresh),
        'user': format_user(user),
    })


@api_view(['POST'])
@permission_classes([AllowAny])
def refresh_view(request):
    raw = request.data.get('refresh') if isinstance(request.data, dict) else None
    if isinstance(raw, str) and raw:
        _ensure_refresh_owner_active(raw)
    s = TokenRefreshSerializer(data=request.data)
    try:
        s.is_valid(raise_exception=True)
    except TokenError as e:
        raise InvalidToken(e.args[0])
    return ok(s.validated_data)


def _ensure_refresh_owner_active(raw: str) -> None:
    """Refuse to rotate tokens of accounts that were deactivated after login."""
    try:
        token = RefreshToken(raw)
    except TokenError as e:
        raise InvalidToken(e.args[0])
    user = User.objects.filter(**{jwt_settings.USER_ID_FIELD: token.get(jwt_settings.USER_ID_CLAIM)}).first()
    if not account_is_active(user):
        logger.info('refresh_refused', user_id=token.get(jwt_settings.USER_ID_CLAIM))
        raise AuthenticationFailed('Account is not active', code='user_inactive')


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def logout_view(request):
    """Blacklist the given refresh token, or every outstanding one for the caller."""
    s = LogoutSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    refresh = s.validated_data.get('refresh')
    count = 0
    if refresh:
        try:
            RefreshToken(refresh).blacklist()
        except TokenError:
            raise ValidationError({'refresh': ['Invalid or expired refresh token']})
        count = 1
    else:
        for token in OutstandingToken.objects.filter(user=request.user):
            _, created = BlacklistedToken.objects.get_or_create(token=token)
            count += int(created)
    audit.log_action(user=request.user, action=audit.LOGOUT, object_type='User', object_id=request.user.id,
                     detail={'blacklisted': count}, request=request)
    return ok({'blacklisted': count})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def me_view(request):
    return ok(format_user(request.user))
