from django.contrib.auth.password_validation import validate_password
from rest_framework import serializers

from clinic.models import User


class UserCreateSerializer(serializers.Serializer):
    username = serializers.RegexField(r'^[\w.@+-]{3,150}$', error_messages={'invalid': 'Username must be 3-150 letters, digits or @.+-_'})
    password = serializers.CharField(write_only=True, trim_whitespace=False)
    role = serializers.ChoiceField(choices=[c[0] for c in User.ROLE_CHOICES if c[0] != User.ROLE_PATIENT])
    firstName = serializers.CharField(source='first_name', required=False, allow_blank=True, max_length=150, default='')
    lastName = serializers.CharField(source='last_name', required=False, allow_blank=True, max_length=150, default='')
    email = serializers.EmailField(required=False, allow_blank=True, default='')
    phone = serializers.CharField(required=False, allow_blank=True, max_length=32, default='')
    specialization = serializers.CharField(required=False, allow_blank=True, max_length=128, default='')
    licenseNumber = serializers.CharField(source='license_number', required=False, allow_blank=True, max_length=64, default='')

    def validate_password(self, v):
        validate_password(v)
        return v


class DoctorCreateSerializer(UserCreateSerializer):
    role = serializers.HiddenField(default=User.ROLE_DOCTOR)


class UserStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[c[0] for c in User.STATUS_CHOICES])


class UserListQuerySerializer(serializers.Serializer):
    role = serializers.ChoiceField(choices=[c[0] for c in User.ROLE_CHOICES], required=False)
    q = serializers.CharField(required=False, allow_blank=True)
