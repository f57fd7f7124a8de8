from django.utils import timezone
from rest_framework import serializers

from clinic.models import Patient
from clinic.services.patients import clean_text


class PatientSerializer(serializers.Serializer):
    """Demographics accepted when registering or editing a patient."""
    firstName = serializers.CharField(source='first_name', max_length=64)
    lastName = serializers.CharField(source='last_name', max_length=64)
    dateOfBirth = serializers.DateField(source='date_of_birth')
    gender = serializers.ChoiceField(choices=[c[0] for c in Patient.GENDER_CHOICES])
    phone = serializers.CharField(max_length=32)
    email = serializers.EmailField(required=False, allow_blank=True)
    address = serializers.CharField(required=False, allow_blank=True, max_length=255)
    emergencyContactName = serializers.CharField(source='emergency_contact_name', required=False, allow_blank=True, max_length=128)
    emergencyContactNumber = serializers.CharField(source='emergency_contact_number', required=False, allow_blank=True, max_length=32)
    relation = serializers.CharField(required=False, allow_blank=True, max_length=64)
    allergies = serializers.CharField(required=False, allow_blank=True)
    medicalHistory = serializers.CharField(source='medical_history', required=False, allow_blank=True)

    def validate_firstName(self, v):
        return _name(v)

    def validate_lastName(self, v):
        return _name(v)

    def validate_dateOfBirth(self, v):
        if v > timezone.localdate():
            raise serializers.ValidationError('Date of birth cannot be in the future')
        return v


def _name(v):
    v = clean_text(v)
    if len(v) < 1:
        raise serializers.ValidationError('Name is required')
    return v


class PatientSearchSerializer(serializers.Serializer):
    q = serializers.CharField(required=False, allow_blank=True)
    page = serializers.IntegerField(required=False, min_value=1)
    pageSize = serializers.IntegerField(required=False, min_value=1, max_value=200)
