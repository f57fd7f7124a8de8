from rest_framework import serializers

from .patients import PatientSerializer


class IntakeSubmitSerializer(PatientSerializer):
    sessionId = serializers.CharField(max_length=32)
    privacyConsent = serializers.BooleanField(source='privacy_consent')
    serviceConsent = serializers.BooleanField(source='service_consent')
    medicalConsent = serializers.BooleanField(source='medical_consent')

    def validate(self, attrs):
        missing = [name for name, key in (('privacyConsent', 'privacy_consent'),
                                          ('serviceConsent', 'service_consent'),
                                          ('medicalConsent', 'medical_consent')) if not attrs.get(key)]
        if missing:
            raise serializers.ValidationError({name: ['Consent is required'] for name in missing})
        return attrs


class IntakeRejectSerializer(serializers.Serializer):
    reason = serializers.CharField()
