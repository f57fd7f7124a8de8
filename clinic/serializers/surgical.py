from rest_framework import serializers

from clinic.models import CasePhoto, CasePlan, ConsentForm, SurgicalCase


class CasePlanFieldsSerializer(serializers.Serializer):
    procedurePlan = serializers.CharField(source='procedure_plan', required=False, allow_blank=True)
    riskFactors = serializers.CharField(source='risk_factors', required=False, allow_blank=True)
    preOpNotes = serializers.CharField(source='pre_op_notes', required=False, allow_blank=True)
    implantDetails = serializers.CharField(source='implant_details', required=False, allow_blank=True)
    plannedAnesthesia = serializers.ChoiceField(
        source='planned_anesthesia', choices=[c[0] for c in CasePlan.ANESTHESIA_CHOICES],
        required=False, allow_blank=True, allow_null=True,
        error_messages={'invalid_choice': 'Invalid anesthesia type. Valid values: '
                                          + ', '.join(c[0] for c in CasePlan.ANESTHESIA_CHOICES)},
    )
    specialInstructions = serializers.CharField(source='special_instructions', required=False, allow_blank=True)
    readinessStatus = serializers.ChoiceField(source='readiness_status', choices=[c[0] for c in CasePlan.READINESS_CHOICES], required=False)
    readyForSurgery = serializers.BooleanField(source='ready_for_surgery', required=False)
    estimatedDurationMinutes = serializers.IntegerField(
        source='estimated_duration_minutes', required=False, allow_null=True, min_value=15, max_value=600,
        error_messages={'min_value': 'Estimated duration must be between 15 and 600 minutes.',
                        'max_value': 'Estimated duration must be between 15 and 600 minutes.'},
    )


class CasePlanCreateSerializer(CasePlanFieldsSerializer):
    appointmentId = serializers.IntegerField(source='appointment_id', error_messages={'required': 'appointmentId is required'})
    patientId = serializers.IntegerField(source='patient_id', error_messages={'required': 'patientId is required'})


class SurgicalPlanUpdateSerializer(CasePlanFieldsSerializer):
    procedureName = serializers.CharField(source='procedure_name', required=False, allow_blank=True, max_length=255)
    side = serializers.CharField(required=False, allow_blank=True, max_length=32)
    diagnosis = serializers.CharField(required=False, allow_blank=True)
    urgency = serializers.ChoiceField(choices=[c[0] for c in SurgicalCase.URGENCY_CHOICES], required=False)

    CASE_FIELDS = ('procedure_name', 'side', 'diagnosis', 'urgency')

    def split(self):
        """Return ``(plan_fields, case_fields)`` from the validated data."""
        data = dict(self.validated_data)
        case_fields = {k: data.pop(k) for k in self.CASE_FIELDS if k in data}
        return data, case_fields


class ConsentCreateSerializer(serializers.Serializer):
    type = serializers.ChoiceField(choices=[c[0] for c in ConsentForm.TYPE_CHOICES])
    title = serializers.CharField(max_length=255)


class ConsentActionSerializer(serializers.Serializer):
    action = serializers.ChoiceField(choices=['sign', 'revoke'])


class CasePhotoSerializer(serializers.Serializer):
    timepoint = serializers.ChoiceField(choices=[c[0] for c in CasePhoto.TIMEPOINT_CHOICES])
    imageUrl = serializers.URLField(source='image_url', max_length=512)
    description = serializers.CharField(required=False, allow_blank=True, max_length=255, default='')


class CancelCaseSerializer(serializers.Serializer):
    reason = serializers.CharField()


class CaseListQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[c[0] for c in SurgicalCase.STATUS_CHOICES], required=False)
