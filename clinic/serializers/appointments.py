from rest_framework import serializers

from clinic.serializers.clinical_forms import hhmm


class AppointmentCreateSerializer(serializers.Serializer):
    patientId = serializers.IntegerField(source='patient_id')
    doctorId = serializers.IntegerField(source='doctor_id')
    appointmentDate = serializers.DateField(source='appointment_date')
    time = serializers.CharField(validators=[hhmm])
    type = serializers.CharField(required=False, allow_blank=True, max_length=64, default='Consultation')
    reason = serializers.CharField(required=False, allow_blank=True, default='')
    note = serializers.CharField(required=False, allow_blank=True, default='')


class AppointmentListQuerySerializer(serializers.Serializer):
    date = serializers.DateField(required=False)
    status = serializers.CharField(required=False)
    patientId = serializers.IntegerField(required=False)
    doctorId = serializers.IntegerField(required=False)


class ReasonSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default='')
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class CheckInSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class ConsultationSerializer(serializers.Serializer):
    doctorNotes = serializers.CharField(source='doctor_notes', required=False, allow_blank=True, default='')
    outcome = serializers.CharField(required=False, allow_blank=True, default='')
    outcomeType = serializers.CharField(source='outcome_type', required=False, allow_blank=True, default='', max_length=48)


class RescheduleSerializer(serializers.Serializer):
    appointmentDate = serializers.DateField(source='appointment_date')
    time = serializers.CharField(validators=[hhmm])
    reason = serializers.CharField(required=False, allow_blank=True, default='')


class ConsultationDraftSerializer(serializers.Serializer):
    doctorNotes = serializers.CharField(source='doctor_notes', allow_blank=True)
    version = serializers.CharField(required=False, allow_blank=True, default='')
