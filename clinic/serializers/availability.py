from rest_framework import serializers

from clinic.models import DoctorAvailability, ScheduleBlock
from clinic.serializers.clinical_forms import hhmm


class BreakSerializer(serializers.Serializer):
    startTime = serializers.CharField(validators=[hhmm])
    endTime = serializers.CharField(validators=[hhmm])
    reason = serializers.CharField(required=False, allow_blank=True, max_length=255, default='')


class WorkingDaySerializer(serializers.Serializer):
    weekday = serializers.ChoiceField(choices=DoctorAvailability.WEEKDAY_CHOICES)
    startTime = serializers.CharField(source='start_time', validators=[hhmm])
    endTime = serializers.CharField(source='end_time', validators=[hhmm])
    isAvailable = serializers.BooleanField(source='is_available', required=False, default=True)
    breaks = BreakSerializer(many=True, required=False, default=list)


class AvailabilitySerializer(serializers.Serializer):
    workingDays = WorkingDaySerializer(source='working_days', many=True, allow_empty=True)
    slotMinutes = serializers.IntegerField(source='slot_minutes', required=False, min_value=5, max_value=240)
    bufferMinutes = serializers.IntegerField(source='buffer_minutes', required=False, min_value=0, max_value=60)


class ScheduleBlockSerializer(serializers.Serializer):
    startDate = serializers.DateField(source='start_date')
    endDate = serializers.DateField(source='end_date')
    startTime = serializers.CharField(source='start_time', required=False, allow_blank=True, default='',
                                      validators=[hhmm])
    endTime = serializers.CharField(source='end_time', required=False, allow_blank=True, default='',
                                    validators=[hhmm])
    blockType = serializers.ChoiceField(source='block_type', choices=ScheduleBlock.TYPE_CHOICES)
    reason = serializers.CharField(required=False, allow_blank=True, default='')


class BlockListQuerySerializer(serializers.Serializer):
    start = serializers.DateField(required=False)
    end = serializers.DateField(required=False)


class SlotQuerySerializer(serializers.Serializer):
    date = serializers.DateField()
