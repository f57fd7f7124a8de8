from rest_framework import serializers

from clinic.models import SurgicalCase

THEATER_ACTIONS = [
    SurgicalCase.STATUS_IN_PREP,
    SurgicalCase.STATUS_IN_THEATER,
    SurgicalCase.STATUS_RECOVERY,
    SurgicalCase.STATUS_COMPLETED,
]


class BookingSerializer(serializers.Serializer):
    caseId = serializers.IntegerField(source='case_id')
    theaterId = serializers.IntegerField(source='theater_id')
    startTime = serializers.DateTimeField(source='start_time')
    endTime = serializers.DateTimeField(source='end_time')

    def validate(self, attrs):
        if attrs['end_time'] <= attrs['start_time']:
            raise serializers.ValidationError({'endTime': ['End time must be after start time']})
        return attrs


class TransitionSerializer(serializers.Serializer):
    action = serializers.ChoiceField(choices=THEATER_ACTIONS)


class DayboardQuerySerializer(serializers.Serializer):
    date = serializers.DateField(required=False)
