from rest_framework import serializers

from clinic.services.dashboards import MAX_TREND_DAYS


class WindowQuerySerializer(serializers.Serializer):
    days = serializers.IntegerField(required=False, min_value=1, max_value=MAX_TREND_DAYS, default=30)


class AuditQuerySerializer(serializers.Serializer):
    objectType = serializers.CharField(required=False)
    objectId = serializers.CharField(required=False)
    action = serializers.CharField(required=False)
    userId = serializers.IntegerField(required=False)
    page = serializers.IntegerField(required=False, min_value=1, default=1)
    pageSize = serializers.IntegerField(required=False, min_value=1, max_value=200, default=50)
