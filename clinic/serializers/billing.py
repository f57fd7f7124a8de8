from decimal import Decimal

from rest_framework import serializers

from clinic.models import Payment


class BillCreateSerializer(serializers.Serializer):
    patientId = serializers.IntegerField(source='patient_id')
    appointmentId = serializers.IntegerField(source='appointment_id', required=False, allow_null=True)
    surgicalCaseId = serializers.IntegerField(source='surgical_case_id', required=False, allow_null=True)
    totalAmount = serializers.DecimalField(source='total_amount', max_digits=12, decimal_places=2, min_value=Decimal('0.01'))
    discount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0'), required=False, default=Decimal('0'))

    def validate(self, attrs):
        if attrs.get('discount', Decimal('0')) > attrs['total_amount']:
            raise serializers.ValidationError({'discount': ['Discount cannot exceed the bill total']})
        return attrs


class PaymentSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0.01'))
    method = serializers.ChoiceField(choices=[c[0] for c in Payment.METHOD_CHOICES])


class BillListQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[c[0] for c in Payment.STATUS_CHOICES], required=False)
    patientId = serializers.IntegerField(required=False)
