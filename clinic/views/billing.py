from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from clinic.permissions import ADMIN, CASHIER, FRONTDESK, allow_roles
from clinic.responses import created, ok
from clinic.serializers.billing import BillCreateSerializer, BillListQuerySerializer, PaymentSerializer
from clinic.services import billing as billing_service

Billers = allow_roles(CASHIER, FRONTDESK, ADMIN)
CashierOrAdmin = allow_roles(CASHIER, ADMIN)


@api_view(['GET'])
@permission_classes([IsAuthenticated, CashierOrAdmin])
def list_bills(request):
    q = BillListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    qs = billing_service.list_bills(q.validated_data.get('status'), q.validated_data.get('patientId'))
    return ok([billing_service.format_bill(b) for b in qs[:500]])


@api_view(['POST'])
@permission_classes([IsAuthenticated, Billers])
def create_bill(request):
    s = BillCreateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    bill = billing_service.create_bill(request.user, request=request, **s.validated_data)
    return created(billing_service.format_bill(bill))


@api_view(['POST'])
@permission_classes([IsAuthenticated, CashierOrAdmin])
def record_payment(request, pk: int):
    s = PaymentSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    bill = billing_service.record_payment(request.user, pk, request=request, **s.validated_data)
    return ok(billing_service.format_bill(bill))
