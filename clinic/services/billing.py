from decimal import Decimal
from typing import Optional

import structlog
from django.db import transaction
from django.utils import timezone
from rest_framework.exceptions import NotFound

from clinic.exceptions import Conflict, DomainError
from clinic.models import Appointment, Patient, Payment, SurgicalCase
from clinic.services import audit

logger = structlog.get_logger(__name__)

ZERO = Decimal('0')


def _receipt_number(payment: Payment) -> str:
    return f"RCT-{timezone.localdate():%Y%m%d}-{payment.id:06d}"


@transaction.atomic
def create_bill(user, *, patient_id, total_amount: Decimal, discount: Decimal = ZERO,
                appointment_id=None, surgical_case_id=None, request=None) -> Payment:
    patient = Patient.objects.filter(id=patient_id).first()
    if not patient:
        raise NotFound('Patient not found')
    if total_amount is None or total_amount <= ZERO:
        raise DomainError('Bill amount must be greater than zero')
    discount = discount or ZERO
    if discount < ZERO or discount > total_amount:
        raise DomainError('Discount must be between zero and the bill total')

    appointment = None
    if appointment_id:
        appointment = Appointment.objects.select_for_update().filter(id=appointment_id, patient=patient).first()
        if not appointment:
            raise NotFound('Appointment not found for this patient')
        if Payment.objects.filter(appointment=appointment).exists():
            raise Conflict('A bill already exists for this appointment')
    surgical_case = None
    if surgical_case_id:
        surgical_case = SurgicalCase.objects.filter(id=surgical_case_id, patient=patient).first()
        if not surgical_case:
            raise NotFound('Surgical case not found for this patient')

    bill = Payment.objects.create(
        patient=patient, appointment=appointment, surgical_case=surgical_case,
        total_amount=total_amount, discount=discount, created_by=user,
    )
    audit.log_action(user=user, action=audit.CREATE, object_type='Payment', object_id=bill.id,
                     detail={'patientId': patient.id, 'total': str(total_amount), 'discount': str(discount)},
                     request=request)
    return bill


@transaction.atomic
def record_payment(user, bill_id, *, amount: Decimal, method: str, request=None) -> Payment:
    """Apply a payment; the bill moves UNPAID -> PART -> PAID."""
    bill = Payment.objects.select_for_update().filter(id=bill_id).first()
    if not bill:
        raise NotFound('Bill not found')
    if bill.status == Payment.STATUS_PAID:
        raise DomainError('Bill is already paid in full')
    if amount is None or amount <= ZERO:
        raise DomainError('Payment amount must be greater than zero')
    if amount > bill.balance:
        raise DomainError('Payment exceeds the outstanding balance', details={'balance': str(bill.balance)})

    previous = bill.status
    bill.amount_paid += amount
    bill.payment_method = method
    bill.status = Payment.STATUS_PAID if bill.balance <= ZERO else Payment.STATUS_PART
    if bill.status == Payment.STATUS_PAID:
        bill.receipt_number = _receipt_number(bill)
    bill.save()
    audit.log_action(user=user, action=audit.UPDATE, object_type='Payment', object_id=bill.id,
                     detail={'amount': str(amount), 'method': method, 'previousStatus': previous,
                             'newStatus': bill.status}, request=request)
    logger.info('payment_recorded', bill_id=bill.id, status=bill.status)
    return bill


def list_bills(status: Optional[str] = None, patient_id=None):
    qs = Payment.objects.select_related('patient').order_by('-created_at')
    if status:
        qs = qs.filter(status=status)
    if patient_id:
        qs = qs.filter(patient_id=patient_id)
    return qs


def format_bill(p: Payment) -> dict:
    return {
        'id': p.id,
        'patientId': p.patient_id,
        'patientName': p.patient.full_name,
        'appointmentId': p.appointment_id,
        'surgicalCaseId': p.surgical_case_id,
        'billDate': p.bill_date.isoformat(),
        'totalAmount': str(p.total_amount),
        'discount': str(p.discount),
        'amountPaid': str(p.amount_paid),
        'balance': str(p.balance),
        'paymentMethod': p.payment_method or None,
        'status': p.status,
        'receiptNumber': p.receipt_number,
    }
