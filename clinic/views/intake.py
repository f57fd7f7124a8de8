"""
Patient self-intake.

``submit_intake`` is public: the patient holds only the session id that
front desk handed over. Everything else is front desk or admin only.
"""
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.permissions import AllowAny, IsAuthenticated

from clinic.permissions import ADMIN, FRONTDESK, allow_roles
from clinic.responses import created, ok
from clinic.serializers.intake import IntakeRejectSerializer, IntakeSubmitSerializer
from clinic.services import intake as intake_service
from clinic.services.patients import format_patient
from clinic.throttling import IntakeSubmitRateThrottle

FrontDeskOrAdmin = allow_roles(FRONTDESK, ADMIN)


@api_view(['POST'])
@permission_classes([IsAuthenticated, FrontDeskOrAdmin])
def start_intake(request):
    session = intake_service.start_session(request.user, request=request)
    return created({'sessionId': session.session_id, 'status': session.status,
                    'expiresAt': session.expires_at.isoformat()})


@api_view(['POST'])
@permission_classes([AllowAny])
@throttle_classes([IntakeSubmitRateThrottle])
def submit_intake(request):
    s = IntakeSubmitSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    data = dict(s.validated_data)
    session_id = data.pop('sessionId')
    submission = intake_service.submit(session_id, data, request=request)
    return created(intake_service.format_submission(submission))


@api_view(['GET'])
@permission_classes([IsAuthenticated, FrontDeskOrAdmin])
def pending_intakes(request):
    return ok([intake_service.format_submission(s) for s in intake_service.pending()])


@api_view(['POST'])
@permission_classes([IsAuthenticated, FrontDeskOrAdmin])
def confirm_intake(request, session_id: str):
    submission, patient = intake_service.confirm(request.user, session_id, request=request)
    return created({'submission': intake_service.format_submission(submission), 'patient': format_patient(patient)})


@api_view(['POST'])
@permission_classes([IsAuthenticated, FrontDeskOrAdmin])
def reject_intake(request, session_id: str):
    s = IntakeRejectSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    submission = intake_service.reject(request.user, session_id, s.validated_data['reason'], request=request)
    return ok(intake_service.format_submission(submission))
