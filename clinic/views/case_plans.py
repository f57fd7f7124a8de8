from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from clinic.permissions import IsClinical, IsDoctor
from clinic.responses import created, ok
from clinic.serializers.surgical import CasePlanCreateSerializer
from clinic.services import case_plans as plan_service


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsDoctor])
def create_case_plan(request):
    """Save the plan for an appointment, opening a surgical case on first save."""
    s = CasePlanCreateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    fields = dict(s.validated_data)
    appointment_id = fields.pop('appointment_id')
    patient_id = fields.pop('patient_id')
    plan, case_created = plan_service.create_case_plan(
        request.user, appointment_id=appointment_id, patient_id=patient_id, fields=fields, request=request,
    )
    data = plan_service.format_case_plan(plan)
    return created(data, caseCreated=True) if case_created else ok(data, caseCreated=False)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsClinical])
def case_plan_for_appointment(request, appointment_id: int):
    return ok(plan_service.format_case_plan(plan_service.plan_for_appointment(appointment_id)))
