"""
Clinical form endpoints: ``/api/surgical-cases/<id>/forms/<slug>``.

``slug`` is one of ``preop-ward``, ``intraop``, ``recovery`` or
``operative-note``. Only the template's author role may write; the
service refuses other roles with 403 before touching the form.
"""
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import IsAuthenticated

from clinic.permissions import DOCTOR, NURSE, allow_roles
from clinic.responses import ok
from clinic.services import clinical_forms as form_service

FormReaders = allow_roles(*form_service.READ_ROLES)
FormAuthors = allow_roles(DOCTOR, NURSE)


@api_view(['GET'])
@permission_classes([IsAuthenticated, FormReaders])
def get_form(request, pk: int, slug: str):
    template = form_service.template_for(slug)
    return ok(form_service.format_form(form_service.get_form(pk, template)))


@api_view(['POST'])
@permission_classes([IsAuthenticated, FormAuthors])
def save_draft(request, pk: int, slug: str):
    template = form_service.template_for(slug)
    if not isinstance(request.data, dict):
        raise ValidationError({'data': ['Expected a JSON object.']})
    data = request.data.get('data', request.data)
    response = form_service.save_draft(request.user, pk, template, data, request=request)
    return ok(form_service.format_form(response))


@api_view(['POST'])
@permission_classes([IsAuthenticated, FormAuthors])
def finalize(request, pk: int, slug: str):
    template = form_service.template_for(slug)
    response = form_service.finalize(request.user, pk, template, request=request)
    return ok(form_service.format_form(response))
