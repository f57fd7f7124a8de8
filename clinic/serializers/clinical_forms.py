"""
Structured clinical form templates.

Each template is a DRF serializer tree. Drafts are validated with
``partial=True`` (only the values present are checked); finalization
validates the stored draft with the full serializer, where required
fields and the cross-field rules in ``validate`` apply. Time values
travel as ``HH:MM`` strings so validated data stays JSON serializable.
"""
import re

from django.core.validators import RegexValidator
from rest_framework import serializers

TIME_RE = r'^([01]\d|2[0-3]):([0-5]\d)$'
hhmm = RegexValidator(TIME_RE, 'Must be in HH:MM format (24h)')

ANESTHESIA_TYPES = ['GENERAL', 'REGIONAL', 'LOCAL', 'SEDATION', 'TIVA', 'MAC']
MEANINGLESS_CONTENT = re.compile(r'^(n/?a|none|nil|tbd|test|asdf|xxx+|\.+)$', re.IGNORECASE)


def optional_text(**kwargs):
    return serializers.CharField(required=False, allow_blank=True, **kwargs)


def optional_time():
    return serializers.CharField(required=False, allow_blank=True, validators=[hhmm])


def required_name(message: str):
    return serializers.CharField(min_length=2, error_messages={'min_length': message, 'required': message})


class FormSerializer(serializers.Serializer):
    """Base for form sections: cross-field rules only run on finalization."""

    @property
    def finalizing(self) -> bool:
        return not getattr(self.root, 'partial', False)


# ---------------------------------------------------------------------------
# Pre-op ward checklist (NURSE_PREOP_WARD_CHECKLIST v1)
# ---------------------------------------------------------------------------
class DocumentationSerializer(FormSerializer):
    documentationComplete = serializers.BooleanField()
    correctConsent = serializers.BooleanField()


class BloodResultsSerializer(FormSerializer):
    hbPcv = optional_text()
    uecs = optional_text()
    xMatchUnitsAvailable = serializers.IntegerField(required=False, min_value=0)
    otherLabResults = optional_text()


class MedicationsSerializer(FormSerializer):
    preMedGiven = serializers.BooleanField()
    preMedDetails = optional_text()
    periOpMedsGiven = serializers.BooleanField(required=False)
    periOpMedsDetails = optional_text()
    regularMedsGiven = serializers.BooleanField(required=False)
    regularMedsDetails = optional_text()


class AllergiesNpoSerializer(FormSerializer):
    allergiesDocumented = serializers.BooleanField()
    allergiesDetails = optional_text()
    npoStatus = serializers.BooleanField()
    npoFastedFromTime = optional_time()


class PreparationSerializer(FormSerializer):
    bathGown = serializers.BooleanField()
    shaveSkinPrep = serializers.BooleanField(required=False)
    idBandOn = serializers.BooleanField()
    correctPositioning = serializers.BooleanField(required=False)
    jewelryRemoved = serializers.BooleanField()
    makeupNailPolishRemoved = serializers.BooleanField()


class ProstheticsSerializer(FormSerializer):
    contactLensRemoved = serializers.BooleanField(required=False)
    denturesRemoved = serializers.BooleanField(required=False)
    hearingAidRemoved = serializers.BooleanField(required=False)
    crownsBridgeworkNoted = serializers.BooleanField(required=False)
    prostheticNotes = optional_text()


class PreopVitalsSerializer(FormSerializer):
    bpSystolic = serializers.IntegerField(min_value=60, max_value=260)
    bpDiastolic = serializers.IntegerField(min_value=30, max_value=160)
    pulse = serializers.IntegerField(min_value=30, max_value=220)
    respiratoryRate = serializers.IntegerField(min_value=6, max_value=60)
    temperature = serializers.FloatField(min_value=34.0, max_value=42.0)
    cvp = optional_text()
    bladderEmptied = serializers.BooleanField()
    height = serializers.FloatField(required=False, min_value=50, max_value=250)
    weight = serializers.FloatField(min_value=2, max_value=350)
    urinalysis = optional_text()
    xRaysScansPresent = serializers.BooleanField(required=False)
    otherFormsRequired = optional_text()


class HandoverSerializer(FormSerializer):
    preparedByName = required_name('Prepared by name is required')
    timeArrivedInTheatre = optional_time()
    receivedByName = optional_text()
    handedOverByName = optional_text()


class PreopWardChecklistSerializer(FormSerializer):
    documentation = DocumentationSerializer()
    bloodResults = BloodResultsSerializer(required=False)
    medications = MedicationsSerializer()
    allergiesNpo = AllergiesNpoSerializer()
    preparation = PreparationSerializer()
    prosthetics = ProstheticsSerializer(required=False)
    vitals = PreopVitalsSerializer()
    handover = HandoverSerializer()


# ---------------------------------------------------------------------------
# Intra-operative nursing record (NURSE_INTRAOP_RECORD v1)
# ---------------------------------------------------------------------------
class TheatreSetupSerializer(FormSerializer):
    WOUND_CLASSES = ['CLEAN', 'CLEAN_CONTAMINATED', 'CONTAMINATED', 'DIRTY_INFECTED']

    positioning = required_name('Positioning is required')
    skinPrepAgent = required_name('Skin prep agent is required')
    drapeType = required_name('Drape type is required')
    tourniquetUsed = serializers.BooleanField()
    tourniquetPressure = serializers.IntegerField(required=False, min_value=0, max_value=500)
    tourniquetTimeOn = optional_time()
    tourniquetTimeOff = optional_time()
    cauteryUsed = serializers.BooleanField()
    cauterySettingsCut = optional_text()
    cauterySettingsCoag = optional_text()
    drainsUsed = serializers.BooleanField()
    drainType = optional_text()
    drainLocation = optional_text()
    irrigationType = optional_text()
    irrigationVolumeMl = serializers.IntegerField(required=False, min_value=0)
    woundClass = serializers.ChoiceField(choices=WOUND_CLASSES)


class CountsSerializer(FormSerializer):
    initialCountsCompleted = serializers.BooleanField()
    initialCountsRecordedBy = required_name('Recorder name required')
    initialCountsTime = optional_time()
    swabsInitial = serializers.IntegerField(required=False, min_value=0)
    sharpsInitial = serializers.IntegerField(required=False, min_value=0)
    instrumentsInitial = serializers.IntegerField(required=False, min_value=0)
    finalCountsCompleted = serializers.BooleanField()
    finalCountsRecordedBy = required_name('Recorder name required')
    finalCountsTime = optional_time()
    swabsFinal = serializers.IntegerField(required=False, min_value=0)
    sharpsFinal = serializers.IntegerField(required=False, min_value=0)
    instrumentsFinal = serializers.IntegerField(required=False, min_value=0)
    countDiscrepancy = serializers.BooleanField()
    discrepancyNotes = optional_text()

    def validate(self, attrs):
        if self.finalizing and attrs.get('countDiscrepancy') and len((attrs.get('discrepancyNotes') or '').strip()) < 5:
            raise serializers.ValidationError({'discrepancyNotes': [
                'Discrepancy notes are required when a count discrepancy is flagged (min 5 chars)']})
        return attrs


class SpecimenItemSerializer(FormSerializer):
    specimenType = required_name('Specimen type is required')
    site = required_name('Specimen site is required')
    destinationLab = required_name('Destination lab is required')
    timeSent = optional_time()
    notes = optional_text()


class IntraOpSpecimensSerializer(FormSerializer):
    specimens = SpecimenItemSerializer(many=True, required=False)


class IntraOpImplantSerializer(FormSerializer):
    name = required_name('Implant name is required')
    manufacturer = optional_text()
    lotNumber = optional_text()
    serialNumber = optional_text()
    expiryDate = optional_text()
    used = serializers.BooleanField()
    notes = optional_text()


class IntraOpImplantsSerializer(FormSerializer):
    implantsConfirmed = serializers.BooleanField()
    items = IntraOpImplantSerializer(many=True, required=False)


class SignOutSerializer(FormSerializer):
    signOutCompleted = serializers.BooleanField()
    signOutTime = optional_time()
    signOutNurseName = required_name('Nurse name is required for sign-out')
    postopInstructionsConfirmed = serializers.BooleanField()
    specimensLabeledConfirmed = serializers.BooleanField()
    additionalNotes = optional_text()


class IntraOpRecordSerializer(FormSerializer):
    theatreSetup = TheatreSetupSerializer()
    counts = CountsSerializer()
    specimens = IntraOpSpecimensSerializer(required=False)
    implantsUsed = IntraOpImplantsSerializer()
    signOut = SignOutSerializer()


# ---------------------------------------------------------------------------
# Recovery room record (NURSE_RECOVERY_RECORD v1)
# ---------------------------------------------------------------------------
class ArrivalBaselineSerializer(FormSerializer):
    timeArrivedRecovery = serializers.CharField(validators=[hhmm])
    airwayStatus = serializers.ChoiceField(choices=['PATENT', 'ORAL_AIRWAY', 'NASAL_AIRWAY', 'LMA_IN_SITU', 'ETT_IN_SITU', 'OTHER'])
    oxygenDelivery = serializers.ChoiceField(choices=['ROOM_AIR', 'NASAL_CANNULA', 'FACE_MASK', 'NON_REBREATHER', 'VENTURI', 'OTHER'])
    oxygenFlowRate = optional_text()
    consciousness = serializers.ChoiceField(choices=['ALERT', 'RESPONSIVE_TO_VOICE', 'RESPONSIVE_TO_PAIN', 'UNRESPONSIVE', 'DROWSY'])
    painScore = serializers.IntegerField(min_value=0, max_value=10)
    nauseaVomiting = serializers.ChoiceField(choices=['NONE', 'MILD_NAUSEA', 'MODERATE_NAUSEA', 'VOMITING', 'SEVERE_VOMITING'])
    arrivalNotes = optional_text()


class VitalsObservationSerializer(FormSerializer):
    time = serializers.CharField(validators=[hhmm])
    bpSys = serializers.IntegerField(min_value=50, max_value=300)
    bpDia = serializers.IntegerField(min_value=20, max_value=200)
    pulse = serializers.IntegerField(min_value=20, max_value=250)
    rr = serializers.IntegerField(min_value=4, max_value=60)
    spo2 = serializers.IntegerField(min_value=50, max_value=100)
    tempC = serializers.FloatField(required=False, min_value=33.0, max_value=42.0)


class VitalsMonitoringSerializer(FormSerializer):
    observations = VitalsObservationSerializer(many=True, required=False)
    vitalsNotRecordedReason = optional_text()


class MedicationItemSerializer(FormSerializer):
    name = serializers.CharField(min_length=2)
    dose = serializers.CharField(min_length=1)
    route = serializers.CharField(min_length=1)
    time = serializers.CharField(validators=[hhmm])


class FluidItemSerializer(FormSerializer):
    type = serializers.CharField(min_length=2)
    volumeMl = serializers.IntegerField(min_value=0, max_value=10000)


class DrainItemSerializer(FormSerializer):
    type = serializers.CharField(min_length=2)
    site = serializers.CharField(min_length=2)
    outputMl = serializers.IntegerField(min_value=0, max_value=5000)


class InterventionsSerializer(FormSerializer):
    medications = MedicationItemSerializer(many=True, required=False)
    fluids = FluidItemSerializer(many=True, required=False)
    urineOutputMl = serializers.IntegerField(required=False, min_value=0)
    drains = DrainItemSerializer(many=True, required=False)
    dressingStatus = optional_text()
    interventionNotes = optional_text()


class DischargeCriteriaSerializer(FormSerializer):
    vitalsStable = serializers.BooleanField()
    painControlled = serializers.BooleanField()
    nauseaControlled = serializers.BooleanField()
    bleedingControlled = serializers.BooleanField()
    airwayStable = serializers.BooleanField()


class DischargeReadinessSerializer(FormSerializer):
    DECISIONS = ['DISCHARGE_TO_WARD', 'DISCHARGE_HOME', 'HOLD']

    dischargeCriteria = DischargeCriteriaSerializer()
    dischargeDecision = serializers.ChoiceField(choices=DECISIONS)
    nurseHandoverNotes = optional_text()
    dischargeTime = optional_time()
    finalizedByName = optional_text()


class RecoveryRecordSerializer(FormSerializer):
    arrivalBaseline = ArrivalBaselineSerializer()
    vitalsMonitoring = VitalsMonitoringSerializer()
    interventions = InterventionsSerializer(required=False)
    dischargeReadiness = DischargeReadinessSerializer()

    def validate(self, attrs):
        if not self.finalizing:
            return attrs
        errors = {}
        vm = attrs.get('vitalsMonitoring') or {}
        if not vm.get('observations') and len((vm.get('vitalsNotRecordedReason') or '').strip()) < 5:
            errors['vitalsMonitoring'] = {'observations': [
                'At least one vitals observation is required, or provide a reason why vitals '
                'were not recorded (min 5 chars)']}
        dr = attrs.get('dischargeReadiness') or {}
        criteria = dr.get('dischargeCriteria') or {}
        dr_errors = {}
        if dr.get('dischargeDecision') != 'HOLD' and not all(criteria.get(k) for k in DischargeCriteriaSerializer().fields):
            dr_errors['dischargeCriteria'] = ['All discharge criteria must be met when discharge decision is not HOLD']
        if len((dr.get('finalizedByName') or '').strip()) < 2:
            dr_errors['finalizedByName'] = ['Nurse name is required for finalization']
        if dr_errors:
            errors['dischargeReadiness'] = dr_errors
        if errors:
            raise serializers.ValidationError(errors)
        return attrs


# ---------------------------------------------------------------------------
# Surgeon operative note (SURGEON_OPERATIVE_NOTE v1)
# ---------------------------------------------------------------------------
class AssistantSerializer(FormSerializer):
    userId = optional_text()
    name = required_name('Assistant name is required')
    role = optional_text()


class OperativeHeaderSerializer(FormSerializer):
    diagnosisPreOp = serializers.CharField(min_length=3, error_messages={'min_length': 'Pre-operative diagnosis is required'})
    diagnosisPostOp = optional_text()
    procedurePerformed = serializers.CharField(min_length=3, error_messages={'min_length': 'Procedure performed is required'})
    side = optional_text()
    surgeonId = serializers.CharField(min_length=1)
    surgeonName = optional_text()
    assistants = AssistantSerializer(many=True, required=False)
    anesthesiologistId = optional_text()
    anesthesiologistName = optional_text()
    anesthesiaType = serializers.ChoiceField(choices=ANESTHESIA_TYPES)
    incisionTime = optional_time()
    closureTime = optional_time()


class FindingsAndStepsSerializer(FormSerializer):
    findings = optional_text()
    operativeSteps = serializers.CharField(
        min_length=20,
        error_messages={'min_length': 'Operative steps description must be at least 20 characters'},
    )

    def validate_operativeSteps(self, value):
        if MEANINGLESS_CONTENT.match(value.strip()):
            raise serializers.ValidationError('Operative steps must contain meaningful clinical content')
        return value


class IntraOpMetricsSerializer(FormSerializer):
    estimatedBloodLossMl = serializers.IntegerField(min_value=0, max_value=20000)
    fluidsGivenMl = serializers.IntegerField(required=False, min_value=0, max_value=50000)
    urineOutputMl = serializers.IntegerField(required=False, min_value=0, max_value=10000)
    tourniquetTimeMinutes = serializers.IntegerField(required=False, min_value=0, max_value=300)


class OperativeImplantSerializer(FormSerializer):
    name = required_name('Implant name is required')
    manufacturer = optional_text()
    lotNumber = optional_text()
    serialNumber = optional_text()
    expiryDate = optional_text()


class OperativeImplantsSerializer(FormSerializer):
    implantsUsed = OperativeImplantSerializer(many=True, required=False)


class OperativeSpecimenSerializer(FormSerializer):
    type = required_name('Specimen type is required')
    site = required_name('Specimen site is required')
    destinationLab = required_name('Destination lab is required')


class OperativeSpecimensSerializer(FormSerializer):
    specimens = OperativeSpecimenSerializer(many=True, required=False)


class ComplicationsSerializer(FormSerializer):
    complicationsOccurred = serializers.BooleanField()
    complicationsDetails = optional_text()

    def validate(self, attrs):
        if self.finalizing and attrs.get('complicationsOccurred') and len((attrs.get('complicationsDetails') or '').strip()) < 5:
            raise serializers.ValidationError({'complicationsDetails': [
                'Complications details are required when complications occurred (min 5 chars)']})
        return attrs


class CountsConfirmationSerializer(FormSerializer):
    countsCorrect = serializers.BooleanField()
    countsExplanation = optional_text()

    def validate(self, attrs):
        if not self.finalizing:
            return attrs
        if attrs.get('countsCorrect') and self.context.get('nurse_count_discrepancy'):
            raise serializers.ValidationError({'countsCorrect': [
                'Nurse intra-op record reports a count discrepancy. Counts cannot be marked correct.']})
        if not attrs.get('countsCorrect') and len((attrs.get('countsExplanation') or '').strip()) < 5:
            raise serializers.ValidationError({'countsExplanation': [
                'Explanation required when counts are not correct (min 5 chars)']})
        return attrs


class PostOpPlanSerializer(FormSerializer):
    DESTINATIONS = ['WARD', 'HOME', 'ICU', 'HDU', 'OTHER']

    dressingInstructions = optional_text()
    drainCare = optional_text()
    meds = optional_text()
    followUpPlan = optional_text()
    dischargeDestination = serializers.ChoiceField(choices=DESTINATIONS, required=False)


class OperativeNoteSerializer(FormSerializer):
    header = OperativeHeaderSerializer()
    findingsAndSteps = FindingsAndStepsSerializer()
    intraOpMetrics = IntraOpMetricsSerializer()
    implantsUsed = OperativeImplantsSerializer(required=False)
    specimens = OperativeSpecimensSerializer(required=False)
    complications = ComplicationsSerializer()
    countsConfirmation = CountsConfirmationSerializer()
    postOpPlan = PostOpPlanSerializer(required=False)


def flatten_errors(errors, prefix: str = '') -> list[str]:
    """Turn nested serializer errors into ``"section.field: message"`` lines."""
    items: list[str] = []
    if isinstance(errors, dict):
        for key, value in errors.items():
            path = key if key != 'non_field_errors' else ''
            items.extend(flatten_errors(value, f'{prefix}.{path}'.strip('.') if path else prefix))
    elif isinstance(errors, list):
        for index, value in enumerate(errors):
            if isinstance(value, (dict, list)):
                items.extend(flatten_errors(value, f'{prefix}.{index}'.strip('.')))
            else:
                items.append(f'{prefix}: {value}' if prefix else str(value))
    else:
        items.append(f'{prefix}: {errors}' if prefix else str(errors))
    return items
