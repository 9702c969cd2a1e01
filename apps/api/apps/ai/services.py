"""
AI text/vision services.

Every call goes through ``_chat``, which times the request, records an
AIUsageLog row and converts provider failures into AIServiceError.
"""
import json
import time
from typing import Iterable, List, Optional

from django.conf import settings
from django.core.exceptions import ValidationError
from openai import OpenAIError

from apps.ai.client import get_client
from apps.ai.exceptions import AIServiceError
from apps.ai.images import image_data_url
from apps.ai.models import AIActionChoices, AIUsageLog
from apps.ai.schemas import DiagnosisResult, SafetyCheckResult
from apps.clinical.services import patient_history
from apps.core.observability import get_sanitized_logger, metrics

logger = get_sanitized_logger(__name__)


DIAGNOSIS_SYSTEM_PROMPT = """You are a senior clinical decision-support assistant for a general practice clinic.
You help a licensed doctor; you never address the patient directly.
Reply with ONE JSON object and nothing else, using exactly these keys:
{
  "diagnosis": string,
  "confidence": integer 0-100,
  "reasoning": string,
  "simplifiedExplanation": string,
  "labAnalysis": string (empty if no lab images or results were given),
  "safetyWarnings": [string],
  "suggestedMedications": [{"name": string, "dosage": string, "reason": string}],
  "treatmentPlan": [string],
  "dietaryAdvice": {"recommended": [string], "avoid": [string]},
  "traditionalMedicine": {"temperament": string, "recommendedFoods": [string], "forbiddenFoods": [string],
                          "herbalRemedies": [string], "lifestyleTips": [string]},
  "sources": [{"title": string, "uri": string}]
}
Respect the patient's allergies and medical history when suggesting medications.
When reference book excerpts are provided, prefer them over general knowledge and cite them in "sources"."""

OCR_SYSTEM_PROMPT = """Transcribe all legible text in the image exactly as written.
Reply with the plain text only, no commentary."""

LAB_PARSE_SYSTEM_PROMPT = """You read photographed laboratory reports.
Reply with ONE JSON object: {"rows": [{"testName": string, "result": string, "unit": string,
"normalRange": string, "flag": "N" | "H" | "L" | "A"}]}.
Use H for above range, L for below range, A for abnormal non-numeric results, N otherwise.
Include every test row on the report and nothing else."""

SAFETY_SYSTEM_PROMPT = """You are a clinical pharmacist reviewing a prescription before it is printed.
Check drug-drug interactions between the listed medications and risks for this specific patient
(allergies, age, medical history).
Reply with ONE JSON object: {"interactions": [{"type": "DRUG-DRUG" | "PATIENT-RISK",
"severity": "HIGH" | "MODERATE", "description": string}]}. Use an empty list when there is nothing to report."""

PRESCRIPTION_SCAN_SYSTEM_PROMPT = """You digitize photographed handwritten prescriptions.
Copy drug names, doses and notation exactly as written: no spelling correction, no brand or generic swaps,
no expansion of abbreviations, nothing that is not on the paper. Only the instructions may be rewritten
as plain-language directions for the patient (e.g. "BID" becomes "twice a day").
Reply with ONE JSON object: {"items": [{"drug": string, "dosage": string, "instruction": string}],
"diagnosis": string, "vitals": {"bloodPressure": string, "heartRate": string, "temperature": string,
"oxygenLevel": string, "weight": string, "glucose": string}}. Use empty strings for anything not written."""

TIMELINE_SYSTEM_PROMPT = """You review a patient's record for the treating doctor.
Compare the current visit with the earlier visits and prescriptions and describe the trends:
recurring complaints, changes in vitals, treatments that were tried and whether the problem came back.
Reply with a brief plain-text report, no JSON."""


def _user_id(user):
    return getattr(user, 'pk', None) if user is not None and getattr(user, 'is_authenticated', False) else None


def _chat(action, model, messages, user=None, visit=None, json_mode=True, **kwargs):
    """
    Send one chat completion request. Returns ``(text, message)``.

    Raises:
        AIServiceError: provider error, empty reply, or missing configuration
    """
    started = time.monotonic()
    log = AIUsageLog(
        user_id=_user_id(user),
        visit_id=getattr(visit, 'pk', None),
        action=action,
        model=model,
    )

    request = {'model': model, 'messages': messages, **kwargs}
    if json_mode:
        request['response_format'] = {'type': 'json_object'}

    try:
        response = get_client().chat.completions.create(**request)
        message = response.choices[0].message
        text = (message.content or '').strip()
        usage = getattr(response, 'usage', None)
        if usage is not None:
            log.prompt_tokens = usage.prompt_tokens
            log.completion_tokens = usage.completion_tokens
        if not text:
            raise AIServiceError('AI service returned an empty reply', action=action)
    except (OpenAIError, AIServiceError) as e:
        log.succeeded = False
        log.error = str(e)[:2000]
        log.duration_ms = int((time.monotonic() - started) * 1000)
        log.save()
        metrics.ai_requests_total.labels(action=action, result='failure').inc()
        logger.error(
            'AI request failed',
            extra={'event': 'ai_request_failed', 'action': action, 'model': model, 'error': str(e)}
        )
        if isinstance(e, AIServiceError):
            raise
        raise AIServiceError(f'AI service request failed: {e}', action=action) from e

    elapsed = time.monotonic() - started
    log.duration_ms = int(elapsed * 1000)
    log.save()
    metrics.ai_requests_total.labels(action=action, result='success').inc()
    metrics.ai_request_duration_seconds.labels(action=action).observe(elapsed)
    logger.info(
        'AI request completed',
        extra={
            'event': 'ai_request_completed',
            'action': action,
            'model': model,
            'duration_ms': log.duration_ms,
            'prompt_tokens': log.prompt_tokens,
            'completion_tokens': log.completion_tokens,
        }
    )
    return text, message


def parse_json_reply(text, action=None):
    """
    Decode a JSON object from a model reply, tolerating ```json fences.

    Raises:
        AIServiceError: the reply is not a JSON object
    """
    cleaned = text.strip()
    if cleaned.startswith('```'):
        cleaned = cleaned.strip('`')
        if cleaned.lower().startswith('json'):
            cleaned = cleaned[4:]
        cleaned = cleaned.strip()
    if not cleaned.startswith('{'):
        start, end = cleaned.find('{'), cleaned.rfind('}')
        if start != -1 and end > start:
            cleaned = cleaned[start:end + 1]
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise AIServiceError(f'AI service returned malformed JSON: {e}', action=action) from e
    if not isinstance(data, dict):
        raise AIServiceError('AI service returned JSON that is not an object', action=action)
    return data


def _citations(message) -> List[dict]:
    """url_citation annotations attached by web-search models."""
    sources = []
    for annotation in getattr(message, 'annotations', None) or []:
        citation = getattr(annotation, 'url_citation', None)
        if getattr(annotation, 'type', None) == 'url_citation' and citation is not None:
            sources.append({'title': citation.title or citation.url, 'uri': citation.url})
    return sources


def _patient_block(patient):
    return (
        f"Age: {patient.age if patient.age is not None else 'unknown'}\n"
        f"Gender: {patient.gender or 'unknown'}\n"
        f"Medical history: {patient.medical_history or 'none recorded'}\n"
        f"Allergies: {patient.allergies or 'none known'}"
    )


def _vitals_block(vitals):
    readings = [f"{key}: {value}" for key, value in (vitals or {}).items() if value not in (None, '')]
    return ', '.join(readings) if readings else 'not recorded'


def analyze_patient(
    patient,
    symptoms: str,
    vitals: Optional[dict] = None,
    images: Iterable = (),
    reference_texts: Iterable = (),
    use_web: bool = False,
    user=None,
    visit=None,
) -> DiagnosisResult:
    """
    Ask the model for a structured diagnosis.

    Args:
        patient: Patient instance (name is never sent)
        symptoms: free-text complaint, possibly with appended document text
        vitals: dict of optional readings
        images: uploaded files (lab photos, skin photos...); compressed before sending
        reference_texts: (title, text) pairs from the reference library
        use_web: use the web-search model and collect its citations as sources

    Raises:
        AIServiceError
    """
    prompt = [
        "PATIENT",
        _patient_block(patient),
        "",
        f"SYMPTOMS\n{symptoms}",
        "",
        f"VITALS\n{_vitals_block(vitals)}",
    ]
    for title, text in reference_texts:
        prompt.extend(["", f"REFERENCE BOOK: {title}", text])

    content = [{'type': 'text', 'text': '\n'.join(prompt)}]
    for image in images:
        content.append({'type': 'image_url', 'image_url': {'url': image_data_url(image)}})

    messages = [
        {'role': 'system', 'content': DIAGNOSIS_SYSTEM_PROMPT},
        {'role': 'user', 'content': content},
    ]

    if use_web:
        # Search models do not accept response_format
        text, message = _chat(
            AIActionChoices.DIAGNOSIS, settings.AI_SEARCH_MODEL, messages,
            user=user, visit=visit, json_mode=False, web_search_options={},
        )
    else:
        text, message = _chat(
            AIActionChoices.DIAGNOSIS, settings.AI_DIAGNOSIS_MODEL, messages,
            user=user, visit=visit,
        )

    data = parse_json_reply(text, action=AIActionChoices.DIAGNOSIS)
    try:
        result = DiagnosisResult.from_dict(data)
    except ValueError as e:
        raise AIServiceError(str(e), action=AIActionChoices.DIAGNOSIS) from e

    known = {s['uri'] for s in result.sources}
    result.sources.extend(s for s in _citations(message) if s['uri'] not in known)
    return result


def extract_text(image, user=None) -> str:
    """OCR a single image (scanned letter, old prescription, report)."""
    messages = [
        {'role': 'system', 'content': OCR_SYSTEM_PROMPT},
        {'role': 'user', 'content': [
            {'type': 'image_url', 'image_url': {'url': image_data_url(image)}},
        ]},
    ]
    text, _message = _chat(
        AIActionChoices.OCR, settings.AI_VISION_MODEL, messages, user=user, json_mode=False,
    )
    return text


def parse_lab_report(image, user=None, visit=None) -> List[dict]:
    """
    Read a photographed lab report into result rows.

    Returns a list of {test_name, result, unit, normal_range, flag}; the lab
    technician reviews and edits them before completing the request.
    """
    messages = [
        {'role': 'system', 'content': LAB_PARSE_SYSTEM_PROMPT},
        {'role': 'user', 'content': [
            {'type': 'image_url', 'image_url': {'url': image_data_url(image)}},
        ]},
    ]
    text, _message = _chat(
        AIActionChoices.LAB_PARSE, settings.AI_VISION_MODEL, messages, user=user, visit=visit,
    )
    data = parse_json_reply(text, action=AIActionChoices.LAB_PARSE)

    rows = []
    for row in data.get('rows') or []:
        if not isinstance(row, dict):
            continue
        rows.append({
            'test_name': str(row.get('testName') or row.get('test_name') or '').strip(),
            'result': str(row.get('result') or ''),
            'unit': str(row.get('unit') or ''),
            'normal_range': str(row.get('normalRange') or row.get('normal_range') or ''),
            'flag': str(row.get('flag') or 'N').upper(),
        })
    return rows


def check_prescription_safety(patient, medications, user=None) -> SafetyCheckResult:
    """Screen a medication list for interactions and patient-specific risks."""
    lines = [
        f"- {m.get('name')} {m.get('dosage') or ''}".rstrip()
        for m in medications if str(m.get('name') or '').strip()
    ]
    if not lines:
        return SafetyCheckResult()

    messages = [
        {'role': 'system', 'content': SAFETY_SYSTEM_PROMPT},
        {'role': 'user', 'content': f"PATIENT\n{_patient_block(patient)}\n\nMEDICATIONS\n" + '\n'.join(lines)},
    ]
    text, _message = _chat(
        AIActionChoices.SAFETY_CHECK, settings.AI_DIAGNOSIS_MODEL, messages, user=user,
    )
    return SafetyCheckResult.from_dict(parse_json_reply(text, action=AIActionChoices.SAFETY_CHECK))


SCANNED_VITAL_KEYS = ('bloodPressure', 'heartRate', 'temperature', 'oxygenLevel', 'weight', 'glucose')

# Keys some models use for the same readings
_VITAL_ALIASES = {'spO2': 'oxygenLevel', 'bloodSugar': 'glucose', 'pulse': 'heartRate'}


def digitize_prescription(image, user=None) -> dict:
    """
    Read a photographed handwritten prescription.

    Returns ``{'medications': [{name, dosage, instructions}], 'diagnosis', 'vitals'}``
    with drug names exactly as written. Nothing is saved; the doctor reviews
    the draft before creating a prescription from it.
    """
    messages = [
        {'role': 'system', 'content': PRESCRIPTION_SCAN_SYSTEM_PROMPT},
        {'role': 'user', 'content': [
            {'type': 'image_url', 'image_url': {'url': image_data_url(image)}},
        ]},
    ]
    text, _message = _chat(
        AIActionChoices.PRESCRIPTION_SCAN, settings.AI_VISION_MODEL, messages, user=user,
    )
    data = parse_json_reply(text, action=AIActionChoices.PRESCRIPTION_SCAN)

    medications = []
    for item in data.get('items') or data.get('medications') or []:
        if not isinstance(item, dict):
            continue
        name = str(item.get('drug') or item.get('name') or '').strip()
        if not name:
            continue
        medications.append({
            'name': name,
            'dosage': str(item.get('dosage') or '').strip(),
            'instructions': str(item.get('instruction') or item.get('instructions') or '').strip(),
        })

    vitals = {}
    raw_vitals = data.get('vitals') if isinstance(data.get('vitals'), dict) else {}
    for key, value in raw_vitals.items():
        key = _VITAL_ALIASES.get(key, key)
        if key in SCANNED_VITAL_KEYS and value not in (None, ''):
            vitals[key] = str(value).strip()

    return {
        'medications': medications,
        'diagnosis': str(data.get('diagnosis') or '').strip(),
        'vitals': vitals,
    }


def _visit_line(visit):
    diagnosis = getattr(visit, 'diagnosis', None)
    return (
        f"{visit.visit_date:%Y-%m-%d} [{visit.status}] "
        f"symptoms: {visit.symptoms or 'none recorded'}; "
        f"vitals: {_vitals_block(visit.vitals)}; "
        f"diagnosis: {(diagnosis.final_diagnosis if diagnosis else '') or 'none'}"
    )


def _prescription_line(prescription):
    drugs = ', '.join(
        f"{m.get('name')} {m.get('dosage') or ''}".rstrip() for m in prescription.medications or []
    )
    return (
        f"{prescription.created_at:%Y-%m-%d} diagnosis: {prescription.diagnosis or 'none'}; "
        f"medications: {drugs or 'none'}"
    )


def analyze_timeline(patient, visit=None, user=None) -> str:
    """
    Compare a visit with the patient's earlier record and report the trends.

    Args:
        patient: Patient instance (name is never sent)
        visit: the visit under review; defaults to the patient's latest visit

    Raises:
        ValidationError: the patient has no visit, or nothing earlier to compare with
        AIServiceError
    """
    visits, prescriptions = patient_history(patient)
    visits = list(visits)
    if visit is None:
        if not visits:
            raise ValidationError('Patient has no visits to analyze')
        visit = visits[0]
    elif visit.patient_id != patient.pk:
        raise ValidationError('Visit does not belong to this patient')

    earlier_visits = [v for v in visits if v.pk != visit.pk and v.created_at <= visit.created_at]
    earlier_prescriptions = [
        p for p in prescriptions if p.visit_id != visit.pk and p.created_at <= visit.created_at
    ]
    if not earlier_visits and not earlier_prescriptions:
        raise ValidationError('Patient has no earlier visits or prescriptions to compare with')

    prompt = [
        "PATIENT",
        _patient_block(patient),
        "",
        f"CURRENT VISIT\n{_visit_line(visit)}",
        "",
        "EARLIER VISITS",
        *([_visit_line(v) for v in earlier_visits] or ['none']),
        "",
        "EARLIER PRESCRIPTIONS",
        *([_prescription_line(p) for p in earlier_prescriptions] or ['none']),
    ]
    messages = [
        {'role': 'system', 'content': TIMELINE_SYSTEM_PROMPT},
        {'role': 'user', 'content': '\n'.join(prompt)},
    ]
    text, _message = _chat(
        AIActionChoices.TIMELINE, settings.AI_DIAGNOSIS_MODEL, messages,
        user=user, visit=visit, json_mode=False,
    )
    return text
