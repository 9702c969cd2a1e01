"""
Structured results returned by the AI service.

The model replies in JSON with camelCase keys; ``from_dict`` accepts either
camelCase or snake_case and ``to_dict`` always writes camelCase, which is the
shape stored in ``Diagnosis.ai_analysis`` and returned by the API.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


def _pick(data, camel, snake, default=None):
    if camel in data:
        return data[camel]
    return data.get(snake, default)


def _str_list(value) -> List[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [value]
    return [str(v) for v in value if v is not None and str(v).strip()]


def _clamp_confidence(value) -> int:
    try:
        number = int(round(float(value)))
    except (TypeError, ValueError):
        return 0
    return max(0, min(100, number))


@dataclass
class SuggestedMedication:
    name: str
    dosage: str = ''
    reason: str = ''

    def to_dict(self):
        return {'name': self.name, 'dosage': self.dosage, 'reason': self.reason}


@dataclass
class TraditionalMedicine:
    temperament: str = ''
    recommended_foods: List[str] = field(default_factory=list)
    forbidden_foods: List[str] = field(default_factory=list)
    herbal_remedies: List[str] = field(default_factory=list)
    lifestyle_tips: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TraditionalMedicine':
        return cls(
            temperament=str(data.get('temperament') or ''),
            recommended_foods=_str_list(_pick(data, 'recommendedFoods', 'recommended_foods')),
            forbidden_foods=_str_list(_pick(data, 'forbiddenFoods', 'forbidden_foods')),
            herbal_remedies=_str_list(_pick(data, 'herbalRemedies', 'herbal_remedies')),
            lifestyle_tips=_str_list(_pick(data, 'lifestyleTips', 'lifestyle_tips')),
        )

    def to_dict(self):
        return {
            'temperament': self.temperament,
            'recommendedFoods': self.recommended_foods,
            'forbiddenFoods': self.forbidden_foods,
            'herbalRemedies': self.herbal_remedies,
            'lifestyleTips': self.lifestyle_tips,
        }


@dataclass
class DiagnosisResult:
    diagnosis: str
    confidence: int = 0
    reasoning: str = ''
    simplified_explanation: str = ''
    lab_analysis: str = ''
    safety_warnings: List[str] = field(default_factory=list)
    suggested_medications: List[SuggestedMedication] = field(default_factory=list)
    treatment_plan: List[str] = field(default_factory=list)
    dietary_recommended: List[str] = field(default_factory=list)
    dietary_avoid: List[str] = field(default_factory=list)
    traditional_medicine: Optional[TraditionalMedicine] = None
    sources: List[Dict[str, str]] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DiagnosisResult':
        """
        Build a result from a decoded model reply or a stored ``ai_analysis``.

        Raises:
            ValueError: ``data`` is not a dict or has no diagnosis text
        """
        if not isinstance(data, dict):
            raise ValueError('Diagnosis result must be a JSON object')

        diagnosis = str(data.get('diagnosis') or '').strip()
        if not diagnosis:
            raise ValueError('Diagnosis result has no diagnosis text')

        medications = []
        for item in _pick(data, 'suggestedMedications', 'suggested_medications') or []:
            if isinstance(item, dict) and str(item.get('name') or '').strip():
                medications.append(SuggestedMedication(
                    name=str(item['name']).strip(),
                    dosage=str(item.get('dosage') or ''),
                    reason=str(item.get('reason') or ''),
                ))

        dietary = _pick(data, 'dietaryAdvice', 'dietary_advice') or {}
        traditional = _pick(data, 'traditionalMedicine', 'traditional_medicine')

        sources = []
        for source in data.get('sources') or []:
            if isinstance(source, dict) and source.get('uri'):
                sources.append({'title': str(source.get('title') or source['uri']), 'uri': str(source['uri'])})

        return cls(
            diagnosis=diagnosis,
            confidence=_clamp_confidence(data.get('confidence')),
            reasoning=str(data.get('reasoning') or ''),
            simplified_explanation=str(_pick(data, 'simplifiedExplanation', 'simplified_explanation') or ''),
            lab_analysis=str(_pick(data, 'labAnalysis', 'lab_analysis') or ''),
            safety_warnings=_str_list(_pick(data, 'safetyWarnings', 'safety_warnings')),
            suggested_medications=medications,
            treatment_plan=_str_list(_pick(data, 'treatmentPlan', 'treatment_plan')),
            dietary_recommended=_str_list(dietary.get('recommended') if isinstance(dietary, dict) else None),
            dietary_avoid=_str_list(dietary.get('avoid') if isinstance(dietary, dict) else None),
            traditional_medicine=TraditionalMedicine.from_dict(traditional) if isinstance(traditional, dict) else None,
            sources=sources,
        )

    def to_dict(self):
        return {
            'diagnosis': self.diagnosis,
            'confidence': self.confidence,
            'reasoning': self.reasoning,
            'simplifiedExplanation': self.simplified_explanation,
            'labAnalysis': self.lab_analysis,
            'safetyWarnings': self.safety_warnings,
            'suggestedMedications': [m.to_dict() for m in self.suggested_medications],
            'treatmentPlan': self.treatment_plan,
            'dietaryAdvice': {
                'recommended': self.dietary_recommended,
                'avoid': self.dietary_avoid,
            },
            'traditionalMedicine': self.traditional_medicine.to_dict() if self.traditional_medicine else None,
            'sources': self.sources,
        }


@dataclass
class SafetyInteraction:
    type: str  # DRUG-DRUG | PATIENT-RISK
    severity: str  # HIGH | MODERATE
    description: str

    def to_dict(self):
        return {'type': self.type, 'severity': self.severity, 'description': self.description}


@dataclass
class SafetyCheckResult:
    interactions: List[SafetyInteraction] = field(default_factory=list)

    @property
    def has_issues(self) -> bool:
        return bool(self.interactions)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SafetyCheckResult':
        interactions = []
        for item in (data or {}).get('interactions') or []:
            if not isinstance(item, dict) or not item.get('description'):
                continue
            kind = str(item.get('type') or 'PATIENT-RISK').upper()
            severity = str(item.get('severity') or 'MODERATE').upper()
            interactions.append(SafetyInteraction(
                type=kind if kind in ('DRUG-DRUG', 'PATIENT-RISK') else 'PATIENT-RISK',
                severity=severity if severity in ('HIGH', 'MODERATE') else 'MODERATE',
                description=str(item['description']),
            ))
        return cls(interactions=interactions)

    def to_dict(self):
        return {
            'hasIssues': self.has_issues,
            'interactions': [i.to_dict() for i in self.interactions],
        }
