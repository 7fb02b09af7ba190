"""
Post-processing of Classifier Output

Converts raw logits into probabilities and maps the top class and its
confidence to a risk verdict with findings, recommendations and next steps.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Sequence, Tuple

import numpy as np

from .errors import InferenceRuntimeError, ShapeMismatchError


class RiskLevel(str, Enum):
    LOW = 'low'
    MODERATE = 'moderate'
    HIGH = 'high'


@dataclass(frozen=True)
class Verdict:
    """
    Final, immutable result of one pipeline run.

    Attributes:
        risk_level (RiskLevel): low / moderate / high
        confidence (float): Top-class probability in percent, 2 decimals
        predicted_class (str): Name of the top class
        findings (tuple): Ordered findings
        recommendations (tuple): Ordered recommendations
        next_steps (tuple): Ordered next steps
        probabilities (tuple): (class_name, percent) for every class
    """
    risk_level: RiskLevel
    confidence: float
    predicted_class: str
    findings: Tuple[str, ...] = ()
    recommendations: Tuple[str, ...] = ()
    next_steps: Tuple[str, ...] = ()
    probabilities: Tuple[Tuple[str, float], ...] = field(default=())

    def to_dict(self) -> Dict:
        return {
            'risk_level': self.risk_level.value,
            'confidence': self.confidence,
            'predicted_class': self.predicted_class,
            'findings': list(self.findings),
            'recommendations': list(self.recommendations),
            'next_steps': list(self.next_steps),
            'probabilities': dict(self.probabilities),
        }


@dataclass(frozen=True)
class RiskGuidance:
    findings: Tuple[str, ...]
    recommendations: Tuple[str, ...]
    next_steps: Tuple[str, ...]


HIGH_RISK_GUIDANCE = RiskGuidance(
    findings=(
        'Lesion characteristics consistent with a malignant pattern',
        'Irregular pigmentation detected',
        'Asymmetrical border characteristics',
        'Color variation noted in central region',
    ),
    recommendations=(
        'Schedule consultation with a dermatologist as soon as possible, ideally within 1 week',
        'Do not attempt to remove or treat the lesion yourself',
        'Avoid sun exposure on the affected area',
        'Use broad-spectrum sunscreen daily',
    ),
    next_steps=(
        'Book an urgent appointment with a certified dermatologist',
        'Bring this analysis and any previous photos to the appointment',
        'Document any symptoms such as itching, bleeding or rapid growth',
        'Ask about a professional biopsy',
    ),
)

LOW_RISK_GUIDANCE = RiskGuidance(
    findings=(
        'Lesion characteristics consistent with a benign pattern',
        'Regular, symmetrical border',
        'Uniform pigmentation',
        'Size within normal parameters',
    ),
    recommendations=(
        'Monitor for changes in size, color, or texture',
        'Perform monthly skin self-examinations',
        'Use broad-spectrum sunscreen daily',
        'Mention this lesion at your next routine check-up',
    ),
    next_steps=(
        'Take additional photos for comparison in 4-6 weeks',
        'Document any symptoms or changes',
        'Book an appointment with a dermatologist if the lesion changes',
    ),
)

REVIEW_GUIDANCE = RiskGuidance(
    findings=(
        'Lesion characteristics require professional review',
    ),
    recommendations=(
        'Schedule consultation with a dermatologist within 2-4 weeks',
        'Monitor for changes in size, color, or texture',
    ),
    next_steps=(
        'Book appointment with certified dermatologist',
        'Take additional photos for comparison',
        'Document any symptoms or changes',
    ),
)

LOW_CONFIDENCE_FINDING = 'Model confidence is low ({confidence:.2f}%), the result is inconclusive'
SECOND_OPINION_RECOMMENDATION = 'Seek a second opinion from a dermatologist to confirm this result'


def softmax(logits):
    """
    Numerically stable softmax.

    Args:
        logits (Sequence[float]): Finite raw scores

    Returns:
        np.ndarray: float64 probabilities summing to 1

    Raises:
        InferenceRuntimeError: Empty or non-finite logits
    """
    values = np.asarray(logits, dtype=np.float64).reshape(-1)
    if values.size == 0:
        raise InferenceRuntimeError('Model returned no scores')
    if not np.isfinite(values).all():
        raise InferenceRuntimeError('Model returned non-finite scores')

    exps = np.exp(values - values.max())
    return exps / exps.sum()


class Postprocessor:
    """
    Maps classifier output to a risk verdict.

    Policy:
        - malignant class -> high risk
        - benign class -> low risk
        - any other class -> moderate risk
        - confidence below ``confidence_threshold`` -> moderate risk, whatever the class
    """

    def __init__(self, confidence_threshold=70.0, malignant_classes=('malignant',),
                 benign_classes=('benign',)):
        self.confidence_threshold = confidence_threshold
        self.malignant_classes = frozenset(name.lower() for name in malignant_classes)
        self.benign_classes = frozenset(name.lower() for name in benign_classes)

    def classify(self, logits, class_names: Sequence[str]) -> Verdict:
        """
        Build the verdict for one set of logits.

        Args:
            logits (Sequence[float]): Raw scores, same order as ``class_names``
            class_names (Sequence[str]): Ordered class names

        Returns:
            Verdict

        Raises:
            ShapeMismatchError: Number of scores differs from number of classes
            InferenceRuntimeError: Non-finite scores
        """
        if len(class_names) != np.asarray(logits).size:
            raise ShapeMismatchError(
                f'Got {np.asarray(logits).size} scores for {len(class_names)} classes'
            )

        probabilities = softmax(logits)
        top_index = int(np.argmax(probabilities))
        predicted_class = class_names[top_index]
        confidence = round(float(probabilities[top_index]) * 100, 2)

        risk_level, guidance = self._risk_for_class(predicted_class)
        findings = list(guidance.findings)
        recommendations = list(guidance.recommendations)

        if confidence < self.confidence_threshold:
            risk_level = RiskLevel.MODERATE
            findings.append(LOW_CONFIDENCE_FINDING.format(confidence=confidence))
            recommendations.append(SECOND_OPINION_RECOMMENDATION)

        return Verdict(
            risk_level=risk_level,
            confidence=confidence,
            predicted_class=predicted_class,
            findings=tuple(findings),
            recommendations=tuple(recommendations),
            next_steps=guidance.next_steps,
            probabilities=tuple(
                (name, round(float(p) * 100, 2)) for name, p in zip(class_names, probabilities)
            ),
        )

    def _risk_for_class(self, class_name):
        name = class_name.lower()
        if name in self.malignant_classes:
            return RiskLevel.HIGH, HIGH_RISK_GUIDANCE
        if name in self.benign_classes:
            return RiskLevel.LOW, LOW_RISK_GUIDANCE
        return RiskLevel.MODERATE, REVIEW_GUIDANCE
