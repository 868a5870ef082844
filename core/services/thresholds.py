"""
Declarative threshold table for health variables.

Thresholds are data: each rule names the variable patterns it applies to and
the numeric bands that make a reading critical (red) or concerning (yellow).
Bounds are exclusive, so a glucose of exactly 300 is yellow, not red.
"""

import re

from pydantic import BaseModel, ConfigDict, Field

from core.domain.models import Severity

_NAME_NOISE = re.compile(r"[\s_\-./()]+")
_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")
_TOKEN_SPLIT = re.compile(r"[^a-z0-9]+")

# Patterns this short only match a whole word ("bp" in "BP (mmHg)", not in "bpm")
_WORD_MATCH_MAX_LEN = 3


def normalise_variable_name(name: str) -> str:
    """Lowercase and strip separators: "Heart Rate" -> "heartrate"."""
    return _NAME_NOISE.sub("", name).lower()


def variable_name_words(name: str) -> frozenset[str]:
    """Split on separators and camelCase: "pulseOx" -> {"pulse", "ox"}."""
    spaced = _CAMEL_BOUNDARY.sub(" ", name).lower()
    return frozenset(word for word in _TOKEN_SPLIT.split(spaced) if word)


class ThresholdRule(BaseModel):
    """Numeric bands for one kind of health variable."""

    model_config = ConfigDict(frozen=True)

    label: str
    patterns: tuple[str, ...] = Field(min_length=1)
    red_above: float | None = None
    red_below: float | None = None
    yellow_above: float | None = None
    yellow_below: float | None = None

    def matches(self, variable_name: str) -> bool:
        name = normalise_variable_name(variable_name)
        words = variable_name_words(variable_name)
        for pattern in self.patterns:
            if len(pattern) <= _WORD_MATCH_MAX_LEN:
                if pattern in words:
                    return True
            elif pattern in name:
                return True
        return False

    def evaluate(self, value: float) -> Severity | None:
        """Severity band for a reading, or None when it is within range."""
        if _outside(value, self.red_above, self.red_below):
            return Severity.RED
        if _outside(value, self.yellow_above, self.yellow_below):
            return Severity.YELLOW
        return None


def _outside(value: float, above: float | None, below: float | None) -> bool:
    return (above is not None and value > above) or (below is not None and value < below)


DEFAULT_THRESHOLD_RULES: tuple[ThresholdRule, ...] = (
    ThresholdRule(
        label="glucose",
        patterns=("glucose", "bloodsugar"),
        red_above=300,
        yellow_above=180,
        yellow_below=70,
    ),
    ThresholdRule(
        label="blood pressure",
        patterns=("bloodpressure", "systolic", "bp"),
        red_above=180,
        yellow_above=140,
        yellow_below=90,
    ),
    # Oxygen before heart rate: "pulseOx" is a saturation reading, not a pulse
    ThresholdRule(
        label="oxygen saturation",
        patterns=("oxygen", "spo2", "o2sat", "saturation", "pulseox"),
        red_below=85,
        yellow_below=92,
    ),
    ThresholdRule(
        label="heart rate",
        patterns=("heartrate", "pulse", "hr"),
        red_above=150,
        red_below=40,
        yellow_above=100,
        yellow_below=50,
    ),
    ThresholdRule(
        label="temperature",
        patterns=("temperature", "temp"),
        red_above=103,
        yellow_above=99.5,
        yellow_below=97,
    ),
)


class ThresholdTable:
    """Ordered rule lookup; the first rule matching a variable name wins."""

    def __init__(self, rules: tuple[ThresholdRule, ...] = DEFAULT_THRESHOLD_RULES) -> None:
        self.rules = rules

    def rule_for(self, variable_name: str) -> ThresholdRule | None:
        for rule in self.rules:
            if rule.matches(variable_name):
                return rule
        return None

    def evaluate(self, variable_name: str, value: float) -> Severity | None:
        rule = self.rule_for(variable_name)
        return rule.evaluate(value) if rule else None
