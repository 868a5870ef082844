"""
Core services for the application.

This package contains the triage pipeline: threshold rules, severity
classification, patient aggregation, message formatting and alert dispatch.
"""

from .aggregation import AlertSetBuilder, PatientAggregator
from .care_prompts import CarePromptConfig, CarePromptDrafter, DraftCache
from .classifier import SeverityClassifier
from .dispatcher import AlertDispatcher, DispatcherConfig, DispatchLedger
from .formatter import format_alert_message
from .thresholds import DEFAULT_THRESHOLD_RULES, ThresholdRule, ThresholdTable

__all__ = [
    "AlertDispatcher",
    "AlertSetBuilder",
    "CarePromptConfig",
    "CarePromptDrafter",
    "DEFAULT_THRESHOLD_RULES",
    "DispatchLedger",
    "DispatcherConfig",
    "DraftCache",
    "PatientAggregator",
    "SeverityClassifier",
    "ThresholdRule",
    "ThresholdTable",
    "format_alert_message",
]
