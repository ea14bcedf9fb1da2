from .math_tools import MathTools
from .rules import Rule, first_match, all_matches
from .progressive_overload import ProgressiveOverloadEngine
from .stagnation_detector import StagnationDetector, NotificationThrottle
from .rest_recovery import RestRecoveryEngine

__all__ = [
    "MathTools",
    "Rule",
    "first_match",
    "all_matches",
    "ProgressiveOverloadEngine",
    "StagnationDetector",
    "NotificationThrottle",
    "RestRecoveryEngine",
]
