"""
Alert rule engine and configuration management.
"""

from .alert_rules import BaseAlertRule, RuleContext
from .rule_config import RuleConfigBuilder, RuleConfigLoader
from .rule_engine import AlertEngine, sort_alerts

__all__ = [
    "AlertEngine",
    "BaseAlertRule",
    "RuleContext",
    "RuleConfigLoader",
    "RuleConfigBuilder",
    "sort_alerts",
]
