"""Capa de orquestación: control automático, alertas, eficiencia y estado."""

from .alert_rules import AlertCooldownTable, AlertRules
from .core import OrchestrationCore
from .efficiency import EfficiencyEstimator, instantaneous_efficiency
from .pump_policy import AutoPumpPolicy
from .status import StatusReport

__all__ = [
    "AlertCooldownTable",
    "AlertRules",
    "AutoPumpPolicy",
    "EfficiencyEstimator",
    "OrchestrationCore",
    "StatusReport",
    "instantaneous_efficiency",
]
