from .base import (
    FREEZE_POLICY_REGISTRY,
    AlwaysUpdate,
    FreezeOnActive,
    FreezePolicy,
    get_policy,
    register_policy,
)
from .energy import EnergyEstimator
from .stalta import LockstepDetector, StaLtaDetector
from .trigger import HysteresisTrigger

__all__ = [
    "FreezePolicy",
    "FREEZE_POLICY_REGISTRY",
    "register_policy",
    "get_policy",
    "AlwaysUpdate",
    "FreezeOnActive",
    "EnergyEstimator",
    "HysteresisTrigger",
    "LockstepDetector",
    "StaLtaDetector",
]
