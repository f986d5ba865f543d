from __future__ import annotations

from typing import Dict, Protocol, Type

from shared.errors import ConfigurationError


class FreezePolicy(Protocol):
    """Decides whether the long-term average may adapt on the current step."""

    name: str
    display_name: str

    def freeze_lta(self, trigger_active: bool) -> bool:
        """Return True to hold the LTA at its previous value."""
        ...


FREEZE_POLICY_REGISTRY: Dict[str, Type[FreezePolicy]] = {}


def register_policy(cls: Type[FreezePolicy]) -> Type[FreezePolicy]:
    if not hasattr(cls, "name"):
        raise ValueError(f"Freeze policy {cls} must have a 'name' attribute")
    FREEZE_POLICY_REGISTRY[cls.name] = cls
    return cls


def get_policy(name: str) -> FreezePolicy:
    try:
        cls = FREEZE_POLICY_REGISTRY[name]
    except KeyError:
        available = ", ".join(sorted(FREEZE_POLICY_REGISTRY))
        raise ConfigurationError(f"Unknown freeze policy {name!r}; available: {available}") from None
    return cls()


@register_policy
class AlwaysUpdate:
    """Classical STA/LTA: the baseline tracks every sample."""

    name = "always"
    display_name = "Always update (classical)"

    def freeze_lta(self, trigger_active: bool) -> bool:
        return False

    def __repr__(self) -> str:
        return "AlwaysUpdate()"


@register_policy
class FreezeOnActive:
    """Hy-MAD rule: the baseline is held while a detection is in progress."""

    name = "freeze"
    display_name = "Freeze on active trigger (Hy-MAD)"

    def freeze_lta(self, trigger_active: bool) -> bool:
        return bool(trigger_active)

    def __repr__(self) -> str:
        return "FreezeOnActive()"
