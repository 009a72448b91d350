"""Configuration: environment settings and per-call run options.

Environment values are validated through a Pydantic schema and resolved
once per ``Options`` instance; explicit arguments always win.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from functools import cache
import os
from typing import TYPE_CHECKING, Any

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

from fanfold.errors import ConfigurationError

if TYPE_CHECKING:
    from fanfold.telemetry import TelemetryReporter

load_dotenv()


class DeadlinePolicy(str, Enum):
    """How each worker's deadline relates to the overall deadline."""

    #: Workers share the overall deadline, anchored when ``run`` starts.
    SHARED = "shared"
    #: Each worker gets the full timeout from its own start. Compatible with
    #: the historical timing, but a late-starting worker can outlive the
    #: overall deadline.
    PER_WORKER = "per_worker"


# Settings field -> environment variable
_ENV_VARS: dict[str, str] = {
    "deadline_policy": "FANFOLD_DEADLINE_POLICY",
    "cancel_stragglers": "FANFOLD_CANCEL_STRAGGLERS",
    "telemetry_enabled": "FANFOLD_TELEMETRY",
}


class Settings(BaseModel):
    """Schema for environment-provided defaults."""

    deadline_policy: DeadlinePolicy = Field(default=DeadlinePolicy.SHARED)
    cancel_stragglers: bool = Field(default=False)
    telemetry_enabled: bool = Field(default=False)

    model_config = {"extra": "forbid", "frozen": True}

    @field_validator("deadline_policy", mode="before")
    @classmethod
    def normalize_policy(cls, v: Any) -> Any:
        """Accept ``Per-Worker``, ``per_worker`` and friends."""
        if isinstance(v, str) and not isinstance(v, DeadlinePolicy):
            return _normalize_policy(v)
        return v


def _normalize_policy(value: str) -> str:
    return value.strip().lower().replace("-", "_")


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Validate ``FANFOLD_*`` environment variables into ``Settings``.

    Blank variables are treated as unset.
    """
    env = os.environ if environ is None else environ
    raw: dict[str, str] = {}
    for name, var in _ENV_VARS.items():
        value = env.get(var, "").strip()
        if value:
            raw[name] = value

    try:
        return Settings.model_validate(raw)
    except ValidationError as e:
        first = e.errors()[0]
        name = str(first["loc"][0]) if first["loc"] else ""
        var = _ENV_VARS.get(name, name)
        raise ConfigurationError(
            f"Invalid value for {var}: {raw.get(name)!r}",
            hint=_HINTS.get(name, first["msg"]),
        ) from e


_HINTS: dict[str, str] = {
    "deadline_policy": "Use 'shared' or 'per_worker'.",
    "cancel_stragglers": "Use 1/0, true/false, yes/no or on/off.",
    "telemetry_enabled": "Use 1/0, true/false, yes/no or on/off.",
}


@dataclass(frozen=True)
class Options:
    """Optional behavior for ``Batch.run()`` and ``collect()``.

    Fields left as *None* are resolved from the environment.

    Example:
        opts = Options(deadline_policy="per_worker", cancel_stragglers=True)
    """

    deadline_policy: DeadlinePolicy | None = None
    #: Cancel workers still running when the call returns or raises.
    cancel_stragglers: bool | None = None
    telemetry_enabled: bool | None = None
    #: Only consulted when telemetry is enabled.
    reporters: tuple[TelemetryReporter, ...] = ()

    def __post_init__(self) -> None:
        """Resolve unset fields and validate option shapes."""
        env = cache(load_settings)  # read at most once, and only if needed

        policy = self.deadline_policy
        if policy is None:
            policy = env().deadline_policy
        elif not isinstance(policy, DeadlinePolicy):
            try:
                policy = DeadlinePolicy(_normalize_policy(str(policy)))
            except ValueError:
                raise ConfigurationError(
                    f"Unknown deadline_policy: {self.deadline_policy!r}",
                    hint=_HINTS["deadline_policy"],
                ) from None
        object.__setattr__(self, "deadline_policy", policy)

        for name in ("cancel_stragglers", "telemetry_enabled"):
            value = getattr(self, name)
            if value is None:
                value = getattr(env(), name)
            elif not isinstance(value, bool):
                raise ConfigurationError(
                    f"{name} must be a bool, got {type(value).__name__}"
                )
            object.__setattr__(self, name, value)

        if not isinstance(self.reporters, tuple):
            object.__setattr__(self, "reporters", tuple(self.reporters))
