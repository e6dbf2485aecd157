"""Validated run parameters for the FGT engine."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from fgtkde.exceptions import InvalidConfiguration


class Parameters(BaseModel):
    """Bandwidth, accuracy and tuning options of a single FGT run.

    ``far_field_threshold`` and ``local_threshold`` override the derived
    ``nfmax``/``nlmax`` cut-offs; ``math.inf`` disables expansions entirely.
    """

    bandwidth: float = Field(gt=0, allow_inf_nan=False)
    tolerance: float = Field(gt=0, lt=1, allow_inf_nan=False)
    box_ratio: float = Field(default=1.0, gt=0, allow_inf_nan=False)
    max_truncation_order: int = Field(default=64, ge=1)
    far_field_threshold: float | None = Field(default=None, ge=0)
    local_threshold: float | None = Field(default=None, ge=0)
    parallel: bool = Field(default=True)

    model_config = ConfigDict(frozen=True, extra="forbid")

    @classmethod
    def build(cls, **kwargs: Any) -> "Parameters":
        """Validate ``kwargs`` and raise :class:`InvalidConfiguration` on failure."""
        try:
            return cls(**kwargs)
        except ValidationError as exc:
            raise InvalidConfiguration(str(exc)) from exc
