import _pickle
import bz2
import json
from pathlib import Path

import numpy as np
import pandas as pd
import yaml
from pydantic import BaseModel, Field, model_validator
from scipy.io import savemat
from typing_extensions import Self


class Export(BaseModel):
    densities: list[float] = Field(default=[])
    bandwidth: float = Field(gt=0)
    tolerance: float = Field(gt=0, lt=1)
    dimension: int = Field(ge=1)
    reference_count: int = Field(ge=1)
    truncation_order: int | None = Field(default=None, ge=1)
    nboxes: int | None = Field(default=None, ge=1)
    interaction_counts: dict[str, int] = Field(default={})
    max_relative_error: float | None = Field(default=None)

    @model_validator(mode="after")
    def densities_are_finite(self) -> Self:
        if not np.all(np.isfinite(self.densities)):
            raise ValueError("Density estimates must be finite")
        return self

    @classmethod
    def from_kde(cls, kde, max_relative_error: float | None = None) -> "Export":
        geometry = kde.geometry
        return cls(
            densities=kde.get_density_estimates().tolist(),
            bandwidth=kde.parameters.bandwidth,
            tolerance=kde.parameters.tolerance,
            dimension=kde.dimension,
            reference_count=int(kde.references.shape[1]),
            truncation_order=None if geometry is None else geometry.order,
            nboxes=None if geometry is None else geometry.nboxes,
            interaction_counts=dict(kde.interaction_counts),
            max_relative_error=max_relative_error,
        )

    def to_text(self) -> str:
        """One density per line, ``%g`` formatted."""
        return "".join("%g\n" % value for value in self.densities)

    def save(self, filename: str | Path) -> None:
        if isinstance(filename, str):
            filename = Path(filename)
        filename.parent.mkdir(parents=True, exist_ok=True)

        match filename.suffix:
            case ".txt" | ".dat":
                filename.write_text(self.to_text())
            case ".csv":
                pd.DataFrame({"density": self.densities}).to_csv(filename, index=False)
            case ".json":
                with open(filename, "w") as f:
                    json.dump(self.model_dump(), f, indent=4)
            case ".yml" | ".yaml":
                with open(filename, "w") as f:
                    yaml.dump(self.model_dump(), f)
            case ".bz2":
                with bz2.BZ2File(filename, "w") as outfile:
                    _pickle.dump(self.model_dump(), outfile)
            case ".mat":
                data = self.model_dump(exclude_none=True)
                data["densities"] = np.asarray(self.densities, dtype=float)
                if not data.get("interaction_counts"):
                    data.pop("interaction_counts", None)
                savemat(filename, data)
            case _:
                raise ValueError(f"Unknown file extension {filename.suffix}")
