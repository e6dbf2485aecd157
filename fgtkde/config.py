import json
import logging
from pathlib import Path

import numpy as np
import pandas as pd
import yaml

from fgtkde.exceptions import InvalidConfiguration
from fgtkde.parameters import Parameters


class Config:
    """Run description read from a JSON or YAML file.

    Example (YAML)::

        kde:
          bandwidth: 0.5
          absolute_error: 1.0e-4
        data:
          references: references.csv
          queries: queries.csv      # optional, defaults to the references
          delimiter: ","
        output:
          file: densities.txt

    Relative data paths are resolved against the folder of the config file.
    Every row of a data file is one point.
    """

    config: dict = {}
    path_queries: str = ""
    path_references: str = ""

    def __init__(
        self, path_config: str, path_queries: str = "", path_references: str = ""
    ):
        if not isinstance(path_config, str):
            raise InvalidConfiguration("The config file path needs to be a string!")
        _path_config = Path(path_config)
        self.file_type = _path_config.suffix
        try:
            match self.file_type:
                case ".json":
                    with open(path_config) as data:
                        self.config = json.load(data)
                case ".yaml" | ".yml":
                    with open(path_config) as data:
                        self.config = yaml.safe_load(data)
                case _:
                    raise InvalidConfiguration(
                        "The provided config file needs to be a json or yaml file!"
                    )
        except OSError as exc:
            raise InvalidConfiguration(
                f"Could not read config file {path_config}. Check if the file exists."
            ) from exc
        if not isinstance(self.config, dict):
            raise InvalidConfiguration(
                f"Config file {path_config} does not contain a mapping."
            )

        self.log = logging.getLogger(self.__class__.__module__)
        self.base = _path_config.parent

        data = self.config.get("data", {})
        if not isinstance(data, dict):
            raise InvalidConfiguration("The data section needs to be a mapping!")
        self.data = data
        self.path_references = self.__resolve(
            path_references if path_references else data.get("references", "")
        )
        self.path_queries = self.__resolve(
            path_queries if path_queries else data.get("queries", "")
        )
        if not self.path_references:
            raise InvalidConfiguration("The config needs a data.references file!")

        self.__read()
        self.__folder()

    def __resolve(self, path: str) -> str:
        if not path:
            return ""
        if not isinstance(path, str):
            raise InvalidConfiguration(f"Expected a file path, got {path!r}")
        if Path(path).is_absolute():
            return path
        return str(self.base / path)

    def __read(self):
        kde = self.config.get("kde")
        if not isinstance(kde, dict):
            raise InvalidConfiguration("The config needs a kde section!")
        if "bandwidth" not in kde or "absolute_error" not in kde:
            raise InvalidConfiguration(
                "Please provide kde.bandwidth and kde.absolute_error."
            )
        self.bandwidth = kde["bandwidth"]
        self.tolerance = kde["absolute_error"]
        self.options = {
            key: kde[key]
            for key in (
                "box_ratio",
                "max_truncation_order",
                "far_field_threshold",
                "local_threshold",
                "parallel",
            )
            if key in kde
        }

        delim = self.data.get("delimiter", ",")
        if not isinstance(delim, str):
            raise InvalidConfiguration("data.delimiter needs to be a string!")
        self.delimiter = r"\s+" if delim == "whitespace" else delim

        self.references = self.load_points(self.path_references, self.delimiter)
        if self.path_queries:
            self.queries = self.load_points(self.path_queries, self.delimiter)
        else:
            self.log.info(
                "No query file has been provided. Using the references as queries."
            )
            self.queries = self.references

    def __folder(self):
        output = self.config.get("output", {})
        if isinstance(output, str):
            output = dict(file=output)
        elif output is None:
            output = {}
        elif not isinstance(output, dict):
            raise InvalidConfiguration(
                "The output section needs to be a file name or a mapping!"
            )
        folder = output.get("folder", "")
        if not isinstance(folder, str):
            raise InvalidConfiguration("output.folder needs to be a string!")
        filename = output.get("file")
        if filename is None:
            self.output_filename = None
        else:
            self.output_filename = self.__resolve(
                str(Path(folder) / filename) if folder else filename
            )

    @property
    def parameters(self) -> Parameters:
        return Parameters.build(
            bandwidth=self.bandwidth, tolerance=self.tolerance, **self.options
        )

    def override(self, **kwargs) -> None:
        """Replace ``bandwidth``, ``tolerance`` or tuning options; ``None`` is ignored."""
        for key, value in kwargs.items():
            if value is None:
                continue
            if key in ("bandwidth", "tolerance"):
                setattr(self, key, value)
            else:
                self.options[key] = value

    @staticmethod
    def load_points(path: str, delimiter: str = ",") -> np.ndarray:
        """Read a delimited text file with one point per row.

        Returns
        -------
        numpy.ndarray
            Column-oriented ``(d, n)`` matrix.
        """
        try:
            points = pd.read_csv(path, header=None, sep=delimiter, comment="#")
        except (OSError, pd.errors.ParserError, pd.errors.EmptyDataError) as exc:
            raise InvalidConfiguration(f"Could not read point file {path}") from exc
        try:
            return np.ascontiguousarray(points.to_numpy(dtype=np.float64).T)
        except ValueError as exc:
            raise InvalidConfiguration(
                f"Point file {path} contains non-numeric entries"
            ) from exc
