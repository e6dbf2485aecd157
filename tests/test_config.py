import json
import math
from pathlib import Path

import numpy as np
import pytest
import yaml
from pydantic import ValidationError

from fgtkde.config import Config
from fgtkde.exceptions import InvalidConfiguration
from fgtkde.parameters import Parameters


def _write_points(path: Path, points: np.ndarray, delimiter: str = ",") -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    lines = [delimiter.join(f"{v:.16e}" for v in row) for row in points.T]
    path.write_text("\n".join(lines) + "\n")


def _base_config(**kde) -> dict:
    return {
        "kde": {"bandwidth": 0.5, "absolute_error": 1e-4, **kde},
        "data": {"references": "data/references.csv"},
    }


def test_yaml_config_defaults_queries_to_references(tmp_path: Path) -> None:
    references = np.array([[0.0, 1.0, 2.0], [0.5, 0.25, 0.0]])
    _write_points(tmp_path / "data" / "references.csv", references)
    config_path = tmp_path / "config.yaml"
    config_path.write_text(yaml.safe_dump(_base_config()))

    config = Config(str(config_path))

    np.testing.assert_allclose(config.references, references)
    np.testing.assert_allclose(config.queries, references)
    assert config.output_filename is None
    assert config.parameters == Parameters(bandwidth=0.5, tolerance=1e-4)


def test_json_config_with_queries_options_and_output(tmp_path: Path) -> None:
    references = np.array([[0.0, 1.0], [0.0, 1.0]])
    queries = np.array([[0.5], [0.5]])
    _write_points(tmp_path / "data" / "references.csv", references)
    _write_points(tmp_path / "data" / "queries.csv", queries)

    data = _base_config(box_ratio=0.5, parallel=False, max_truncation_order=32)
    data["data"]["queries"] = "data/queries.csv"
    data["output"] = {"folder": "out", "file": "densities.txt"}
    config_path = tmp_path / "config.json"
    config_path.write_text(json.dumps(data))

    config = Config(str(config_path))
    parameters = config.parameters

    np.testing.assert_allclose(config.queries, queries)
    assert parameters.box_ratio == 0.5
    assert parameters.parallel is False
    assert parameters.max_truncation_order == 32
    assert Path(config.output_filename) == tmp_path / "out" / "densities.txt"


def test_whitespace_delimiter_and_comments(tmp_path: Path) -> None:
    points_path = tmp_path / "data" / "references.csv"
    points_path.parent.mkdir()
    points_path.write_text("# x y\n0.0   1.0\n2.0\t3.0\n")
    data = _base_config()
    data["data"]["delimiter"] = "whitespace"
    config_path = tmp_path / "config.yaml"
    config_path.write_text(yaml.safe_dump(data))

    config = Config(str(config_path))

    np.testing.assert_allclose(config.references, [[0.0, 2.0], [1.0, 3.0]])


def test_path_overrides_and_parameter_override(tmp_path: Path) -> None:
    _write_points(tmp_path / "data" / "references.csv", np.zeros((2, 2)))
    other = tmp_path / "elsewhere.csv"
    _write_points(other, np.ones((2, 3)))
    config_path = tmp_path / "config.yaml"
    config_path.write_text(yaml.safe_dump(_base_config()))

    config = Config(str(config_path), path_queries=str(other))
    config.override(bandwidth=2.0, tolerance=None, box_ratio=0.25)

    assert config.queries.shape == (2, 3)
    assert config.parameters.bandwidth == 2.0
    assert config.parameters.tolerance == 1e-4
    assert config.parameters.box_ratio == 0.25


def test_unknown_suffix(tmp_path: Path) -> None:
    config_path = tmp_path / "config.toml"
    config_path.write_text("")

    with pytest.raises(InvalidConfiguration):
        Config(str(config_path))


def test_missing_config_file(tmp_path: Path) -> None:
    with pytest.raises(InvalidConfiguration):
        Config(str(tmp_path / "missing.json"))


def test_missing_kde_keys(tmp_path: Path) -> None:
    _write_points(tmp_path / "data" / "references.csv", np.zeros((2, 2)))
    data = _base_config()
    del data["kde"]["absolute_error"]
    config_path = tmp_path / "config.json"
    config_path.write_text(json.dumps(data))

    with pytest.raises(InvalidConfiguration):
        Config(str(config_path))


def test_missing_point_file(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text(json.dumps(_base_config()))

    with pytest.raises(InvalidConfiguration):
        Config(str(config_path))


@pytest.mark.parametrize(
    "section",
    [
        {"data": ["references.csv"]},
        {"data": "references.csv"},
        {"data": {"references": ["references.csv"]}},
        {"data": {"references": "references.csv", "delimiter": 3}},
        {"output": ["densities.txt"]},
        {"output": {"folder": ["out"], "file": "densities.txt"}},
    ],
)
def test_malformed_sections_are_rejected(tmp_path: Path, section: dict) -> None:
    _write_points(tmp_path / "references.csv", np.zeros((2, 2)))
    data = {
        "kde": {"bandwidth": 0.5, "absolute_error": 1e-4},
        "data": {"references": "references.csv"},
        **section,
    }
    config_path = tmp_path / "config.yaml"
    config_path.write_text(yaml.safe_dump(data))

    with pytest.raises(InvalidConfiguration):
        Config(str(config_path))


def test_invalid_parameters_surface_on_access(tmp_path: Path) -> None:
    _write_points(tmp_path / "data" / "references.csv", np.zeros((2, 2)))
    config_path = tmp_path / "config.json"
    config_path.write_text(json.dumps(_base_config(box_ratio=-1.0)))

    config = Config(str(config_path))

    with pytest.raises(InvalidConfiguration):
        config.parameters


def test_parameters_model() -> None:
    parameters = Parameters.build(
        bandwidth=1.0, tolerance=1e-3, far_field_threshold=math.inf
    )

    assert parameters.far_field_threshold == math.inf
    assert parameters.local_threshold is None
    assert parameters.parallel is True
    with pytest.raises(ValidationError):
        parameters.bandwidth = 2.0
    with pytest.raises(InvalidConfiguration) as excinfo:
        Parameters.build(bandwidth=1.0, tolerance=1e-3, max_truncation_order=0)
    assert excinfo.value.__cause__ is not None
