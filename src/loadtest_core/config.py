"""
Configuration handling for loadtest runs.

This module loads run settings from YAML files or dictionaries and applies
environment overrides.

Example YAML configuration:
    base_url: http://localhost:8080
    grpc_target: localhost:8081
    vus: 10
    iterations: 200
    http_timeout: 10
    features_module: loadtest_core.cache_features:registry
    features:
      - Cache
    report_path: ./reports/loadtest.json

Environment overrides (applied after the file):
    HTTP_BASE_URL, GRPC_TARGET, LOADTEST_VUS, LOADTEST_ITERATIONS

Example usage:
    from loadtest_core.config import load_config

    config = load_config("loadtest.yaml")
    errors = config.validate()
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union
from urllib.parse import urlparse

import yaml

DEFAULT_BASE_URL = "http://localhost:8080"
DEFAULT_GRPC_TARGET = "localhost:8081"
DEFAULT_FEATURES_MODULE = "loadtest_core.cache_features:registry"

CONFIG_CANDIDATES = [
    "loadtest.yaml",
    "loadtest.yml",
    ".loadtest.yaml",
    ".loadtest.yml",
]

_KNOWN_KEYS = {
    "base_url",
    "grpc_target",
    "vus",
    "iterations",
    "http_timeout",
    "features_module",
    "features",
    "report_path",
    "verbose",
}


def _parse_int(name: str, value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError(f"Invalid {name}: {value!r}. Must be an integer.")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid {name}: {value!r}. Must be an integer.") from None


def _parse_features(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, list) and all(isinstance(v, str) for v in value):
        return list(value)
    raise ValueError(f"Invalid features: {value!r}. Must be a name or a list of names.")


class LoadTestConfig:
    """
    Configuration container for a load test run.

    Attributes:
        base_url: Base URL of the HTTP target
        grpc_target: host:port of the gRPC target
        vus: Virtual users per scenario
        iterations: Iterations per scenario, shared among its virtual users
        http_timeout: Per-request HTTP timeout in seconds
        features_module: ``package.module:attr`` of the feature registry
        features: Feature names to run (empty means all)
        report_path: Path for the JSON report (None disables it)
        verbose: Enable verbose output
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        grpc_target: str = DEFAULT_GRPC_TARGET,
        vus: int = 1,
        iterations: int = 1,
        http_timeout: float = 10.0,
        features_module: str = DEFAULT_FEATURES_MODULE,
        features: Optional[List[str]] = None,
        report_path: Optional[str] = None,
        verbose: bool = False,
    ):
        self.base_url = base_url
        self.grpc_target = grpc_target
        self.vus = vus
        self.iterations = iterations
        self.http_timeout = http_timeout
        self.features_module = features_module
        self.features = list(features or [])
        self.report_path = report_path
        self.verbose = verbose

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LoadTestConfig":
        """
        Create configuration from a dictionary.

        Raises:
            ValueError: On unknown keys or invalid values
        """
        unknown = sorted(set(data) - _KNOWN_KEYS)
        if unknown:
            raise ValueError(f"Unknown config key(s): {', '.join(unknown)}")

        return cls(
            base_url=data.get("base_url", DEFAULT_BASE_URL),
            grpc_target=data.get("grpc_target", DEFAULT_GRPC_TARGET),
            vus=_parse_int("vus", data.get("vus", 1)),
            iterations=_parse_int("iterations", data.get("iterations", 1)),
            http_timeout=float(data.get("http_timeout", 10.0)),
            features_module=data.get("features_module", DEFAULT_FEATURES_MODULE),
            features=_parse_features(data.get("features")),
            report_path=data.get("report_path"),
            verbose=bool(data.get("verbose", False)),
        )

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "LoadTestConfig":
        """
        Load configuration from a YAML file.

        Raises:
            FileNotFoundError: If the file doesn't exist
            ValueError: If the YAML is empty, not a mapping, or invalid
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path) as f:
            data = yaml.safe_load(f)

        if data is None:
            raise ValueError(f"Empty or invalid YAML file: {path}")
        if not isinstance(data, dict):
            raise ValueError(f"Expected a mapping at top level in {path}, got {type(data).__name__}")

        return cls.from_dict(data)

    def apply_env_overrides(self, environ: Optional[Mapping[str, str]] = None) -> "LoadTestConfig":
        """Apply HTTP_BASE_URL, GRPC_TARGET, LOADTEST_VUS and LOADTEST_ITERATIONS."""
        environ = os.environ if environ is None else environ
        if environ.get("HTTP_BASE_URL"):
            self.base_url = environ["HTTP_BASE_URL"]
        if environ.get("GRPC_TARGET"):
            self.grpc_target = environ["GRPC_TARGET"]
        if environ.get("LOADTEST_VUS"):
            self.vus = _parse_int("LOADTEST_VUS", environ["LOADTEST_VUS"])
        if environ.get("LOADTEST_ITERATIONS"):
            self.iterations = _parse_int("LOADTEST_ITERATIONS", environ["LOADTEST_ITERATIONS"])
        return self

    def validate(self) -> List[str]:
        """
        Validate settings for consistency.

        Returns:
            List of error messages (empty if valid)
        """
        errors = []
        parsed = urlparse(self.base_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            errors.append(f"base_url must be an http(s) URL, got '{self.base_url}'")
        if self.vus < 1:
            errors.append(f"vus must be >= 1, got {self.vus}")
        if self.iterations < 1:
            errors.append(f"iterations must be >= 1, got {self.iterations}")
        if self.http_timeout <= 0:
            errors.append(f"http_timeout must be > 0, got {self.http_timeout}")
        if not self.features_module:
            errors.append("features_module is required")
        return errors

    def to_dict(self) -> Dict[str, Any]:
        return {
            "base_url": self.base_url,
            "grpc_target": self.grpc_target,
            "vus": self.vus,
            "iterations": self.iterations,
            "http_timeout": self.http_timeout,
            "features_module": self.features_module,
            "features": list(self.features),
            "report_path": self.report_path,
            "verbose": self.verbose,
        }


def find_config_file(root: Optional[Path] = None) -> Optional[Path]:
    """Find a loadtest configuration file in common locations."""
    root = root or Path(".")
    for name in CONFIG_CANDIDATES:
        candidate = root / name
        if candidate.exists():
            return candidate
    return None


def load_config(
    source: Union[str, Path, Dict[str, Any], None] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> LoadTestConfig:
    """
    Load configuration from various sources, then apply environment overrides.

    Accepts:
    - Path to a YAML file (str or Path)
    - Configuration dictionary
    - None: use find_config_file(), or defaults when no file exists
    """
    if isinstance(source, dict):
        config = LoadTestConfig.from_dict(source)
    elif source is not None:
        config = LoadTestConfig.from_yaml(source)
    else:
        found = find_config_file()
        config = LoadTestConfig.from_yaml(found) if found else LoadTestConfig()
    return config.apply_env_overrides(environ)
