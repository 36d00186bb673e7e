"""
Feature registry.

The registry maps feature names to Feature definitions. It is the unit the
runner iterates over. Registries are built once at import time, typically
in a module the config points at with ``features_module: package.module:attr``.

Example usage:
    registry = FeatureRegistry()

    @registry.feature("Hello World")
    def hello_world():
        return {"Basic scenario": basic_scenario}
"""

import importlib
from typing import Any, Callable, Dict, Iterator, List, Optional, Union

from .feature import Feature, RunEnvironment, ScenarioBody


class FeatureRegistry:
    """Mapping of feature name to Feature, in registration order."""

    def __init__(self, features: Optional[List[Feature]] = None):
        self._features: Dict[str, Feature] = {}
        for feature in features or []:
            self.register(feature)

    def register(self, feature: Feature) -> Feature:
        """
        Add a feature.

        Raises:
            ValueError: If a feature with the same name is already registered
        """
        if not isinstance(feature, Feature):
            raise ValueError(f"Expected a Feature, got {type(feature)}")
        if feature.name in self._features:
            raise ValueError(f"Duplicate feature name: {feature.name}")
        self._features[feature.name] = feature
        return feature

    def feature(
        self,
        name: str,
        setup: Optional[Callable[[RunEnvironment], Any]] = None,
        teardown: Optional[Callable[[RunEnvironment, Any], None]] = None,
        description: str = "",
        tags: Optional[List[str]] = None,
    ) -> Callable[[Callable[[], Dict[str, ScenarioBody]]], Feature]:
        """
        Decorator registering a feature from a function returning scenario bodies.

        The decorated function is called once and must return a mapping of
        scenario name to scenario body. The decorator returns the Feature.
        """
        def decorator(fn: Callable[[], Dict[str, ScenarioBody]]) -> Feature:
            feature = Feature.from_bodies(
                name,
                fn(),
                setup=setup,
                teardown=teardown,
                description=description or (fn.__doc__ or "").strip(),
                tags=list(tags or []),
            )
            return self.register(feature)

        return decorator

    def get(self, name: str) -> Feature:
        """
        Look up a feature by name.

        Raises:
            KeyError: If no such feature exists (message lists known names)
        """
        try:
            return self._features[name]
        except KeyError:
            known = ", ".join(self._features) or "(none)"
            raise KeyError(f"Unknown feature '{name}'. Available: {known}") from None

    def names(self) -> List[str]:
        return list(self._features)

    def select(self, names: Optional[List[str]] = None) -> List[Feature]:
        """Return the named features in the given order, or all when names is empty."""
        if not names:
            return list(self._features.values())
        return [self.get(name) for name in names]

    def __iter__(self) -> Iterator[Feature]:
        return iter(list(self._features.values()))

    def __len__(self) -> int:
        return len(self._features)

    def __contains__(self, name: object) -> bool:
        return name in self._features


def load_registry(target: Union[str, FeatureRegistry]) -> FeatureRegistry:
    """
    Resolve a registry from a ``package.module:attr`` path.

    The attribute may be a FeatureRegistry, a list of Features, or a dict
    of name to Feature. When ``:attr`` is omitted, ``registry`` is used.

    Raises:
        ValueError: If the attribute is missing or of an unsupported type
    """
    if isinstance(target, FeatureRegistry):
        return target

    module_name, _, attr = target.partition(":")
    attr = attr or "registry"
    module = importlib.import_module(module_name)
    if not hasattr(module, attr):
        raise ValueError(f"Module '{module_name}' has no attribute '{attr}'")

    value = getattr(module, attr)
    if isinstance(value, FeatureRegistry):
        return value
    if isinstance(value, dict):
        return FeatureRegistry(list(value.values()))
    if isinstance(value, (list, tuple)):
        return FeatureRegistry(list(value))
    raise ValueError(f"'{target}' is not a FeatureRegistry, list or dict of features")
