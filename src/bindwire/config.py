"""Typed configuration objects that can be published as instance bindings.

A ``Config`` maps keys (config classes, optionally tagged) to values. Values
are pydantic models or dataclasses; pydantic validates and coerces every
value that is loaded from YAML or overridden from a flat property map.

Property keys look like ``sample.full_name`` for ``SampleConfig`` and
``sample@app.full_name`` for ``Annotated[SampleConfig, Tag("app")]``.
Parameter names match ignoring case, underscores and dashes.
"""

from __future__ import annotations

import dataclasses
import logging
import re
from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, TypeVar, get_type_hints, overload

import yaml
from pydantic import BaseModel, TypeAdapter, ValidationError

from bindwire.exceptions import ConfigError
from bindwire.registry import BindingRegistry
from bindwire.type_key import Tag, TypeKey

T = TypeVar("T")

logger = logging.getLogger(__name__)

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")
_ZERO_VALUES: dict[Any, Any] = {
    int: 0,
    float: 0.0,
    str: "",
    bool: False,
    bytes: b"",
}
_EMPTY_CONTAINERS: dict[Any, Callable[[], Any]] = {
    list: list,
    dict: dict,
    set: set,
    tuple: tuple,
    frozenset: frozenset,
}


def canonical_name(name: str) -> str:
    """Normalize a parameter name so that ``fullName`` matches ``full_name``."""
    return name.replace("_", "").replace("-", "").lower()


def property_prefix(key: TypeKey) -> str:
    """Return the property-key prefix for a config key, e.g. ``sample@app``."""
    name = getattr(key.value, "__name__", str(key.value))
    snake = _CAMEL_BOUNDARY.sub("_", name).lower()
    if snake.endswith("_config") and snake != "_config":
        snake = snake[: -len("_config")]
    if key.tag is None:
        return snake
    tag_value = key.tag.value
    if isinstance(tag_value, str):
        tag_name = tag_value
    else:
        tag_name = getattr(tag_value, "__name__", str(tag_value))
    return f"{snake}@{tag_name.lower()}"


@dataclass(frozen=True, slots=True)
class _FieldSpec:
    name: str
    annotation: Any
    has_default: bool
    default_factory: Callable[[], Any] | None


def _fields(cls: Any) -> list[_FieldSpec]:
    if isinstance(cls, type) and issubclass(cls, BaseModel):
        return [
            _FieldSpec(
                name=name,
                annotation=info.annotation,
                has_default=not info.is_required(),
                default_factory=lambda info=info: info.get_default(call_default_factory=True),
            )
            for name, info in cls.model_fields.items()
        ]

    if isinstance(cls, type) and dataclasses.is_dataclass(cls):
        try:
            hints = get_type_hints(cls)
        except (NameError, TypeError):
            hints = {}
        specs = []
        for f in dataclasses.fields(cls):
            if not f.init:
                continue
            if f.default is not dataclasses.MISSING:
                factory: Callable[[], Any] | None = lambda f=f: f.default
            elif f.default_factory is not dataclasses.MISSING:
                factory = f.default_factory
            else:
                factory = None
            specs.append(
                _FieldSpec(
                    name=f.name,
                    annotation=hints.get(f.name, f.type),
                    has_default=factory is not None,
                    default_factory=factory,
                ),
            )
        return specs

    return []


def _zero_value(annotation: Any) -> Any:
    if annotation in _ZERO_VALUES:
        return _ZERO_VALUES[annotation]
    origin = getattr(annotation, "__origin__", annotation)
    if origin in _EMPTY_CONTAINERS:
        return _EMPTY_CONTAINERS[origin]()
    return None


def _as_dict(value: Any) -> dict[str, Any]:
    return {spec.name: getattr(value, spec.name) for spec in _fields(type(value))}


def _validate(key: TypeKey, data: Mapping[str, Any]) -> Any:
    try:
        return TypeAdapter(key.value).validate_python(dict(data))
    except ValidationError as e:
        msg = f"Invalid configuration for {key}: {e}"
        raise ConfigError(msg) from e


def _match_fields(
    key: TypeKey,
    data: Mapping[str, Any],
) -> tuple[dict[str, Any], dict[str, Any]]:
    """Split ``data`` into known field values and unknown entries."""
    by_canonical = {canonical_name(spec.name): spec.name for spec in _fields(key.value)}
    matched: dict[str, Any] = {}
    unknown: dict[str, Any] = {}
    for raw_name, value in data.items():
        field_name = by_canonical.get(canonical_name(str(raw_name)))
        if field_name is None:
            unknown[str(raw_name)] = value
        else:
            matched[field_name] = value
    return matched, unknown


@dataclass(frozen=True, slots=True)
class ConfigChange:
    """One config parameter whose current value differs from its default."""

    key: TypeKey
    property_key: str
    default: Any
    current: Any

    def __str__(self) -> str:
        return f"[{self.property_key}] default:{self.default!r}, current:{self.current!r}"


@dataclass(frozen=True, slots=True)
class OverrideReport:
    """Which property keys an override consumed and which it ignored."""

    consumed: dict[str, Any] = field(default_factory=dict)
    unused: dict[str, Any] = field(default_factory=dict)


class Config:
    """Immutable registry of typed configuration values.

    Every mutating operation returns a new ``Config``.

    Args:
        env: Environment section to read from YAML files.
        default_env: Section used when ``env`` is missing from a file.
        config_paths: Directories searched, in order, for relative file names.

    """

    def __init__(
        self,
        env: str = "default",
        default_env: str = "default",
        config_paths: Iterable[str | Path] = (".",),
    ) -> None:
        self.env = env
        self.default_env = default_env
        self.config_paths: tuple[Path, ...] = tuple(Path(p) for p in config_paths)
        self._values: dict[TypeKey, Any] = {}
        self.last_override_report: OverrideReport | None = None

    def _copy(self) -> Config:
        clone = Config(self.env, self.default_env, self.config_paths)
        clone._values = dict(self._values)
        return clone

    def __contains__(self, key: Any) -> bool:
        return TypeKey.from_value(key) in self._values

    def __iter__(self) -> Iterator[tuple[TypeKey, Any]]:
        return iter(self._values.items())

    def __len__(self) -> int:
        return len(self._values)

    def __add__(self, other: Config) -> Config:
        """Merge two configs; values of ``other`` win."""
        merged = self._copy()
        merged._values.update(other._values)
        return merged

    @overload
    def of(self, key: type[T]) -> T: ...

    @overload
    def of(self, key: Any) -> Any: ...

    def of(self, key: Any) -> Any:
        type_key = TypeKey.from_value(key)
        try:
            return self._values[type_key]
        except KeyError:
            msg = f"No configuration is registered for {type_key}"
            raise ConfigError(msg) from None

    def default_value_of(self, key: Any) -> Any:
        """Build the default value of a config class.

        Fields without a declared default get the zero value of their type
        (``0``, ``""``, empty containers) or ``None``.
        """
        type_key = TypeKey.from_value(key)
        if not _is_config_class(type_key.value):
            msg = f"{type_key} is not a pydantic model or a dataclass"
            raise ConfigError(msg)
        data = {
            spec.name: (
                spec.default_factory()
                if spec.default_factory is not None
                else _zero_value(spec.annotation)
            )
            for spec in _fields(type_key.value)
        }
        return _validate(type_key, data)

    def register(self, value: Any, key: Any = None) -> Config:
        """Register ``value`` under ``key`` (defaults to the value's type)."""
        type_key = TypeKey.from_value(key if key is not None else type(value))
        logger.debug("Register config %s", type_key)
        config = self._copy()
        config._values[type_key] = value
        return config

    def register_default(self, cls: Any, tag: Any = None) -> Config:
        """Register the default value of ``cls``."""
        type_key = self._key(cls, tag)
        return self.register(self.default_value_of(type_key), type_key)

    def register_from_yaml(self, cls: Any, path: str | Path, tag: Any = None) -> Config:
        """Register ``cls`` with values from the environment section of a YAML file.

        Raises:
            FileNotFoundError: The file is not found in any config path.
            ConfigError: Neither ``env`` nor ``default_env`` is in the file.

        """
        type_key = self._key(cls, tag)
        document = self._load_yaml(path)
        if not isinstance(document, Mapping):
            msg = f"{path}: expected a mapping of environments"
            raise ConfigError(msg)

        section = document.get(self.env)
        if section is None:
            logger.info("%s: no '%s' section, using '%s'", path, self.env, self.default_env)
            section = document.get(self.default_env)
        if not isinstance(section, Mapping):
            msg = f"{path}: no configuration for env '{self.env}' or '{self.default_env}'"
            raise ConfigError(msg)

        matched, unknown = _match_fields(type_key, section)
        if unknown:
            logger.warning("%s: unknown parameters for %s: %s", path, type_key, sorted(unknown))

        data = _as_dict(self.default_value_of(type_key))
        data.update(matched)
        return self.register(_validate(type_key, data), type_key)

    def get_config_changes(self) -> list[ConfigChange]:
        """List parameters whose current value differs from the default."""
        changes: list[ConfigChange] = []
        for key, current in self._values.items():
            if not _is_config_class(key.value):
                continue
            default = self.default_value_of(key)
            prefix = property_prefix(key)
            for spec in _fields(key.value):
                default_value = getattr(default, spec.name)
                current_value = getattr(current, spec.name)
                if default_value != current_value:
                    changes.append(
                        ConfigChange(
                            key=key,
                            property_key=f"{prefix}.{spec.name}",
                            default=default_value,
                            current=current_value,
                        ),
                    )
        return changes

    def override_with_properties(
        self,
        properties: Mapping[str, Any],
        on_unused: Callable[[dict[str, Any]], None] | None = None,
    ) -> Config:
        """Return a config with values overridden from a flat property map.

        Args:
            properties: ``{"prefix.param": value}`` entries.
            on_unused: Called with the entries that matched no registered
                parameter, when there are any.

        """
        by_prefix = {canonical_name(property_prefix(key)): key for key in self._values}
        updates: dict[TypeKey, dict[str, Any]] = {}
        consumed: dict[str, Any] = {}
        unused: dict[str, Any] = {}

        for property_key, value in properties.items():
            prefix, _, param = str(property_key).partition(".")
            key = by_prefix.get(canonical_name(prefix))
            if key is None or not param:
                unused[property_key] = value
                continue
            matched, _ = _match_fields(key, {param: value})
            if not matched:
                unused[property_key] = value
                continue
            updates.setdefault(key, {}).update(matched)
            consumed[property_key] = value

        config = self._copy()
        for key, values in updates.items():
            data = _as_dict(config._values[key])
            data.update(values)
            config._values[key] = _validate(key, data)

        config.last_override_report = OverrideReport(consumed=consumed, unused=unused)
        if unused:
            logger.debug("Unused properties: %s", sorted(unused))
            if on_unused is not None:
                on_unused(unused)
        return config

    def override_with_properties_file(
        self,
        path: str | Path,
        on_unused: Callable[[dict[str, Any]], None] | None = None,
    ) -> Config:
        """Override values from a flat YAML mapping of property keys."""
        document = self._load_yaml(path)
        if document is None:
            document = {}
        if not isinstance(document, Mapping):
            msg = f"{path}: expected a flat mapping of properties"
            raise ConfigError(msg)
        return self.override_with_properties(document, on_unused=on_unused)

    def bind_to(self, registry: BindingRegistry) -> BindingRegistry:
        """Add an instance binding for every registered value."""
        for key, value in self._values.items():
            registry.bind(key).to_instance(value)
        return registry

    def find_file(self, path: str | Path) -> Path:
        candidate = Path(path)
        if candidate.is_absolute():
            if candidate.is_file():
                return candidate
        else:
            for base in self.config_paths:
                if (base / candidate).is_file():
                    return base / candidate
        msg = f"{path} is not found in {[str(p) for p in self.config_paths]}"
        raise FileNotFoundError(msg)

    def _load_yaml(self, path: str | Path) -> Any:
        resolved = self.find_file(path)
        logger.debug("Loading %s", resolved)
        with resolved.open(encoding="utf-8") as f:
            try:
                return yaml.safe_load(f)
            except yaml.YAMLError as e:
                msg = f"{resolved}: invalid YAML ({e})"
                raise ConfigError(msg) from e

    def _key(self, cls: Any, tag: Any) -> TypeKey:
        type_key = TypeKey.from_value(cls)
        if tag is None:
            return type_key
        return TypeKey(type_key.value, tag if isinstance(tag, Tag) else Tag(tag))

    def __repr__(self) -> str:
        return f"Config(env={self.env!r}, values={len(self._values)})"


def _is_config_class(candidate: Any) -> bool:
    return isinstance(candidate, type) and (
        issubclass(candidate, BaseModel) or dataclasses.is_dataclass(candidate)
    )
