"""Resource classification and endpoint naming.

Resources are classified by their relationship to other resources, the
same way tables relate in a relational database:

* Base model: addressable on its own, ``/users/{user_id}``.
* One-to-One model: exactly one per parent, ``/users/{user_id}/profile``.
* One-to-Many model: a collection owned by a parent,
  ``/users/{user_id}/homes/{home_id}``.
* Many-to-Many model: links between two base models,
  ``/users/{user_id}/groups/{group_id}``.

The classification decides the URL shape and the set of endpoints. Names
follow a few rules checked by :func:`check_resource_name`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Iterable

import yaml

from src.config import ConfigurationError, resolve_path
from src.logging_config import get_logger
from src.versioning import version_prefix

logger = get_logger(__name__)

_NAME_PATTERN = re.compile(r"^[a-z][a-z0-9]*(-[a-z0-9]+)*$")
_EXTENSION_PATTERN = re.compile(r"\.[A-Za-z0-9]+$")

# Actions belong to the HTTP method, not to the URL
CRUD_VERBS = frozenset(
    {
        "get",
        "list",
        "fetch",
        "create",
        "add",
        "new",
        "update",
        "edit",
        "modify",
        "set",
        "delete",
        "remove",
        "destroy",
    }
)


class ModelKind(str, Enum):
    """Relationship classification of a resource."""

    BASE = "base"
    ONE_TO_ONE = "one-to-one"
    ONE_TO_MANY = "one-to-many"
    MANY_TO_MANY = "many-to-many"


@dataclass(frozen=True)
class Endpoint:
    """One row of an endpoint table."""

    method: str
    path: str
    action: str


@dataclass(frozen=True)
class ResourceSpec:
    """Declaration of an API resource.

    Attributes:
        name: URL segment of the resource, e.g. ``homes``.
        kind: Relationship classification.
        parent: Name of the owning base model. Required for every kind
            except BASE. For MANY_TO_MANY, ``name`` is the other base model.
        id_param: Path parameter name. Defaults to ``<singular>_id``.
    """

    name: str
    kind: ModelKind
    parent: str | None = None
    id_param: str | None = None

    @property
    def path_param(self) -> str:
        return self.id_param or f"{singularize(self.name).replace('-', '_')}_id"


# Plurals the suffix rules below get wrong
_IRREGULAR_PLURALS = {
    "analyses": "analysis",
    "bases": "base",
    "caches": "cache",
    "children": "child",
    "cookies": "cookie",
    "courses": "course",
    "databases": "database",
    "houses": "house",
    "indices": "index",
    "movies": "movie",
    "niches": "niche",
    "people": "person",
    "quizzes": "quiz",
    "responses": "response",
}

# Nouns spelled the same in singular and plural
_INVARIANT_NOUNS = frozenset({"data", "media", "news", "series", "species"})

_VOWELS = frozenset("aeiou")


def _singularize_word(word: str) -> str:
    if word in _IRREGULAR_PLURALS:
        return _IRREGULAR_PLURALS[word]
    if word in _INVARIANT_NOUNS:
        return word
    if word.endswith("ies") and len(word) > 3:
        return word[:-3] + "y"
    if word.endswith(("sses", "shes", "ches", "xes", "zzes")):
        return word[:-2]
    # statuses, campuses, buses; but causes, houses
    if word.endswith("uses") and len(word) > 4 and word[-5] not in _VOWELS:
        return word[:-2]
    if word.endswith(("ss", "us", "is")):
        return word
    if word.endswith("s"):
        return word[:-1]
    return word


def singularize(name: str) -> str:
    """Return the singular form of a plural resource name.

    Only the last word of a kebab-case name is inflected. Names that are
    already singular come back unchanged.

    Example:
        >>> singularize("categories")
        'category'
        >>> singularize("home-addresses")
        'home-address'
        >>> singularize("status")
        'status'
    """
    head, _, last = name.rpartition("-")
    singular = _singularize_word(last)
    return f"{head}-{singular}" if head else singular


def is_plural(name: str) -> bool:
    """Return True if the last word of a resource name reads as a plural."""
    last = name.rpartition("-")[2]
    return last in _INVARIANT_NOUNS or _singularize_word(last) != last


def check_resource_name(name: str, kind: ModelKind) -> list[str]:
    """Check a resource name against the naming rules.

    Names are lowercase kebab-case nouns without file extensions. Collection
    resources are plural, one-to-one resources are singular.

    Args:
        name: URL segment to check.
        kind: Classification of the resource.

    Returns:
        Human-readable violations, empty when the name is fine.
    """
    problems = []
    if _EXTENSION_PATTERN.search(name):
        problems.append(f"'{name}' must not carry a file extension")
    if not _NAME_PATTERN.match(name):
        problems.append(f"'{name}' must be lowercase kebab-case, e.g. 'home-addresses'")

    words = name.split("-")
    if words[0] in CRUD_VERBS:
        problems.append(
            f"'{name}' starts with the verb '{words[0]}'; "
            "use the HTTP method to express the action"
        )

    last = words[-1]
    if kind is ModelKind.ONE_TO_ONE:
        if singularize(last) != last:
            problems.append(f"'{name}' is a one-to-one resource and should be singular")
    elif not is_plural(last):
        problems.append(f"'{name}' is a collection and should be plural")
    return problems


def _base_endpoints(spec: ResourceSpec) -> list[Endpoint]:
    collection = f"/{spec.name}"
    item = f"{collection}/{{{spec.path_param}}}"
    return [
        Endpoint("GET", collection, f"List {spec.name}"),
        Endpoint("POST", collection, f"Create a {singularize(spec.name)}"),
        Endpoint("GET", item, f"Get a {singularize(spec.name)}"),
        Endpoint("PUT", item, f"Replace a {singularize(spec.name)}"),
        Endpoint("DELETE", item, f"Delete a {singularize(spec.name)}"),
    ]


def _nested_endpoints(spec: ResourceSpec, parent: ResourceSpec) -> list[Endpoint]:
    owner = f"/{parent.name}/{{{parent.path_param}}}"
    noun = singularize(spec.name)
    owner_noun = singularize(parent.name)

    if spec.kind is ModelKind.ONE_TO_ONE:
        path = f"{owner}/{spec.name}"
        return [
            Endpoint("GET", path, f"Get the {owner_noun}'s {spec.name}"),
            Endpoint("PUT", path, f"Create or replace the {owner_noun}'s {spec.name}"),
            Endpoint("DELETE", path, f"Delete the {owner_noun}'s {spec.name}"),
        ]

    collection = f"{owner}/{spec.name}"
    item = f"{collection}/{{{spec.path_param}}}"
    if spec.kind is ModelKind.ONE_TO_MANY:
        return [
            Endpoint("GET", collection, f"List the {owner_noun}'s {spec.name}"),
            Endpoint("POST", collection, f"Create a {noun} for the {owner_noun}"),
            Endpoint("GET", item, f"Get one of the {owner_noun}'s {spec.name}"),
            Endpoint("PUT", item, f"Replace one of the {owner_noun}'s {spec.name}"),
            Endpoint("DELETE", item, f"Delete one of the {owner_noun}'s {spec.name}"),
        ]

    return [
        Endpoint("GET", collection, f"List the {owner_noun}'s {spec.name}"),
        Endpoint("PUT", item, f"Link a {noun} to the {owner_noun}"),
        Endpoint("DELETE", item, f"Unlink a {noun} from the {owner_noun}"),
    ]


class ResourceRegistry:
    """Ordered set of resource declarations.

    Parents must be declared before their children and must be base models.
    Many-to-many resources must also name a declared base model. A link
    from a base model to itself needs its own ``id_param``.
    """

    def __init__(self, specs: Iterable[ResourceSpec] = ()) -> None:
        self._specs: list[ResourceSpec] = []
        for spec in specs:
            self.add(spec)

    def __iter__(self):
        return iter(self._specs)

    def __len__(self) -> int:
        return len(self._specs)

    def get_base(self, name: str) -> ResourceSpec | None:
        for spec in self._specs:
            if spec.kind is ModelKind.BASE and spec.name == name:
                return spec
        return None

    def add(self, spec: ResourceSpec) -> None:
        """Declare a resource.

        Raises:
            ValueError: On duplicates, missing or invalid parents.
        """
        key = (spec.parent, spec.name)
        if any((s.parent, s.name) == key for s in self._specs):
            where = f" under '{spec.parent}'" if spec.parent else ""
            raise ValueError(f"Resource '{spec.name}'{where} is declared twice")

        if spec.kind is ModelKind.BASE:
            if spec.parent is not None:
                raise ValueError(f"Base model '{spec.name}' cannot have a parent")
        else:
            if spec.parent is None:
                raise ValueError(f"{spec.kind.value} resource '{spec.name}' needs a parent")
            if self.get_base(spec.parent) is None:
                raise ValueError(
                    f"Parent '{spec.parent}' of '{spec.name}' is not a declared base model"
                )
            if spec.kind is ModelKind.MANY_TO_MANY:
                target = self.get_base(spec.name)
                if target is None:
                    raise ValueError(
                        f"Many-to-many resource '{spec.name}' must name a declared base model"
                    )
                # Both path parameters of a self-link would otherwise share one name
                if spec.name == spec.parent and spec.path_param == target.path_param:
                    raise ValueError(
                        f"Many-to-many resource '{spec.name}' links '{spec.parent}' to itself "
                        f"and needs an id_param other than '{target.path_param}'"
                    )
        self._specs.append(spec)

    def naming_problems(self) -> list[str]:
        """Return naming violations of every declared resource."""
        problems = []
        for spec in self._specs:
            problems.extend(check_resource_name(spec.name, spec.kind))
        return problems

    def endpoints(self, version: str | None = None) -> list[Endpoint]:
        """Return the endpoint table, optionally under a version prefix."""
        prefix = version_prefix(version) if version else ""
        table = []
        for spec in self._specs:
            for endpoint in endpoint_table(spec, self):
                table.append(Endpoint(endpoint.method, prefix + endpoint.path, endpoint.action))
        return table


def endpoint_table(spec: ResourceSpec, registry: ResourceRegistry) -> list[Endpoint]:
    """Return the endpoints a resource exposes.

    Args:
        spec: The resource.
        registry: Registry holding the resource's parent.

    Returns:
        Endpoints in a stable order: collection before item, reads first.

    Raises:
        ValueError: If the parent is not a declared base model.
    """
    if spec.kind is ModelKind.BASE:
        return _base_endpoints(spec)
    parent = registry.get_base(spec.parent or "")
    if parent is None:
        raise ValueError(f"Parent '{spec.parent}' of '{spec.name}' is not a declared base model")
    # Links reuse the id parameter of the linked base model
    if spec.kind is ModelKind.MANY_TO_MANY:
        target = registry.get_base(spec.name)
        if target is not None and spec.id_param is None:
            spec = ResourceSpec(spec.name, spec.kind, spec.parent, target.path_param)
    return _nested_endpoints(spec, parent)


def _spec_from_entry(entry: Any, index: int) -> ResourceSpec:
    if not isinstance(entry, dict):
        raise ConfigurationError(f"Resource #{index} must be a mapping")
    name = entry.get("name")
    if not isinstance(name, str) or not name:
        raise ConfigurationError(f"Resource #{index} is missing 'name'")
    try:
        kind = ModelKind(entry.get("kind", ModelKind.BASE.value))
    except ValueError as exc:
        allowed = ", ".join(k.value for k in ModelKind)
        raise ConfigurationError(
            f"Resource '{name}' has unknown kind '{entry.get('kind')}' (allowed: {allowed})"
        ) from exc
    return ResourceSpec(
        name=name,
        kind=kind,
        parent=entry.get("parent"),
        id_param=entry.get("id_param"),
    )


def load_resource_specs(path: str | Path) -> ResourceRegistry:
    """Load resource declarations from a YAML file.

    The file holds a ``resources`` list::

        resources:
          - name: users
            kind: base
          - name: homes
            kind: one-to-many
            parent: users

    Args:
        path: File path, relative paths resolve against the project root.

    Returns:
        Registry of the declared resources.

    Raises:
        ConfigurationError: If the file is missing, unreadable, not valid
            YAML, or declares invalid resources.
    """
    config_file = resolve_path(str(path))
    if not config_file.exists():
        raise ConfigurationError(f"Resource file not found: {config_file}")

    try:
        with open(config_file, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Error parsing resource file {config_file}: {exc}") from exc
    except OSError as exc:  # pragma: no cover
        raise ConfigurationError(f"Error reading resource file {config_file}: {exc}") from exc

    if not isinstance(data, dict) or not isinstance(data.get("resources"), list):
        raise ConfigurationError(f"Resource file {config_file} must contain a 'resources' list")

    registry = ResourceRegistry()
    for index, entry in enumerate(data["resources"], start=1):
        spec = _spec_from_entry(entry, index)
        try:
            registry.add(spec)
        except ValueError as exc:
            raise ConfigurationError(str(exc)) from exc

    logger.info("Loaded %d resources from %s", len(registry), config_file)
    return registry
