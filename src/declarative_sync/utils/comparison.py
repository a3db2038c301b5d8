"""
Rule-driven comparison of desired and actual objects.

The comparison answers one question: does the actual object already contain
everything the desired object specifies? Keys present on the actual object
but absent from the desired one (server defaults, fields added by other
controllers) are not a mismatch.

Which fields take part is controlled by an ordered tuple of rules:

- ``IgnoreFields``: exclude subtrees from comparison
- ``IncludeFields``: re-include subtrees excluded by an earlier rule
- ``ExactFields``: require a subtree to match exactly, extras included
- ``EqualWhen``: custom equality predicate for a subtree

Paths are dotted (``metadata.labels``, ``spec.template.spec.containers.*.image``);
``*`` matches any mapping key or list index. Keys that contain dots are
written with ``\\.`` (``metadata.labels.app\\.kubernetes\\.io/name``) or the
path is given as a tuple of segments. ``diff_paths`` reports paths in the
same escaped form.

For a given path the last matching rule wins, and a path with no rule of its
own follows its nearest ancestor. An ``IgnoreFields`` parent does not hide a
descendant that a later rule names explicitly. ``DEFAULT_RULES``
(server-managed metadata and status) always come first, so caller rules can
override them.

Everything here is pure: inputs are never mutated and the same inputs always
produce the same verdict.
"""

import copy
import re
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from ..constants import SERVER_MANAGED_METADATA_FIELDS, STATUS_FIELD

Path = tuple[str, ...]

# A dotted string, or the segments themselves
PathSpec = str | Sequence[str]

# Marks a key absent from the actual object
MISSING: Any = object()

WILDCARD = "*"

_UNESCAPED_DOT = re.compile(r"(?<!\\)\.")


def _split(path: PathSpec) -> Path:
    if not isinstance(path, str):
        return tuple(str(segment) for segment in path)
    return tuple(
        segment.replace("\\.", ".")
        for segment in _UNESCAPED_DOT.split(path)
        if segment
    )


def _format(path: Path) -> str:
    return ".".join(segment.replace(".", "\\.") for segment in path) or "<root>"


@dataclass(frozen=True, init=False)
class _FieldRule:
    paths: tuple[Path, ...]

    def __init__(self, *paths: PathSpec):
        object.__setattr__(self, "paths", tuple(_split(path) for path in paths))

    def matches(self, path: Path) -> bool:
        return any(_path_matches(pattern, path) for pattern in self.paths)


class IgnoreFields(_FieldRule):
    """Exclude the given paths from comparison."""


class IncludeFields(_FieldRule):
    """Compare the given paths even if an earlier rule ignores them."""


class ExactFields(_FieldRule):
    """Require the given paths to match exactly, keys only present on actual included."""


@dataclass(frozen=True)
class EqualWhen:
    """Compare one path with a custom predicate ``equal(actual, desired)``.

    ``actual`` is ``None`` when the field is absent from the actual object.
    """

    path: PathSpec
    equal: Callable[[Any, Any], bool] = field(compare=False)

    def __post_init__(self):
        object.__setattr__(self, "path", _split(self.path))

    @property
    def paths(self) -> tuple[Path, ...]:
        return (self.path,)

    def matches(self, path: Path) -> bool:
        return _path_matches(self.path, path)


Rule = _FieldRule | EqualWhen

DEFAULT_RULES: tuple[Rule, ...] = (
    IgnoreFields(
        *(f"metadata.{name}" for name in SERVER_MANAGED_METADATA_FIELDS),
        STATUS_FIELD,
    ),
)


def _path_matches(pattern: Path, path: Path) -> bool:
    if len(pattern) != len(path):
        return False
    return all(p == WILDCARD or p == s for p, s in zip(pattern, path, strict=True))


Resolved = tuple[int, Rule]


def _resolve(rules: Sequence[Rule], path: Path) -> Resolved | None:
    """Return the last rule matching ``path`` together with its position."""
    if not path:
        return None
    for index in range(len(rules) - 1, -1, -1):
        if rules[index].matches(path):
            return index, rules[index]
    return None


def _reincluded_below(rules: Sequence[Rule], path: Path, ignored_at: int) -> bool:
    """Check whether a rule after ``ignored_at`` names a descendant of ``path``."""
    depth = len(path)
    return any(
        not isinstance(rule, IgnoreFields)
        and any(
            len(pattern) > depth and _path_matches(pattern[:depth], path)
            for pattern in rule.paths
        )
        for rule in rules[ignored_at + 1 :]
    )


def _is_exact(rules: Sequence[Rule], path: Path) -> bool:
    resolved = _resolve(rules, path)
    return resolved is not None and isinstance(resolved[1], ExactFields)


def _is_unspecified(value: Any) -> bool:
    # The API server drops empty strings, maps and lists on omitempty fields
    return value is None or value is MISSING or value in ("", {}, [])


def _same_shape(actual: Any, desired: Any) -> bool:
    if isinstance(desired, Mapping):
        return isinstance(actual, Mapping)
    if isinstance(desired, list):
        return isinstance(actual, list) and len(actual) == len(desired)
    return False


def _exact_equal(actual: Any, desired: Any) -> bool:
    if _is_unspecified(actual) and _is_unspecified(desired):
        return True
    return actual == desired


def _collect_diff(
    actual: Any,
    desired: Any,
    path: Path,
    rules: Sequence[Rule],
    out: list[str],
    ignored: Resolved | None = None,
) -> None:
    resolved = _resolve(rules, path) or ignored
    rule = resolved[1] if resolved else None

    if isinstance(rule, IgnoreFields):
        # Only descendants named by a later rule take part
        if _reincluded_below(rules, path, resolved[0]) and _same_shape(actual, desired):
            _diff_children(actual, desired, path, rules, out, resolved)
        return
    if isinstance(rule, EqualWhen):
        if not rule.equal(None if actual is MISSING else actual, desired):
            out.append(_format(path))
        return
    if isinstance(rule, ExactFields):
        if not _exact_equal(actual, desired):
            out.append(_format(path))
        return

    if _is_unspecified(desired):
        return

    if isinstance(desired, Mapping | list):
        if not _same_shape(actual, desired):
            out.append(_format(path))
            return
        _diff_children(actual, desired, path, rules, out, None)
    elif actual is MISSING or actual != desired:
        out.append(_format(path))


def _diff_children(
    actual: Any,
    desired: Any,
    path: Path,
    rules: Sequence[Rule],
    out: list[str],
    ignored: Resolved | None,
) -> None:
    if isinstance(desired, list):
        for index, (actual_item, desired_item) in enumerate(
            zip(actual, desired, strict=True)
        ):
            _collect_diff(
                actual_item, desired_item, path + (str(index),), rules, out, ignored
            )
        return

    for key in sorted(desired, key=str):
        _collect_diff(
            actual.get(key, MISSING), desired[key], path + (str(key),), rules, out, ignored
        )
    # Keys only on actual matter where an exact rule covers them
    for key in sorted(set(actual) - set(desired), key=str):
        child = path + (str(key),)
        if _is_exact(rules, child):
            _collect_diff(actual[key], MISSING, child, rules, out, ignored)


def diff_paths(
    actual: Mapping[str, Any], desired: Mapping[str, Any], rules: Sequence[Rule] = ()
) -> list[str]:
    """
    List the paths where the actual object does not satisfy the desired one.

    Args:
        actual: Object read from the store
        desired: Object the caller wants
        rules: Caller rules, applied after ``DEFAULT_RULES``

    Returns:
        Dotted paths of mismatching fields in a stable order; empty when equal
    """
    out: list[str] = []
    _collect_diff(actual, desired, (), (*DEFAULT_RULES, *rules), out)
    return out


def semantically_equal(
    actual: Mapping[str, Any], desired: Mapping[str, Any], rules: Sequence[Rule] = ()
) -> bool:
    """Check whether the actual object already contains everything desired specifies."""
    return not diff_paths(actual, desired, rules)


def _merge(
    actual: Any,
    desired: Any,
    path: Path,
    rules: Sequence[Rule],
    ignored: Resolved | None = None,
) -> Any:
    resolved = _resolve(rules, path) or ignored
    rule = resolved[1] if resolved else None

    if isinstance(rule, IgnoreFields):
        if _reincluded_below(rules, path, resolved[0]) and _same_shape(actual, desired):
            return _merge_children(actual, desired, path, rules, resolved)
        return copy.deepcopy(desired if actual is MISSING else actual)
    if isinstance(rule, ExactFields):
        return copy.deepcopy(desired)

    if _is_unspecified(desired) and actual is not MISSING:
        return copy.deepcopy(actual)

    if _same_shape(actual, desired):
        return _merge_children(actual, desired, path, rules, None)

    return copy.deepcopy(desired)


def _merge_children(
    actual: Any,
    desired: Any,
    path: Path,
    rules: Sequence[Rule],
    ignored: Resolved | None,
) -> Any:
    if isinstance(desired, list):
        return [
            _merge(actual_item, desired_item, path + (str(index),), rules, ignored)
            for index, (actual_item, desired_item) in enumerate(
                zip(actual, desired, strict=True)
            )
        ]

    merged = copy.deepcopy(dict(actual))
    for key, value in desired.items():
        merged[key] = _merge(
            actual.get(key, MISSING), value, path + (str(key),), rules, ignored
        )
    for key in set(actual) - set(desired):
        if _is_exact(rules, path + (str(key),)):
            del merged[key]
    return merged


def merge_desired(
    actual: Mapping[str, Any], desired: Mapping[str, Any], rules: Sequence[Rule] = ()
) -> dict[str, Any]:
    """
    Build the object to write: actual with desired deep-merged on top.

    Ignored paths (resourceVersion, uid, status, ...) keep the actual value so
    the store accepts the write as a version-checked update, except for
    descendants a later rule re-includes. ``ExactFields`` paths are replaced
    wholesale so that removals take effect. Lists of equal length are merged
    element-wise, otherwise replaced.

    Returns:
        A new object; neither input is mutated
    """
    return _merge(actual, desired, (), (*DEFAULT_RULES, *rules))
