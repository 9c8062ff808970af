from __future__ import annotations

import itertools
import shlex
from dataclasses import dataclass
from typing import Any, Iterator, Mapping, Union

from sweepforge.errors import InvalidConfigError

Scalar = Union[str, int, float, bool]

PROGRAM_FIELD = "program"


@dataclass(frozen=True)
class Params:
    """One concrete parameter set, fields kept in declaration order."""

    fields: tuple[tuple[str, Scalar], ...]

    def __getitem__(self, key: str) -> Scalar:
        for name, value in self.fields:
            if name == key:
                return value
        raise KeyError(key)

    def __iter__(self) -> Iterator[str]:
        for name, _ in self.fields:
            yield name

    def as_dict(self) -> dict[str, Scalar]:
        return dict(self.fields)

    def build_cmd(self) -> str:
        parts = []
        for name, value in self.fields:
            if name == PROGRAM_FIELD:
                parts.insert(0, shlex.quote(_render(value)))
                continue
            flag = name.replace("_", "-")
            parts.append(f"--{flag}={shlex.quote(_render(value))}")
        return " ".join(parts)


@dataclass(frozen=True)
class GridConfig:
    """A group config whose list-valued fields are sweep axes.

    ``expand()`` yields the cartesian product of the axes, walking them in
    declaration order with the last axis varying fastest. Scalar fields are
    copied into every parameter set.
    """

    name: str
    fields: tuple[tuple[str, Scalar | tuple[Scalar, ...]], ...]

    @classmethod
    def from_mapping(cls, name: str, raw: Any) -> GridConfig:
        if not isinstance(raw, Mapping):
            raise InvalidConfigError(f"{name}: group config must be a mapping")

        fields = []
        for key, value in raw.items():
            if not isinstance(key, str):
                raise InvalidConfigError(f"{name}: {key} should be a string")

            field = key.strip()

            if len(field) < 1:
                raise InvalidConfigError(f"{name}: A field name can't be empty")

            if any(field == seen for seen, _ in fields):
                raise InvalidConfigError(f"{name}: Duplicate field {field}")

            if isinstance(value, list):
                for item in value:
                    if not _is_scalar(item):
                        raise InvalidConfigError(
                            f"{name}.{field}: sweep values must be scalars, got {type(item)}"
                        )
                fields.append((field, tuple(value)))
            elif _is_scalar(value):
                fields.append((field, value))
            else:
                raise InvalidConfigError(
                    f"{name}.{field}: unsupported value type {type(value)}"
                )

        return cls(name, tuple(fields))

    def axes(self) -> dict[str, tuple[Scalar, ...]]:
        return {key: value for key, value in self.fields if isinstance(value, tuple)}

    def expand(self) -> list[Params]:
        axes = self.axes()
        params = []
        for combo in itertools.product(*axes.values()):
            chosen = dict(zip(axes, combo))
            params.append(
                Params(tuple((key, chosen.get(key, value)) for key, value in self.fields))
            )
        return params


def _is_scalar(value: Any) -> bool:
    return isinstance(value, (str, int, float, bool))


def _render(value: Scalar) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
