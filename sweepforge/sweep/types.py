from __future__ import annotations

from typing import Any, Callable, Protocol, Sequence, TypeVar, runtime_checkable


@runtime_checkable
class Commandable(Protocol):
    def build_cmd(self) -> str: ...


P = TypeVar("P", bound=Commandable, covariant=True)


@runtime_checkable
class Expandable(Protocol[P]):
    def expand(self) -> Sequence[P]: ...


ConfigFactory = Callable[[str, Any], Expandable[Commandable]]
