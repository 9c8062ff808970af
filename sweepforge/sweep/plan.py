from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Iterator, Mapping

from .types import Commandable, ConfigFactory, Expandable


@dataclass(frozen=True)
class ExecutionPlan:
    groups: Mapping[str, tuple[Commandable, ...]]

    @classmethod
    def from_configs(cls, configs: Mapping[str, Expandable[Commandable]]) -> ExecutionPlan:
        groups = {}
        for name in sorted(configs):
            groups[name] = tuple(configs[name].expand())

        return cls(MappingProxyType(groups))

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any], factory: ConfigFactory) -> ExecutionPlan:
        return cls.from_configs({name: factory(name, value) for name, value in raw.items()})

    def __len__(self) -> int:
        return sum(len(params) for params in self.groups.values())

    def group_names(self) -> list[str]:
        return sorted(self.groups)

    def work_items(self) -> Iterator[tuple[str, Commandable]]:
        for name in self.group_names():
            for param in self.groups[name]:
                yield name, param
