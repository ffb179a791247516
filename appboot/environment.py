from __future__ import annotations

import os
from collections.abc import Iterable, Mapping
from typing import Optional


def parse_key_value_pairs(entries: Iterable[str]) -> dict[str, str]:
    """Turn ``KEY=VALUE`` strings into a dict; other entries are skipped.

    Leading dashes are stripped so ``--HTTP_PORT=8080`` works like
    ``HTTP_PORT=8080``.
    """
    values: dict[str, str] = {}
    for entry in entries:
        key, sep, value = str(entry).partition("=")
        key = key.strip().lstrip("-").strip()
        if not sep or not key:
            continue
        values[key] = value
    return values


class Environment:
    """Process environment merged with command-line ``KEY=VALUE`` arguments.

    Later sources win, so arguments override OS variables.
    """

    def __init__(self, *sources: Mapping[str, str]) -> None:
        self._values: dict[str, str] = {}
        for source in sources:
            self._values.update(source)

    @classmethod
    def from_process(cls, cmd_args: Iterable[str], environ: Optional[Mapping[str, str]] = None) -> "Environment":
        active_environ = os.environ if environ is None else environ
        return cls(dict(active_environ), parse_key_value_pairs(cmd_args))

    def value_or_none(self, name: str) -> Optional[str]:
        return self._values.get(name)

    def get_value(self, name: str, default: str = "") -> str:
        value = self._values.get(name)
        if value is None:
            return default
        return value

    def as_dict(self) -> dict[str, str]:
        return dict(self._values)

    def __contains__(self, name: object) -> bool:
        return name in self._values
