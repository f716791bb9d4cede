"""Per-language launch configuration store."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from lspservice.config.schema import LanguageConfig

log = logging.getLogger(__name__)


def normalize_language(name: str) -> str:
    """Normalize a language name to its lookup key."""
    return name.strip().lower()


def display_name(name: str) -> str:
    """Capitalized language name for human-readable messages."""
    return normalize_language(name).capitalize()


@dataclass(frozen=True)
class LaunchConfig:
    """How to launch the language server for one language.

    Attributes:
        language: Normalized language key (e.g., "swift").
        executable_path: Path to the server executable, if one has been set.
        arguments: Arguments passed to the executable.
        environment: Extra environment variables (supports ${VAR}).
    """

    language: str
    executable_path: str | None = None
    arguments: tuple[str, ...] = ()
    environment: Mapping[str, str] = field(default_factory=dict)


class LanguageStore:
    """In-memory mapping of language name to LaunchConfig.

    Keys are lowercase-normalized. Entries live for the lifetime of the
    process; the configuration files seed the initial contents.
    """

    def __init__(self, configs: Iterable[LaunchConfig] = ()) -> None:
        self._configs: dict[str, LaunchConfig] = {}
        for config in configs:
            key = normalize_language(config.language)
            self._configs[key] = replace(config, language=key)

    @classmethod
    def from_config(cls, languages: Iterable[LanguageConfig]) -> LanguageStore:
        """Build a store from the ``languages`` section of the config."""
        return cls(
            LaunchConfig(
                language=lang.name,
                executable_path=lang.executable,
                arguments=tuple(lang.args),
                environment=dict(lang.env),
            )
            for lang in languages
        )

    def get(self, language: str) -> LaunchConfig | None:
        return self._configs.get(normalize_language(language))

    def set(self, language: str, executable_path: str) -> LaunchConfig:
        """Set the executable path for a language, creating the entry if needed."""
        key = normalize_language(language)
        existing = self._configs.get(key)
        if existing is None:
            config = LaunchConfig(language=key, executable_path=executable_path)
        else:
            config = replace(existing, executable_path=executable_path)
        self._configs[key] = config
        log.info("Language server for %s set to %s", key, executable_path)
        return config

    def remove(self, language: str) -> bool:
        return self._configs.pop(normalize_language(language), None) is not None

    def languages(self) -> list[str]:
        """Sorted list of configured language keys."""
        return sorted(self._configs)

    def __contains__(self, language: object) -> bool:
        return isinstance(language, str) and normalize_language(language) in self._configs

    def __len__(self) -> int:
        return len(self._configs)
