"""
Language profiles and the registry that dispatches on them.

A :class:`LanguageProfile` is pure data: which image to run in, what to
call the source file, and how to compile and run it.  The engine has a
single code path for every language; supporting another one means
registering another profile.

Command templates are tuples of tokens.  Each token may reference
``{workdir}`` (the workspace path inside the container) and ``{source}``
(the source file name).  Tokens are formatted individually, never joined
into a shell string.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Tuple

from .errors import UnsupportedLanguage


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LanguageProfile:
    """How to compile and run source code written in one language."""

    language: str
    image: str
    source_name: str
    run_command: Tuple[str, ...]
    compile_command: Tuple[str, ...] = ()

    @property
    def extension(self) -> str:
        _, _, ext = self.source_name.rpartition(".")
        return ext

    @property
    def compiled(self) -> bool:
        return bool(self.compile_command)

    def build_compile_command(self, workdir: str) -> List[str]:
        return self._render(self.compile_command, workdir)

    def build_run_command(self, workdir: str, arguments: Iterable[str] = ()) -> List[str]:
        return self._render(self.run_command, workdir) + list(arguments)

    def _render(self, template: Tuple[str, ...], workdir: str) -> List[str]:
        return [token.format(workdir=workdir, source=self.source_name) for token in template]


JAVA = LanguageProfile(
    language="java",
    image="openjdk:8-alpine",
    source_name="Main.java",
    compile_command=("javac", "-J-XX:-UsePerfData", "-encoding", "utf-8", "{workdir}/{source}"),
    run_command=("java", "-XX:-UsePerfData", "-cp", "{workdir}", "Main"),
)

C = LanguageProfile(
    language="c",
    image="gcc:latest",
    source_name="main.c",
    compile_command=("gcc", "{workdir}/{source}", "-o", "{workdir}/a.out"),
    run_command=("{workdir}/a.out",),
)

CPP = LanguageProfile(
    language="cpp",
    image="gcc:latest",
    source_name="main.cpp",
    compile_command=("g++", "{workdir}/{source}", "-o", "{workdir}/a.out"),
    run_command=("{workdir}/a.out",),
)

PYTHON = LanguageProfile(
    language="python",
    image="python:3.12-alpine",
    source_name="main.py",
    run_command=("python3", "{workdir}/{source}"),
)

BUILTIN_PROFILES = (JAVA, C, CPP, PYTHON)


class LanguageRegistry:
    """Case-insensitive lookup from language identifier to profile."""

    def __init__(self, profiles: Iterable[LanguageProfile] = ()) -> None:
        self._profiles: Dict[str, LanguageProfile] = {}
        for profile in profiles:
            self.register(profile)

    @classmethod
    def default(cls) -> "LanguageRegistry":
        return cls(BUILTIN_PROFILES)

    @staticmethod
    def _key(language: str) -> str:
        return (language or "").strip().lower()

    def register(self, profile: LanguageProfile) -> None:
        key = self._key(profile.language)
        if key in self._profiles:
            raise ValueError(f"Language already registered: {key}")
        self._profiles[key] = profile

    def get(self, language: str) -> LanguageProfile:
        try:
            return self._profiles[self._key(language)]
        except KeyError:
            raise UnsupportedLanguage(language) from None

    def __contains__(self, language: object) -> bool:
        return isinstance(language, str) and self._key(language) in self._profiles

    def languages(self) -> List[str]:
        return sorted(self._profiles)

    def restricted_to(self, allowed: Iterable[str]) -> "LanguageRegistry":
        """Return a registry holding only the ``allowed`` languages."""
        restricted = LanguageRegistry()
        for name in allowed:
            key = self._key(name)
            if key not in self._profiles:
                logger.warning("Ignoring unknown language in allow-list: %s", name)
                continue
            if key not in restricted:
                restricted.register(self._profiles[key])
        return restricted
