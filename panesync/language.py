#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Language Profiles - Per-language segmentation data and sentence statistics
"""

import threading
from dataclasses import dataclass, replace
from enum import Enum
from functools import lru_cache
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple

import regex

from config.constants import DEFAULT_LANGUAGE
from config.logging_config import get_logger

from .errors import UnsupportedLanguageError

logger = get_logger(__name__)


class ProfileKind(str, Enum):
    """Where a profile comes from"""
    BUILTIN = "builtin"
    CUSTOM = "custom"


@dataclass(frozen=True)
class BoundaryPattern:
    """
    One sentence boundary rule.

    The pattern is matched at the start of a terminal punctuation cluster;
    the first matching pattern of a profile decides the boundary and its
    specificity becomes the base confidence.
    """
    name: str
    pattern: str
    specificity: float

    def match(self, text: str, pos: int):
        return _compile(self.pattern).match(text, pos)


@lru_cache(maxsize=256)
def _compile(pattern: str):
    return regex.compile(pattern)


# Closing marks allowed right after terminal punctuation
CLOSERS = "\"'”’“»«)]}」』）"

# Marks that may open the next sentence before its first letter
WESTERN_OPENERS = "\"'“‘«(["


def _char_class(chars: str) -> str:
    return "[" + "".join(regex.escape(c) for c in chars) + "]"


def western_patterns(openers: str = WESTERN_OPENERS) -> Tuple[BoundaryPattern, ...]:
    """Boundary rules for space-separated scripts"""
    closers = _char_class(CLOSERS) + "*"
    opening = _char_class(openers) + "*"
    return (
        BoundaryPattern(
            name="terminal_upper",
            pattern=r"[.!?…]+" + closers + r"\s+" + opening + r"[\p{Lu}\p{N}]",
            specificity=0.95,
        ),
        BoundaryPattern(
            name="end_of_segment",
            pattern=r"[.!?…]+" + closers + r"\s*$",
            specificity=0.9,
        ),
        BoundaryPattern(
            name="terminal_lower",
            pattern=r"[!?…]+" + closers + r"\s+",
            specificity=0.6,
        ),
    )


def cjk_patterns() -> Tuple[BoundaryPattern, ...]:
    """Boundary rules for scripts written without inter-sentence spaces"""
    closers = _char_class(CLOSERS) + "*"
    return (
        BoundaryPattern(
            name="cjk_terminal",
            pattern=r"[。！？!?．]+" + closers,
            specificity=0.95,
        ),
    ) + western_patterns()


@dataclass(frozen=True)
class LanguageProfile:
    """Language segmentation data and sentence statistics"""
    code: str
    name: str
    boundary_patterns: Tuple[BoundaryPattern, ...]
    abbreviations: FrozenSet[str] = frozenset()
    average_sentence_length: float = 85.0  # characters
    length_variance: float = 25.0
    typical_word_count: float = 15.0
    terminal_punctuation: str = ".!?…"
    quote_pairs: Tuple[Tuple[str, str], ...] = (
        ("(", ")"), ("[", "]"), ("{", "}"), ("“", "”"), ("«", "»"), ('"', '"'),
    )
    inverted_punctuation: bool = False
    has_spaces: bool = True
    kind: ProfileKind = ProfileKind.BUILTIN
    common_punctuation: Tuple[str, ...] = (".", "!", "?", ",", ";", ":")

    def is_abbreviation(self, token: str) -> bool:
        return token.lower().rstrip(".") in self.abbreviations

    def to_dict(self) -> Dict:
        return {
            "code": self.code,
            "name": self.name,
            "kind": self.kind.value,
            "patterns": [p.name for p in self.boundary_patterns],
            "abbreviations": sorted(self.abbreviations),
            "average_sentence_length": self.average_sentence_length,
            "typical_word_count": self.typical_word_count,
            "inverted_punctuation": self.inverted_punctuation,
        }


_EN_ABBREVIATIONS = frozenset({
    "mr", "mrs", "ms", "dr", "prof", "inc", "ltd", "corp", "co", "etc", "vs",
    "e.g", "i.e", "st", "jr", "sr", "no", "fig", "approx", "u.s", "dept", "est",
})

# Language database
BUILTIN_PROFILES: Dict[str, LanguageProfile] = {
    "en": LanguageProfile(
        code="en",
        name="English",
        boundary_patterns=western_patterns(),
        abbreviations=_EN_ABBREVIATIONS,
        average_sentence_length=85.0,
        length_variance=25.0,
        typical_word_count=15.0,
    ),
    "es": LanguageProfile(
        code="es",
        name="Spanish",
        boundary_patterns=western_patterns(WESTERN_OPENERS + "¡¿"),
        abbreviations=frozenset({
            "sr", "sra", "srta", "dr", "dra", "prof", "s.a", "s.l", "etc", "p.ej",
            "ud", "uds", "núm", "pág",
        }),
        average_sentence_length=95.0,
        length_variance=30.0,
        typical_word_count=18.0,
        inverted_punctuation=True,
        common_punctuation=(".", "!", "?", ",", ";", ":", "¡", "¿"),
    ),
    "fr": LanguageProfile(
        code="fr",
        name="French",
        boundary_patterns=western_patterns(),
        abbreviations=frozenset({
            "m", "mm", "mme", "mlle", "dr", "prof", "sarl", "sa", "etc", "p.ex", "c-à-d",
            "cf", "env",
        }),
        average_sentence_length=100.0,
        length_variance=35.0,
        typical_word_count=20.0,
    ),
    "de": LanguageProfile(
        code="de",
        name="German",
        boundary_patterns=western_patterns(WESTERN_OPENERS + "„‚"),
        abbreviations=frozenset({
            "dr", "prof", "gmbh", "ag", "etc", "z.b", "d.h", "bzw", "usw", "ca", "nr",
            "vgl", "u.a",
        }),
        average_sentence_length=110.0,
        length_variance=40.0,
        typical_word_count=22.0,
        quote_pairs=(
            ("(", ")"), ("[", "]"), ("{", "}"), ("„", "“"), ("»", "«"), ('"', '"'),
        ),
    ),
    "it": LanguageProfile(
        code="it",
        name="Italian",
        boundary_patterns=western_patterns(),
        abbreviations=frozenset({
            "sig", "sig.ra", "dott", "prof", "ing", "avv", "ecc", "es", "p.es", "s.p.a",
        }),
        average_sentence_length=95.0,
        length_variance=30.0,
        typical_word_count=18.0,
    ),
    "pt": LanguageProfile(
        code="pt",
        name="Portuguese",
        boundary_patterns=western_patterns(),
        abbreviations=frozenset({
            "sr", "sra", "dr", "dra", "prof", "etc", "ex", "p.ex", "ltda", "av",
        }),
        average_sentence_length=95.0,
        length_variance=30.0,
        typical_word_count=18.0,
    ),
    "vi": LanguageProfile(
        code="vi",
        name="Vietnamese",
        boundary_patterns=western_patterns(),
        abbreviations=frozenset({"tp", "ts", "ths", "gs", "pgs", "v.v", "tr"}),
        average_sentence_length=110.0,  # typically ~30% longer than English
        length_variance=35.0,
        typical_word_count=22.0,
    ),
    "zh": LanguageProfile(
        code="zh",
        name="Chinese",
        boundary_patterns=cjk_patterns(),
        average_sentence_length=35.0,
        length_variance=15.0,
        typical_word_count=20.0,
        terminal_punctuation="。！？!?．.…",
        quote_pairs=(
            ("(", ")"), ("（", "）"), ("「", "」"), ("『", "』"), ("“", "”"), ("《", "》"),
        ),
        has_spaces=False,
        common_punctuation=("。", "，", "！", "？", "；", "："),
    ),
    "ja": LanguageProfile(
        code="ja",
        name="Japanese",
        boundary_patterns=cjk_patterns(),
        average_sentence_length=40.0,
        length_variance=15.0,
        typical_word_count=20.0,
        terminal_punctuation="。！？!?．.…",
        quote_pairs=(
            ("(", ")"), ("（", "）"), ("「", "」"), ("『", "』"), ("【", "】"),
        ),
        has_spaces=False,
        common_punctuation=("。", "、", "！", "？"),
    ),
}


class LanguageProfileRegistry:
    """
    Read-mostly registry of language profiles.

    Built-in profiles are fixed; custom profiles are added at runtime under a
    writer lock by swapping in a new mapping, so lookups never lock.
    """

    def __init__(self, default_language: str = DEFAULT_LANGUAGE):
        if default_language not in BUILTIN_PROFILES:
            raise UnsupportedLanguageError(default_language)
        self.default_language = default_language
        self._custom: Dict[str, LanguageProfile] = {}
        self._write_lock = threading.Lock()

    @staticmethod
    def normalize(language: str) -> str:
        return (language or "").strip().replace("_", "-").lower()

    def _lookup(self, code: str) -> Optional[LanguageProfile]:
        custom = self._custom
        if code in custom:
            return custom[code]
        if code in BUILTIN_PROFILES:
            return BUILTIN_PROFILES[code]
        # en-US, zh-hans ...
        primary = code.split("-", 1)[0]
        return custom.get(primary) or BUILTIN_PROFILES.get(primary)

    def get(self, language: str) -> LanguageProfile:
        """Get a profile, raising UnsupportedLanguageError when unknown"""
        profile = self._lookup(self.normalize(language))
        if profile is None:
            raise UnsupportedLanguageError(language)
        return profile

    @property
    def default_profile(self) -> LanguageProfile:
        return BUILTIN_PROFILES[self.default_language]

    def resolve(
        self,
        language: str,
        supported: Optional[Iterable[str]] = None,
    ) -> Tuple[LanguageProfile, Optional[str]]:
        """
        Resolve a language code to a profile, never failing.

        Args:
            language: Language code (e.g. 'en', 'es-MX')
            supported: Optional list of enabled built-in codes; custom
                       profiles are always enabled

        Returns:
            Tuple of (profile, warning). The warning is None unless the
            default profile was substituted.
        """
        code = self.normalize(language)
        try:
            profile = self.get(code)
        except UnsupportedLanguageError as e:
            warning = f"{e}; falling back to '{self.default_language}' profile"
            logger.warning(warning)
            return self.default_profile, warning

        if supported is not None and profile.kind is ProfileKind.BUILTIN:
            enabled = {self.normalize(c) for c in supported}
            if profile.code not in enabled:
                warning = (
                    f"Language {language!r} is not enabled; "
                    f"falling back to '{self.default_language}' profile"
                )
                logger.warning(warning)
                return self.default_profile, warning

        return profile, None

    def register_custom(self, profile: LanguageProfile) -> LanguageProfile:
        """Register (or replace) a custom profile"""
        code = self.normalize(profile.code)
        if not code:
            raise ValueError("Custom profile requires a language code")
        if not profile.boundary_patterns:
            raise ValueError(f"Custom profile {code!r} has no boundary patterns")
        if profile.average_sentence_length <= 0:
            raise ValueError(f"Custom profile {code!r} needs a positive average_sentence_length")

        custom_profile = replace(profile, code=code, kind=ProfileKind.CUSTOM)
        with self._write_lock:
            self._custom = {**self._custom, code: custom_profile}
        logger.info(f"Registered custom language profile '{code}'")
        return custom_profile

    def unregister_custom(self, language: str) -> bool:
        code = self.normalize(language)
        with self._write_lock:
            if code not in self._custom:
                return False
            custom = dict(self._custom)
            del custom[code]
            self._custom = custom
        return True

    def languages(self) -> List[str]:
        return sorted(set(BUILTIN_PROFILES) | set(self._custom))

    def is_supported(self, language: str) -> bool:
        return self._lookup(self.normalize(language)) is not None


def custom_profile(
    code: str,
    name: str,
    base: str = DEFAULT_LANGUAGE,
    **overrides,
) -> LanguageProfile:
    """
    Build a custom profile from a built-in one.

    Example:
        >>> nl = custom_profile("nl", "Dutch", abbreviations=frozenset({"bijv", "o.a"}))
        >>> nl.kind
        <ProfileKind.CUSTOM: 'custom'>
    """
    template = BUILTIN_PROFILES[base]
    if "abbreviations" in overrides:
        overrides["abbreviations"] = frozenset(a.lower().rstrip(".") for a in overrides["abbreviations"])
    return replace(template, code=code, name=name, kind=ProfileKind.CUSTOM, **overrides)


# Shared registry for all sessions
default_registry = LanguageProfileRegistry()
