"""Filesystem-safe cleaning of generated names."""

from __future__ import annotations

from gmail_filer.constants import DEFAULT_REPLACEMENT, RESERVED_CHARACTERS
from gmail_filer.models import CharacterCleaningPolicy


def _is_forbidden(char: str) -> bool:
    code = ord(char)
    return code <= 0x1F or code == 0x7F or char in RESERVED_CHARACTERS


def replacement_character(policy: CharacterCleaningPolicy) -> str:
    """Return the single character used for substitutions under *policy*.

    Multi-character values are cut to their first character; empty values,
    and values that would themselves be forbidden on disk, fall back to ``_``.
    """
    replace_with = policy.replace_with or ""
    if not replace_with:
        return DEFAULT_REPLACEMENT
    char = replace_with[0]
    if _is_forbidden(char):
        return DEFAULT_REPLACEMENT
    return char


def sanitize(text: str, policy: CharacterCleaningPolicy | None = None) -> str:
    """Map *text* to a string that is valid as a file or folder name.

    User-selected characters are replaced only when the policy is enabled.
    Control characters and ``<>:"/\\|?*`` are always replaced. The result has
    the same length as the input.
    """
    policy = policy or CharacterCleaningPolicy()
    replacement = replacement_character(policy)

    cleaned = text or ""
    if policy.enabled:
        selected = {char for char, flag in policy.characters_to_clean.items() if flag and char}
        cleaned = "".join(replacement if c in selected else c for c in cleaned)

    return "".join(replacement if _is_forbidden(c) else c for c in cleaned)
