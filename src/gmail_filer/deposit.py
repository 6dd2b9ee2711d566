"""Deposit-folder resolution: probe an optional subfolder, never create it."""

from __future__ import annotations

import logging
import os
import re

from gmail_filer.models import DepositResolution, Direction, GeneralSettings

logger = logging.getLogger(__name__)

_SEPARATORS_RE = re.compile(r"[\\/]+")


def split_logical_path(logical_path: str) -> list[str]:
    """Split a ``/``- or ``\\``-joined logical path into its components."""
    return [part.strip() for part in _SEPARATORS_RE.split(logical_path or "") if part.strip()]


def deposit_folder_for(settings: GeneralSettings, role: Direction) -> str:
    """Return the configured deposit folder name for messages of *role*."""
    if role == Direction.SENT:
        return settings.sent_email_deposit_folder or ""
    return settings.received_email_deposit_folder or settings.email_deposit_folder or ""


def resolve(base_path: str, deposit_folder_name: str | None) -> DepositResolution:
    """Decide the directory a message is written to.

    Returns ``base_path/deposit_folder_name`` with ``used=True`` only when that
    directory already exists. Otherwise returns ``base_path`` unchanged with
    ``used=False``.
    """
    parts = split_logical_path(deposit_folder_name or "")
    if not parts:
        return DepositResolution(final_path=base_path, used=False)

    candidate = os.path.join(base_path, *parts)
    if os.path.isdir(candidate):
        return DepositResolution(final_path=candidate, used=True)

    logger.debug("Deposit folder %s not found, filing into %s", candidate, base_path)
    return DepositResolution(final_path=base_path, used=False)
