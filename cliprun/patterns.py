#!/usr/bin/env python3

# ClipRun - Run commands on clipboard matches through a single job queue
# Copyright (C) 2025 Robert Macrae
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with this program.  If not, see <https://www.gnu.org/licenses/>.

"""
patterns.py - Rule pattern compilation and output line classification
The classification heuristics are tuned for downloaders such as yt-dlp and
gallery-dl; both lists can be replaced from the config file.
"""

import re
from enum import Enum
from typing import Iterable, Sequence, Tuple, Union

from .errors import ConfigError

# Lines starting with any of these are redrawn in place
DEFAULT_PROGRESS_PREFIXES = (
    "[download]",
    "[Merger]",
    "[ExtractAudio]",
    "[Fixup",
    "[gallery-dl]",
)

# Each entry matches when all of its substrings occur (case-insensitive)
DEFAULT_ALREADY_DONE = (
    ("already downloaded",),
    ("has already been downloaded",),
    ("already", "exist"),
    ("already", "present"),
    ("exists, skipping",),
    ("file is already present",),
)

ALREADY_DONE_MESSAGE = "Already downloaded."

PhraseSpec = Union[str, Sequence[str]]


class LineKind(Enum):
    ALREADY_DONE = "already_done"
    PROGRESS = "progress"
    LOG = "log"


def _normalize_phrases(phrases: Iterable[PhraseSpec]) -> Tuple[Tuple[str, ...], ...]:
    normalized = []
    for phrase in phrases:
        terms = (phrase,) if isinstance(phrase, str) else tuple(phrase)
        terms = tuple(t.lower() for t in terms if t)
        if terms:
            normalized.append(terms)
    return tuple(normalized)


class LineClassifier:
    """Decides how a line of process output is shown."""

    def __init__(self,
                 progress_prefixes: Iterable[str] = DEFAULT_PROGRESS_PREFIXES,
                 already_done: Iterable[PhraseSpec] = DEFAULT_ALREADY_DONE):
        self.progress_prefixes = tuple(p for p in progress_prefixes if p)
        self.already_done = _normalize_phrases(already_done)

    def is_already_done(self, line: str) -> bool:
        lowered = line.lower()
        return any(all(term in lowered for term in terms) for terms in self.already_done)

    def is_progress(self, line: str) -> bool:
        return line.startswith(self.progress_prefixes) if self.progress_prefixes else False

    def classify(self, line: str) -> LineKind:
        if self.is_already_done(line):
            return LineKind.ALREADY_DONE
        if self.is_progress(line):
            return LineKind.PROGRESS
        return LineKind.LOG


def compile_rule_pattern(pattern: str, ignore_case: bool = True) -> re.Pattern:
    """Compile a rule pattern, raising ConfigError with the offending pattern"""
    flags = re.IGNORECASE if ignore_case else 0
    try:
        return re.compile(pattern, flags)
    except re.error as e:
        raise ConfigError(f"Invalid pattern '{pattern}': {e}") from e

