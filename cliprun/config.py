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
config.py - Configuration for cliprun
Rules come from a JSON file; runtime settings from the environment (.env and
.cliprun.env are loaded through python-dotenv) and then command-line flags.
"""

import json
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

from .errors import ConfigError
from .patterns import (
    DEFAULT_ALREADY_DONE,
    DEFAULT_PROGRESS_PREFIXES,
    LineClassifier,
    compile_rule_pattern,
)

# .env takes precedence; .cliprun.env does not override it
load_dotenv()
load_dotenv('.cliprun.env')

DEFAULT_CONFIG_FILE = "config.json"
DEFAULT_POLL_INTERVAL_MS = 400
MIN_POLL_INTERVAL_MS = 100

# Strip // and /* */ comments outside of string literals, then trailing commas
_COMMENT_RE = re.compile(r'("(?:\\.|[^"\\])*")|//[^\n]*|/\*.*?\*/', re.DOTALL)
_TRAILING_COMMA_RE = re.compile(r'("(?:\\.|[^"\\])*")|,(\s*[}\]])')


def _env_flag(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def strip_json_extensions(text: str) -> str:
    """Remove comments and trailing commas so the json module accepts the text"""
    text = _COMMENT_RE.sub(lambda m: m.group(1) or '', text)
    return _TRAILING_COMMA_RE.sub(lambda m: m.group(1) or m.group(2), text)


def _lower_keys(data: Dict[str, Any]) -> Dict[str, Any]:
    return {str(k).lower(): v for k, v in data.items()}


@dataclass
class Rule:
    """One pattern -> command mapping"""
    pattern: str
    command: str
    name: Optional[str] = None
    enabled: bool = True
    args: List[str] = field(default_factory=list)
    parameter: Optional[str] = None  # Legacy single raw argument string
    working_directory: Optional[str] = None
    pause_after_run: Optional[bool] = None  # None falls back to AppConfig.pause_after_run
    ignore_case: bool = True
    compiled: Optional[re.Pattern] = field(default=None, repr=False, compare=False)

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> 'Rule':
        if not isinstance(raw, dict):
            raise ConfigError(f"Rule must be an object, got {type(raw).__name__}")
        data = _lower_keys(raw)
        args = data.get('args') or []
        if not isinstance(args, list):
            raise ConfigError(f"Rule '{data.get('pattern', '')}' has non-list 'args'")
        enabled = data.get('enabled')
        ignore_case = data.get('ignorecase')
        return cls(
            pattern=data.get('pattern') or '',
            command=data.get('command') or '',
            name=data.get('name'),
            enabled=True if enabled is None else bool(enabled),
            args=[str(a) for a in args],
            parameter=data.get('parameter'),
            working_directory=data.get('workingdirectory'),
            pause_after_run=data.get('pauseafterrun'),
            ignore_case=True if ignore_case is None else bool(ignore_case),
        )

    @property
    def display_name(self) -> str:
        return self.name if self.name and self.name.strip() else self.pattern

    def effective_args(self) -> List[str]:
        """args, or the raw parameter string when no args are given"""
        if not self.args and self.parameter and self.parameter.strip():
            return [self.parameter]
        return list(self.args)

    def matches(self, text: str) -> bool:
        if self.compiled is None:
            self.compiled = compile_rule_pattern(self.pattern, self.ignore_case)
        return self.compiled.search(text) is not None


@dataclass
class AppConfig:
    """Centralized configuration for all cliprun components"""

    # Core settings
    config_path: str = DEFAULT_CONFIG_FILE
    log_file: Optional[str] = None
    verbosity: int = 0
    source: str = "clipboard"
    show_board: bool = False

    # Loaded from the config file
    poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS
    pause_after_run: bool = False
    rules: List[Rule] = field(default_factory=list)
    progress_prefixes: List[str] = field(default_factory=lambda: list(DEFAULT_PROGRESS_PREFIXES))
    already_done: List[Any] = field(default_factory=lambda: [list(t) for t in DEFAULT_ALREADY_DONE])

    @classmethod
    def from_env(cls) -> 'AppConfig':
        """Create configuration from environment variables"""
        config = cls()
        config.config_path = os.environ.get('CLIPRUN_CONFIG', DEFAULT_CONFIG_FILE)
        config.log_file = os.environ.get('CLIPRUN_LOG_FILE')
        config.verbosity = int(os.environ.get('CLIPRUN_VERBOSITY', '0'))
        config.source = os.environ.get('CLIPRUN_SOURCE', 'clipboard')
        config.show_board = _env_flag('CLIPRUN_SHOW_BOARD', False)
        config.poll_interval_ms = int(os.environ.get('CLIPRUN_POLL_INTERVAL_MS', str(DEFAULT_POLL_INTERVAL_MS)))
        config.pause_after_run = _env_flag('CLIPRUN_PAUSE_AFTER_RUN', False)
        return config

    def load_file(self, path: Optional[str] = None) -> 'AppConfig':
        """Read rules and settings from the JSON config file, then validate."""
        path = path or self.config_path
        config_file = Path(path)
        if not config_file.is_file():
            raise ConfigError(f"Config file not found: {config_file}")

        try:
            raw = json.loads(strip_json_extensions(config_file.read_text(encoding='utf-8')))
        except json.JSONDecodeError as e:
            raise ConfigError(f"Failed to parse {config_file}: {e}") from e
        if not isinstance(raw, dict):
            raise ConfigError(f"{config_file} must contain a JSON object")

        self.config_path = str(config_file)
        self.apply_dict(raw)
        self.validate()
        return self

    def apply_dict(self, raw: Dict[str, Any]) -> None:
        data = _lower_keys(raw)
        if 'pollintervalms' in data:
            self.poll_interval_ms = int(data['pollintervalms'])
        if 'pauseafterrun' in data:
            self.pause_after_run = bool(data['pauseafterrun'])
        self.rules = [Rule.from_dict(r) for r in data.get('rules') or []]

        classification = data.get('classification')
        if isinstance(classification, dict):
            classification = _lower_keys(classification)
            if 'progress_prefixes' in classification:
                self.progress_prefixes = classification['progress_prefixes']
            if 'already_done' in classification:
                self.already_done = classification['already_done']

    def validate(self) -> None:
        """Check rules and compile their patterns"""
        if not self.rules:
            raise ConfigError("No rules defined. Please add at least one rule.")
        for rule in self.rules:
            if not rule.pattern.strip():
                raise ConfigError("Rule has empty 'pattern'.")
            if not rule.command.strip():
                raise ConfigError(f"Rule '{rule.pattern}' has empty 'command'.")
            rule.compiled = compile_rule_pattern(rule.pattern, rule.ignore_case)
        self.poll_interval_ms = max(MIN_POLL_INTERVAL_MS, self.poll_interval_ms)
        self._validate_classification()

    def _validate_classification(self) -> None:
        """Prefixes are strings; already-done entries are a string or a list of strings"""
        if not isinstance(self.progress_prefixes, list):
            raise ConfigError("'classification.progress_prefixes' must be a list of strings.")
        for prefix in self.progress_prefixes:
            if not isinstance(prefix, str):
                raise ConfigError(f"Progress prefix {prefix!r} must be a string.")

        if not isinstance(self.already_done, list):
            raise ConfigError("'classification.already_done' must be a list.")
        for entry in self.already_done:
            terms = [entry] if isinstance(entry, str) else entry
            if not isinstance(terms, (list, tuple)) or not all(isinstance(t, str) for t in terms):
                raise ConfigError(f"Already-done entry {entry!r} must be a string or a list of strings.")

    def merge_with_args(self, args: Any) -> None:
        """Merge command-line arguments with configuration"""
        if getattr(args, 'config', None):
            self.config_path = args.config

        if getattr(args, 'log_file', None):
            self.log_file = args.log_file

        if getattr(args, 'verbose', None):
            self.verbosity = args.verbose

        if getattr(args, 'source', None):
            self.source = args.source

        if getattr(args, 'board', False):
            self.show_board = True

    def apply_overrides(self, args: Any) -> None:
        """Flags that must win over values read from the config file"""
        if getattr(args, 'poll_interval', None):
            self.poll_interval_ms = max(MIN_POLL_INTERVAL_MS, args.poll_interval)

        if getattr(args, 'pause_after_run', False):
            self.pause_after_run = True

    def build_classifier(self) -> LineClassifier:
        return LineClassifier(self.progress_prefixes, self.already_done)

    def enabled_rules(self) -> List[Rule]:
        return [r for r in self.rules if r.enabled]

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary"""
        return {
            'config_path': self.config_path,
            'log_file': self.log_file,
            'verbosity': self.verbosity,
            'source': self.source,
            'poll_interval_ms': self.poll_interval_ms,
            'pause_after_run': self.pause_after_run,
            'rules': len(self.rules),
        }


def load_config(path: str) -> AppConfig:
    """Convenience loader: environment defaults plus the given file"""
    return AppConfig.from_env().load_file(path)
