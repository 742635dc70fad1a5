"""
Corpus Extract Configuration
============================

Settings for the partial builder, the orchestrator and the totals
aggregation, plus loaders from dicts, JSON files and the environment.
"""

import json
import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

ENV_PREFIX = 'CORPUS_EXTRACT_'

DEFAULT_EXTENSIONS = ['.ts', '.coffee', '.js']
DEFAULT_AST_EXTENSIONS = ['.js']

_TRUE_VALUES = {'1', 'true', 'yes', 'on'}
_FALSE_VALUES = {'0', 'false', 'no', 'off', ''}


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Invalid boolean value: {value!r}")


@dataclass
class ExtractConfig:
    """Configuration settings for the corpus extract pipeline"""

    root_dir: Path = Path('.')
    rules_file: Optional[Path] = None

    # Tracked artifacts
    extensions: List[str] = field(default_factory=lambda: list(DEFAULT_EXTENSIONS))
    ast_extensions: List[str] = field(default_factory=lambda: list(DEFAULT_AST_EXTENSIONS))
    manifest_name: str = 'package.json'

    # Feature flags
    compress: bool = False
    features_ast: bool = False

    # Dump heuristics
    max_line_length: int = 500
    minified_density: float = 200.0

    # Resource bounds
    list_buffer_limit: int = 50 * 1024 * 1024  # 50MB of tar listing output
    write_high_water: int = 64 * 1024          # 64KB buffered before drain
    read_chunk_size: int = 64 * 1024           # 64KB reads
    compression_level: int = 0

    # Logging
    progress_interval: int = 10000

    def __post_init__(self) -> None:
        """Normalize paths and validate configuration parameters"""
        self.root_dir = Path(self.root_dir)
        if self.rules_file is None:
            self.rules_file = self.root_dir / 'data' / 'code.excluded.txt'
        else:
            self.rules_file = Path(self.rules_file)

        if not self.extensions:
            raise ValueError("extensions cannot be empty")
        for ext in list(self.extensions) + list(self.ast_extensions):
            if not ext.startswith('.'):
                raise ValueError(f"Extension must start with '.': {ext!r}")
        unknown = [ext for ext in self.ast_extensions if ext not in self.extensions]
        if unknown:
            raise ValueError(f"ast_extensions must be tracked extensions: {unknown}")
        if not self.manifest_name or '/' in self.manifest_name:
            raise ValueError(f"Invalid manifest_name: {self.manifest_name!r}")

        if self.max_line_length <= 0:
            raise ValueError("max_line_length must be positive")
        if self.minified_density <= 0:
            raise ValueError("minified_density must be positive")
        if self.list_buffer_limit <= 0:
            raise ValueError("list_buffer_limit must be positive")
        if self.write_high_water <= 0:
            raise ValueError("write_high_water must be positive")
        if self.read_chunk_size <= 0:
            raise ValueError("read_chunk_size must be positive")
        if self.progress_interval <= 0:
            raise ValueError("progress_interval must be positive")
        if self.compression_level < 0 or self.compression_level > 16:
            raise ValueError("compression_level must be between 0 and 16")

    # Layout

    @property
    def current_dir(self) -> Path:
        return self.root_dir / 'current'

    @property
    def partials_dir(self) -> Path:
        return self.root_dir / 'partials'

    @property
    def tmp_dir(self) -> Path:
        return self.root_dir / 'tmp'

    @property
    def out_dir(self) -> Path:
        return self.root_dir / 'out'

    @property
    def lock_file(self) -> Path:
        return self.root_dir / '.extract.lock'

    # Loaders

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ExtractConfig':
        """Build a config from a dict, accepting the nested ``features`` form"""
        data = dict(data)
        features = data.pop('features', None)
        if isinstance(features, dict) and 'ast' in features:
            data.setdefault('features_ast', bool(features['ast']))

        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown configuration keys: {sorted(unknown)}")
        if 'extensions' in data and 'ast_extensions' not in data:
            data['ast_extensions'] = [e for e in DEFAULT_AST_EXTENSIONS if e in (data['extensions'] or [])]
        return cls(**data)

    @classmethod
    def from_json_file(cls, path: Path) -> 'ExtractConfig':
        """Load configuration from a JSON file; relative paths resolve against it"""
        path = Path(path)
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Configuration file must hold a JSON object: {path}")

        for key in ('root_dir', 'rules_file'):
            if key in data and data[key] is not None and not Path(data[key]).is_absolute():
                data[key] = path.parent / data[key]
        logger.debug(f"Loaded configuration from {path}")
        return cls.from_dict(data)

    @classmethod
    def from_env(cls, base: Optional['ExtractConfig'] = None,
                 environ: Optional[Dict[str, str]] = None) -> 'ExtractConfig':
        """Overlay ``CORPUS_EXTRACT_*`` environment variables on a base config"""
        environ = os.environ if environ is None else environ
        values = dict(base.__dict__) if base is not None else {}
        if base is not None and base.rules_file == base.root_dir / 'data' / 'code.excluded.txt':
            # Let a new root_dir pick its own default rules file
            values['rules_file'] = None

        overrides = {
            'DIR': ('root_dir', Path),
            'RULES': ('rules_file', Path),
            'COMPRESS': ('compress', _parse_bool),
            'AST': ('features_ast', _parse_bool),
            'EXTENSIONS': ('extensions', lambda v: [e.strip() for e in v.split(',') if e.strip()]),
        }
        for suffix, (key, convert) in overrides.items():
            raw = environ.get(ENV_PREFIX + suffix)
            if raw is not None:
                values[key] = convert(raw)
        if ENV_PREFIX + 'EXTENSIONS' in environ:
            # Tree dumps stay limited to the extensions still tracked
            ast_extensions = values.get('ast_extensions', DEFAULT_AST_EXTENSIONS)
            values['ast_extensions'] = [e for e in ast_extensions if e in values['extensions']]
        return cls(**values)

    def ast_enabled_for(self, ext: str) -> bool:
        return self.features_ast and ext in self.ast_extensions
