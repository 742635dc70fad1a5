"""
Path exclusion rules.

Rule grammar, one rule per line:

- a leading ``*`` means the rule may start anywhere; a leading ``/`` is kept
  literally; any other first character anchors the rule to the start of the
  path or just after a ``/``
- the last character follows the same rule for the end of the path
- ``*`` inside a rule matches any run of characters, ``?`` exactly one
- every other punctuation character is literal

Compilation happens in two stages: literals are escaped first, then the
escaped wildcard tokens are expanded back into regex constructs.
"""

import logging
import re
from pathlib import Path
from typing import Iterable, List, Optional, Pattern, Sequence

from pipeline_errors import ExclusionRuleError

logger = logging.getLogger(__name__)

_FRONT_ANCHOR = '(?:/|^)'
_TAIL_ANCHOR = '(?:/|$)'
_LITERAL_RE = re.compile(r'[^\w\s]')


def rule_to_regex(rule: str) -> str:
    """Translate one rule into regex source"""
    fix_front = False
    fix_tail = False
    if rule.startswith('*'):
        rule = rule[1:]
    elif not rule.startswith('/'):
        fix_front = True
    if rule.endswith('*'):
        rule = rule[:-1]
    elif not rule.endswith('/'):
        fix_tail = True

    body = _LITERAL_RE.sub(lambda m: '\\' + m.group(0), rule)
    body = body.replace('\\*', '.*').replace('\\?', '.')

    if fix_front:
        body = _FRONT_ANCHOR + body
    if fix_tail:
        body = body + _TAIL_ANCHOR
    return body


def compile_rule(rule: str, line_number: Optional[int] = None) -> Pattern:
    try:
        return re.compile(rule_to_regex(rule))
    except re.error as e:
        raise ExclusionRuleError(f"Cannot compile exclusion rule {rule!r}",
                                 rule=rule, line_number=line_number, cause=e)


class PatternCompiler:
    """Immutable set of compiled exclusion rules"""

    def __init__(self, patterns: Sequence[Pattern]):
        self._patterns = tuple(patterns)

    @classmethod
    def from_lines(cls, lines: Iterable[str]) -> 'PatternCompiler':
        patterns = []
        for number, line in enumerate(lines, 1):
            line = line.rstrip('\r\n')
            if not line:
                continue
            patterns.append(compile_rule(line, number))
        return cls(patterns)

    @property
    def patterns(self) -> Sequence[Pattern]:
        return self._patterns

    def __len__(self) -> int:
        return len(self._patterns)

    def matches(self, path: str) -> bool:
        return any(pattern.search(path) for pattern in self._patterns)

    def filter(self, paths: Iterable[str]) -> List[str]:
        """Paths not matched by any rule, in their original order"""
        return [path for path in paths if not self.matches(path)]


class ExclusionRules:
    """Lazily loaded exclusion rules from a rules file.

    The first successful ``load()`` is kept for the lifetime of the object;
    later calls return it without touching the file again. A failed load
    leaves nothing cached.
    """

    def __init__(self, rules_file: Path):
        self.rules_file = Path(rules_file)
        self._compiled: Optional[PatternCompiler] = None

    @property
    def loaded(self) -> bool:
        return self._compiled is not None

    def load(self) -> PatternCompiler:
        if self._compiled is not None:
            return self._compiled
        try:
            with open(self.rules_file, 'r', encoding='utf-8') as f:
                lines = f.read().split('\n')
        except (OSError, UnicodeDecodeError) as e:
            raise ExclusionRuleError(f"Cannot read exclusion rules from {self.rules_file}", cause=e)

        self._compiled = PatternCompiler.from_lines(lines)
        logger.info(f"Loaded {len(self._compiled)} exclusion rules from {self.rules_file}")
        return self._compiled
