"""
Unit tests for exclusion rule compilation and loading
=====================================================

Tests for pipeline/stages/exclusions.py including:
- Anchoring of rule starts and ends at path component boundaries
- ``*`` and ``?`` wildcards, literal punctuation
- Order-preserving filtering
- Single-load semantics and failure modes of ExclusionRules
"""

import re
from unittest.mock import patch

import pytest

from pipeline.stages.exclusions import (
    ExclusionRules, PatternCompiler, compile_rule, rule_to_regex
)
from pipeline_errors import ExclusionRuleError


def compiled(*rules):
    return PatternCompiler.from_lines(rules)


class TestRuleToRegex:
    """Test translation of single rules"""

    def test_plain_rule_anchored_both_ends(self):
        assert rule_to_regex('test') == '(?:/|^)test(?:/|$)'

    def test_leading_star_drops_front_anchor(self):
        assert rule_to_regex('*.map') == r'\.map(?:/|$)'

    def test_slashes_suppress_anchors(self):
        assert rule_to_regex('/docs/') == r'\/docs\/'

    def test_inner_wildcards_expanded(self):
        assert rule_to_regex('a*b?c') == '(?:/|^)a.*b.c(?:/|$)'


class TestPatternCompiler:
    """Test matching semantics of compiled rules"""

    @pytest.mark.parametrize('path,expected', [
        ('pkg.tgz/test/a.js', True),
        ('pkg.tgz/lib/test', True),
        ('pkg.tgz/testing/a.js', False),
        ('pkg.tgz/contest/a.js', False),
    ])
    def test_component_anchoring(self, path, expected):
        assert compiled('test').matches(path) is expected

    def test_suffix_rule(self):
        rules = compiled('*.min.js')
        assert rules.matches('pkg.tgz/dist/app.min.js')
        assert not rules.matches('pkg.tgz/dist/app.min.jsx')
        assert not rules.matches('pkg.tgz/dist/appxminxjs')

    def test_question_mark_matches_one_character(self):
        rules = compiled('a?c')
        assert rules.matches('pkg.tgz/abc/x.js')
        assert not rules.matches('pkg.tgz/ac/x.js')
        assert not rules.matches('pkg.tgz/abbc/x.js')

    def test_regex_metacharacters_are_literal(self):
        rules = compiled('a+b', '(x)')
        assert rules.matches('pkg.tgz/a+b/i.js')
        assert not rules.matches('pkg.tgz/aab/i.js')
        assert rules.matches('pkg.tgz/(x)/i.js')
        assert not rules.matches('pkg.tgz/x/i.js')

    def test_slash_delimited_rule_matches_inside_path(self):
        rules = compiled('/docs/')
        assert rules.matches('pkg.tgz/docs/a.md')
        assert not rules.matches('docs/a.md')

    def test_filter_preserves_order(self):
        rules = compiled('node_modules', '*.min.js')
        paths = [
            'p.tgz/z.js',
            'p.tgz/node_modules/dep/index.js',
            'p.tgz/a.js',
            'p.tgz/a.min.js',
            'p.tgz/m.ts',
        ]
        assert rules.filter(paths) == ['p.tgz/z.js', 'p.tgz/a.js', 'p.tgz/m.ts']

    def test_blank_lines_skipped(self):
        rules = PatternCompiler.from_lines(['test', '', 'docs\r', ''])
        assert len(rules) == 2
        assert rules.matches('p.tgz/docs/x')

    def test_no_rules_keeps_everything(self):
        rules = PatternCompiler.from_lines([])
        assert rules.filter(['a', 'b']) == ['a', 'b']

    def test_uncompilable_rule_raises(self):
        with patch('pipeline.stages.exclusions.rule_to_regex', return_value='('):
            with pytest.raises(ExclusionRuleError) as exc_info:
                compile_rule('broken', line_number=3)
        assert exc_info.value.rule == 'broken'
        assert exc_info.value.line_number == 3
        assert isinstance(exc_info.value.cause, re.error)


class TestExclusionRules:
    """Test lazy loading of the rules file"""

    def test_loads_once(self, tmp_path):
        rules_file = tmp_path / 'rules.txt'
        rules_file.write_text('test\nnode_modules\n')
        rules = ExclusionRules(rules_file)
        assert not rules.loaded

        first = rules.load()
        rules_file.unlink()
        second = rules.load()

        assert rules.loaded
        assert first is second
        assert len(first) == 2

    def test_missing_file_raises(self, tmp_path):
        rules = ExclusionRules(tmp_path / 'missing.txt')
        with pytest.raises(ExclusionRuleError):
            rules.load()
        assert not rules.loaded

    def test_undecodable_file_raises(self, tmp_path):
        rules_file = tmp_path / 'rules.txt'
        rules_file.write_bytes(b'\xff\xfe\xfa\n')
        with pytest.raises(ExclusionRuleError):
            ExclusionRules(rules_file).load()
