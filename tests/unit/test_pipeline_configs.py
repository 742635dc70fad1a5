"""
Unit tests for pipeline configuration loading and validation.
"""

import json
from pathlib import Path

import pytest

from pipeline_configs import ExtractConfig


class TestExtractConfig:
    """Test defaults, layout and validation"""

    def test_defaults(self, tmp_path):
        config = ExtractConfig(root_dir=tmp_path)
        assert config.extensions == ['.ts', '.coffee', '.js']
        assert config.ast_extensions == ['.js']
        assert config.max_line_length == 500
        assert config.minified_density == 200.0
        assert config.list_buffer_limit == 50 * 1024 * 1024
        assert not config.compress
        assert not config.features_ast

    def test_layout(self, tmp_path):
        config = ExtractConfig(root_dir=str(tmp_path))
        assert config.root_dir == tmp_path
        assert config.current_dir == tmp_path / 'current'
        assert config.partials_dir == tmp_path / 'partials'
        assert config.tmp_dir == tmp_path / 'tmp'
        assert config.out_dir == tmp_path / 'out'
        assert config.rules_file == tmp_path / 'data' / 'code.excluded.txt'

    def test_explicit_rules_file(self, tmp_path):
        config = ExtractConfig(root_dir=tmp_path, rules_file=str(tmp_path / 'rules.txt'))
        assert config.rules_file == tmp_path / 'rules.txt'

    @pytest.mark.parametrize('overrides', [
        {'extensions': []},
        {'extensions': ['js']},
        {'ast_extensions': ['.py']},
        {'manifest_name': 'a/package.json'},
        {'max_line_length': 0},
        {'minified_density': -1},
        {'write_high_water': 0},
        {'read_chunk_size': 0},
        {'progress_interval': 0},
        {'compression_level': 17},
    ])
    def test_invalid_values(self, tmp_path, overrides):
        with pytest.raises(ValueError):
            ExtractConfig(root_dir=tmp_path, **overrides)

    def test_ast_enabled_for(self, tmp_path):
        config = ExtractConfig(root_dir=tmp_path)
        assert not config.ast_enabled_for('.js')
        config = ExtractConfig(root_dir=tmp_path, features_ast=True)
        assert config.ast_enabled_for('.js')
        assert not config.ast_enabled_for('.ts')


class TestConfigLoaders:
    """Test dict, JSON file and environment loaders"""

    def test_from_dict_nested_features(self, tmp_path):
        config = ExtractConfig.from_dict({'root_dir': tmp_path, 'features': {'ast': True}})
        assert config.features_ast

    def test_from_dict_extensions_only(self, tmp_path):
        config = ExtractConfig.from_dict({'root_dir': tmp_path, 'extensions': ['.ts']})
        assert config.ast_extensions == []

    def test_from_dict_unknown_key(self):
        with pytest.raises(ValueError, match='Unknown configuration keys'):
            ExtractConfig.from_dict({'colour': 'blue'})

    def test_from_json_file_resolves_relative_paths(self, tmp_path):
        path = tmp_path / 'conf' / 'extract.json'
        path.parent.mkdir()
        path.write_text(json.dumps({
            'root_dir': '../corpus',
            'compress': True,
            'extensions': ['.js'],
            'ast_extensions': ['.js'],
        }))
        config = ExtractConfig.from_json_file(path)
        assert config.root_dir == path.parent / '../corpus'
        assert config.rules_file == path.parent / '../corpus' / 'data' / 'code.excluded.txt'
        assert config.compress
        assert config.extensions == ['.js']

    def test_from_json_file_requires_object(self, tmp_path):
        path = tmp_path / 'extract.json'
        path.write_text('[1, 2]')
        with pytest.raises(ValueError):
            ExtractConfig.from_json_file(path)

    def test_from_env(self, tmp_path):
        config = ExtractConfig.from_env(environ={
            'CORPUS_EXTRACT_DIR': str(tmp_path),
            'CORPUS_EXTRACT_COMPRESS': 'yes',
            'CORPUS_EXTRACT_AST': '0',
            'CORPUS_EXTRACT_EXTENSIONS': '.js, .ts',
        })
        assert config.root_dir == tmp_path
        assert config.rules_file == tmp_path / 'data' / 'code.excluded.txt'
        assert config.compress
        assert not config.features_ast
        assert config.extensions == ['.js', '.ts']

    def test_from_env_overlays_base(self, tmp_path):
        base = ExtractConfig(root_dir=tmp_path, features_ast=True,
                             rules_file=tmp_path / 'rules.txt')
        config = ExtractConfig.from_env(base, environ={})
        assert config.features_ast
        assert config.rules_file == tmp_path / 'rules.txt'

    def test_from_env_new_root_moves_default_rules(self, tmp_path):
        base = ExtractConfig(root_dir=tmp_path / 'one')
        config = ExtractConfig.from_env(base, environ={'CORPUS_EXTRACT_DIR': str(tmp_path / 'two')})
        assert config.rules_file == Path(tmp_path / 'two' / 'data' / 'code.excluded.txt')

    def test_from_env_extensions_without_js(self):
        config = ExtractConfig.from_env(environ={'CORPUS_EXTRACT_EXTENSIONS': '.ts,.coffee'})
        assert config.extensions == ['.ts', '.coffee']
        assert config.ast_extensions == []
        assert not config.ast_enabled_for('.js')

    def test_from_env_extensions_keep_tracked_ast(self, tmp_path):
        base = ExtractConfig(root_dir=tmp_path, extensions=['.js', '.ts'],
                             ast_extensions=['.js', '.ts'])
        config = ExtractConfig.from_env(base, environ={'CORPUS_EXTRACT_EXTENSIONS': '.ts'})
        assert config.ast_extensions == ['.ts']

    def test_from_env_invalid_boolean(self):
        with pytest.raises(ValueError, match='Invalid boolean'):
            ExtractConfig.from_env(environ={'CORPUS_EXTRACT_COMPRESS': 'maybe'})
