"""
Shared fixtures for the corpus extract test suite.
"""

import fnmatch
import io
import shutil
import subprocess
import sys
import tarfile
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from pipeline.stages.archive import ArchiveLister  # noqa: E402
from pipeline_configs import ExtractConfig  # noqa: E402
from pipeline_errors import ArchiveToolError  # noqa: E402


def _has_gnu_tar() -> bool:
    tar = shutil.which('tar')
    if tar is None:
        return False
    try:
        result = subprocess.run([tar, '--version'], capture_output=True, text=True, timeout=10)
    except (OSError, subprocess.SubprocessError):
        return False
    return 'GNU tar' in result.stdout


HAS_GNU_TAR = _has_gnu_tar()


class FakeLister(ArchiveLister):
    """Serves archive members from memory instead of running tar"""

    def __init__(self, members):
        super().__init__()
        self.members = dict(members)
        self.list_calls = 0
        self.extract_calls = []

    async def list(self, archive):
        self.list_calls += 1
        return sorted(self.members)

    async def extract(self, archive, dest, patterns):
        self.extract_calls.append(list(patterns))
        nested = {name: content for name, content in self.members.items() if '/' in name}
        unmatched = [p for p in patterns if not fnmatch.filter(nested, p)]
        if unmatched:
            stderr = ''.join(f"tar: {p}: Not found in archive\n" for p in unmatched)
            raise ArchiveToolError('tar exited with status 2', returncode=2, stderr=stderr)
        for name, content in nested.items():
            if not any(fnmatch.fnmatch(name, p) for p in patterns):
                continue
            target = Path(dest) / name.split('/', 1)[1]
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content)


@pytest.fixture
def gnu_tar():
    if not HAS_GNU_TAR:
        pytest.skip("GNU tar is required")


@pytest.fixture
def extract_root(tmp_path):
    """Root directory with an empty current/ and an empty rules file"""
    root = tmp_path / 'root'
    (root / 'current').mkdir(parents=True)
    (root / 'data').mkdir()
    (root / 'data' / 'code.excluded.txt').write_text('')
    return root


@pytest.fixture
def write_rules(extract_root):
    def _write(*rules):
        (extract_root / 'data' / 'code.excluded.txt').write_text('\n'.join(rules) + '\n')
    return _write


@pytest.fixture
def make_config(extract_root):
    def _make(**overrides):
        overrides.setdefault('root_dir', extract_root)
        return ExtractConfig(**overrides)
    return _make


@pytest.fixture
def make_archive(extract_root):
    """Write current/<package_id> as a gzipped tarball of the given members"""
    def _make(package_id, members):
        path = extract_root / 'current' / package_id
        with tarfile.open(path, 'w:gz') as tar:
            for name, content in members.items():
                data = content.encode('utf-8')
                info = tarfile.TarInfo(name)
                info.size = len(data)
                info.mode = 0o644
                tar.addfile(info, io.BytesIO(data))
        return path
    return _make


@pytest.fixture
def fake_lister():
    return FakeLister
