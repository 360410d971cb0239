"""
Global test fixtures for ftr tests
"""
import pytest
import tempfile
import shutil
from pathlib import Path
from typing import Generator

from ftr.transfer.models import ReceiverConfig

PASS_KEY = "k1"


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files"""
    path = Path(tempfile.mkdtemp(prefix="ftr_test_"))
    yield path
    shutil.rmtree(path, ignore_errors=True)


@pytest.fixture
def drop_dir(temp_dir: Path) -> Path:
    """A fresh, not yet existing drop directory"""
    return temp_dir / "drop"


@pytest.fixture
def receiver_config(drop_dir: Path) -> ReceiverConfig:
    return ReceiverConfig(drop_dir=str(drop_dir), pass_key=PASS_KEY, port=9000)


@pytest.fixture
def sample_file(temp_dir: Path) -> Path:
    """Create a sample text file for testing"""
    file_path = temp_dir / "report.txt"
    file_path.write_text("quarterly numbers, all up\n")
    return file_path


@pytest.fixture
def sample_tree(temp_dir: Path) -> Path:
    """
    A small directory tree:

        project/
            README.md
            empty/
            src/main.py
            src/pkg/data.bin
    """
    root = temp_dir / "src_root" / "project"
    (root / "src" / "pkg").mkdir(parents=True)
    (root / "empty").mkdir()
    (root / "README.md").write_text("# project\n")
    (root / "src" / "main.py").write_text("print('hi')\n")
    (root / "src" / "pkg" / "data.bin").write_bytes(bytes(range(256)) * 64)
    return root


def tree_contents(root: Path) -> dict:
    """Map relative posix paths to file bytes (directories map to None)"""
    result = {}
    for path in sorted(root.rglob("*")):
        rel = path.relative_to(root).as_posix()
        result[rel] = None if path.is_dir() else path.read_bytes()
    return result
