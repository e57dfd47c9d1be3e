"""
Pytest configuration and fixtures for dvsraw tests.
"""

import pytest
import sys
from pathlib import Path
import tempfile
import shutil

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root / "python"))
sys.path.insert(0, str(Path(__file__).parent))

from stream_helpers import EVT2_HEADER, EVT3_HEADER, evt2_cd, evt2_time_high, evt3_word  # noqa: E402


# Test markers
def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')")
    config.addinivalue_line("markers", "integration: marks tests as integration tests")


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    temp_dir = tempfile.mkdtemp()
    yield Path(temp_dir)
    shutil.rmtree(temp_dir)


@pytest.fixture
def write_recording(temp_dir):
    """Write ``header`` text followed by ``body`` bytes to a file in temp_dir."""

    def _write(name, header, body=b""):
        path = temp_dir / name
        path.write_bytes(header.encode("ascii") + body)
        return path

    return _write


@pytest.fixture
def evt2_recording(write_recording):
    """EVT2 file: TimeHigh(0) then CD(ts=3, x=5, y=10, ON), then TimeHigh(1) and CD(ts=70, x=6, y=11, OFF)."""
    body = evt2_time_high(0) + evt2_cd(3, 5, 10, 1) + evt2_time_high(1) + evt2_cd(6, 6, 11, 0)
    return write_recording("recording.raw", EVT2_HEADER, body)


@pytest.fixture
def evt3_recording(write_recording):
    """EVT3 file with two events: (640, 360, ON) at 0x123456us and (100, 200, OFF) at 0x123567us."""
    words = [
        evt3_word(0x8, 0x123),
        evt3_word(0x6, 0x456),
        evt3_word(0x0, 360),
        evt3_word(0x2, (1 << 11) | 640),
        evt3_word(0x6, 0x567),
        evt3_word(0x0, 200),
        evt3_word(0x2, 100),
    ]
    return write_recording("recording_evt3.raw", EVT3_HEADER, b"".join(words))
