from __future__ import annotations

import io
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List

import pytest

from runtimescout.core.errors import ResolutionError
from runtimescout.core.types import Location

_ELF_HEADER = b"\x7fELF\x02\x01\x01\x00" + b"\x00" * 8

POSITIVE_FILES: Dict[str, bytes] = {
    "libpython3.7.so": _ELF_HEADER + b"\x00libc.so.6\x00Python runtime\x00\xff\xfe3.7.4a-vZ9\x00\x01",
    "python3.6": _ELF_HEADER + b"\x00Py_Initialize\x00\x003.6.3a-vZ9\x00\x00\x90\x90",
    "patchlevel.h": (
        b"/* Python version identification scheme. */\n"
        b"#define PY_MAJOR_VERSION\t3\n"
        b"#define PY_MINOR_VERSION\t9\n"
        b'#define PY_VERSION      \t"3.9-aZ5"\n'
    ),
    "go": _ELF_HEADER + b"\x00runtime.main\x00\xc3go1.14\x00\x00",
    "VERSION": b"go1.15",
    "busybox": _ELF_HEADER + b"\x00\x00BusyBox v3.33.3 (2021-03-30 12:00:00 UTC)\x00",
}

NEGATIVE_FILES: Dict[str, bytes] = {
    "libpython3.7.so": _ELF_HEADER + b"\x00Python runtime\x003.6.9\x00",
    "python3.6": _ELF_HEADER + b"\x00Py_Initialize\x00",
    "patchlevel.h": b"#define PY_MAJOR_VERSION 3\n",
    "go": _ELF_HEADER + b"\x00go version unknown\x00",
    "VERSION": b"1.15\n",
    "busybox": _ELF_HEADER + b"\x00BusyBox v\x00",
    "README.txt": b"python3.8 go1.16 BusyBox v1.2.3\n",
    "random.bin": bytes(range(256)) * 4,
}


def _write_tree(root: Path, files: Dict[str, bytes]) -> Path:
    root.mkdir(parents=True, exist_ok=True)
    for name, content in files.items():
        target = root / name
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content)
    return root


@pytest.fixture
def positive_tree(tmp_path: Path) -> Path:
    return _write_tree(tmp_path / "positive", POSITIVE_FILES)


@pytest.fixture
def negative_tree(tmp_path: Path) -> Path:
    return _write_tree(tmp_path / "negative", NEGATIVE_FILES)


class MemoryResolver:
    """In-memory resolver that records every open."""

    concurrent_safe = True

    def __init__(self, files: Dict[str, bytes]) -> None:
        self.files = dict(files)
        self.opened: List[str] = []
        self.closed: List[str] = []
        self.failures: Dict[str, Exception] = {}

    def all_locations(self) -> Iterator[Location]:
        for path in sorted(self.files):
            yield Location(path)

    @contextmanager
    def file_contents(self, location: Location) -> Iterator[io.BytesIO]:
        self.opened.append(location.real_path)
        failure = self.failures.get(location.real_path)
        if failure is not None:
            raise failure
        if location.real_path not in self.files:
            raise ResolutionError(location.real_path, "missing")
        handle = io.BytesIO(self.files[location.real_path])
        try:
            yield handle
        finally:
            handle.close()
            self.closed.append(location.real_path)


@pytest.fixture
def memory_resolver_factory():
    return MemoryResolver


@pytest.fixture(autouse=True)
def _restore_runtimescout_logger():
    logger = logging.getLogger("runtimescout")
    handlers = list(logger.handlers)
    level = logger.level
    propagate = logger.propagate
    yield
    for handler in list(logger.handlers):
        if handler not in handlers:
            logger.removeHandler(handler)
            handler.close()
    logger.setLevel(level)
    logger.propagate = propagate
