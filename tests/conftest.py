from __future__ import annotations

import shutil
import subprocess
import sys
from pathlib import Path

import pytest

_REPO = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(_REPO / "tools"))

from abi_config import Policy  # noqa: E402

_LIBFOO_C = """\
int do_work(void) { return 42; }
__attribute__((weak)) int soft_default(void) { return 1; }
extern void maybe_hook(void) __attribute__((weak));
int call_hook(void) { if (maybe_hook) maybe_hook(); return 0; }
"""

_MAIN_C = """\
int do_work(void);
int main(void) { return do_work() == 42 ? 0 : 1; }
"""


@pytest.fixture
def hermetic_policy() -> Policy:
    """Policy that never looks at the host's library directories."""
    policy = Policy()
    policy.disable_search()
    return policy


@pytest.fixture(scope="session")
def cc() -> str:
    """Path to a host C compiler.

    Skips the requesting test if none is on PATH.
    """
    for name in ("cc", "gcc", "clang"):
        path = shutil.which(name)
        if path is not None:
            return path
    pytest.skip("no C compiler found on PATH")


@pytest.fixture(scope="session")
def elf_tree(cc, tmp_path_factory) -> Path:
    """Directory with libfoo.so (no SONAME), an executable using it, and an object file."""
    src = tmp_path_factory.mktemp("src")
    out = tmp_path_factory.mktemp("tree")
    (src / "libfoo.c").write_text(_LIBFOO_C)
    (src / "main.c").write_text(_MAIN_C)

    def _run(*args: str) -> None:
        result = subprocess.run([cc, *args], capture_output=True, text=True)
        if result.returncode != 0:
            pytest.skip(f"compiler failed: {result.stderr.strip()}")

    _run("-shared", "-fPIC", "-o", str(out / "libfoo.so"), str(src / "libfoo.c"))
    _run("-o", str(out / "app"), str(src / "main.c"), f"-L{out}", "-lfoo")
    _run("-c", "-o", str(out / "main.o"), str(src / "main.c"))
    return out
