"""
pdfshrink - test configuration and fixtures

Ghostscript is replaced by tiny executable Python scripts, one per
behaviour, so the suite runs without Ghostscript installed.
"""
import io
import stat
import sys
from pathlib import Path
from typing import Callable

import pikepdf
import pytest
from fastapi.testclient import TestClient

from pdfshrink.core.settings import Settings
from pdfshrink.web.app import create_app

FAKE_GHOSTSCRIPT = '''\
#!{python}
import os
import shutil
import sys
import time

MODE = {mode!r}

args = sys.argv[1:]
output = next(a.split("=", 1)[1] for a in args if a.startswith("-sOutputFile="))
source = args[-1]

if MODE == "copy":
    shutil.copyfile(source, output)
elif MODE == "fail":
    sys.stderr.write("Error: invalid PDF structure\\n")
    sys.exit(1)
elif MODE == "noop":
    pass
elif MODE == "garbage":
    with open(output, "w") as f:
        f.write("this is not a pdf")
elif MODE == "grow":
    import pikepdf

    with pikepdf.open(source) as pdf:
        for _ in range(50):
            pdf.add_blank_page()
        pdf.save(output)
elif MODE == "hang":
    pid_file = os.path.join(os.path.dirname(os.path.abspath(__file__)), os.path.basename(output) + ".pid")
    with open(pid_file, "w") as f:
        f.write(str(os.getpid()))
    time.sleep(60)
'''


def make_pdf(pages: int = 1) -> bytes:
    """A small valid PDF with the given number of blank pages."""
    pdf = pikepdf.new()
    for _ in range(pages):
        pdf.add_blank_page(page_size=(612, 792))
    buf = io.BytesIO()
    pdf.save(buf)
    return buf.getvalue()


def page_count(data: bytes) -> int:
    with pikepdf.open(io.BytesIO(data)) as pdf:
        return len(pdf.pages)


@pytest.fixture
def sample_pdf() -> bytes:
    return make_pdf(pages=3)


@pytest.fixture
def fake_ghostscript(tmp_path: Path) -> Callable[[str], str]:
    """Factory writing a fake Ghostscript executable for a given mode."""
    if sys.platform == "win32":
        pytest.skip("fake Ghostscript scripts need a POSIX shebang")

    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()

    def factory(mode: str) -> str:
        script = bin_dir / f"gs-{mode}"
        script.write_text(FAKE_GHOSTSCRIPT.format(python=sys.executable, mode=mode))
        script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return str(script)

    return factory


@pytest.fixture
def upload_dir(tmp_path: Path) -> Path:
    return tmp_path / "uploads"


@pytest.fixture
def make_settings(upload_dir: Path, fake_ghostscript) -> Callable[..., Settings]:
    def factory(mode: str = "copy", **overrides) -> Settings:
        values = {
            "upload_dir": upload_dir,
            "ghostscript": fake_ghostscript(mode),
            "timeout_seconds": 10,
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return factory


@pytest.fixture
def make_client(make_settings) -> Callable[..., TestClient]:
    """Build a TestClient for an app using the given fake Ghostscript mode."""
    def factory(mode: str = "copy", **overrides) -> TestClient:
        app = create_app(make_settings(mode, **overrides))
        return TestClient(app, raise_server_exceptions=False)

    return factory
