import asyncio

import pytest

from conftest import make_pdf, page_count
from pdfshrink.core.errors import CompressionError, FileStoreError, LaunchError
from pdfshrink.core.ghostscript import GhostscriptCompressor
from pdfshrink.core.options import CompressionOptions
from pdfshrink.core.pipeline import CompressionPipeline, download_name
from pdfshrink.core.storage import TempFileStore


@pytest.fixture
def store(upload_dir):
    store = TempFileStore(upload_dir)
    store.ensure_directory()
    return store


@pytest.fixture
def make_pipeline(store, fake_ghostscript):
    def factory(mode="copy", timeout=10.0):
        compressor = GhostscriptCompressor(fake_ghostscript(mode), CompressionOptions(timeout=timeout))
        return CompressionPipeline(store, compressor)

    return factory


def stored_upload(store, data):
    upload_id = store.new_id()
    path = store.path_for(upload_id)
    path.write_bytes(data)
    return upload_id, path


@pytest.mark.asyncio
async def test_run_success(make_pipeline, store):
    pipeline = make_pipeline("copy")
    data = make_pdf(pages=4)
    job = pipeline.create_job(*stored_upload(store, data))

    result = await pipeline.run(job)

    assert not job.upload_path.exists()
    assert job.input_path.name == f"{job.id}.pdf"
    assert job.output_path.name == f"compressed_{job.id}.pdf"
    assert result.pages == 4
    assert result.original_size == len(data)
    assert result.deliver_path == job.output_path
    assert page_count(result.deliver_path.read_bytes()) == 4

    pipeline.cleanup(job)
    assert store.listing() == []


@pytest.mark.asyncio
async def test_larger_output_delivers_original(make_pipeline, store):
    pipeline = make_pipeline("grow")
    data = make_pdf(pages=1)
    job = pipeline.create_job(*stored_upload(store, data))

    result = await pipeline.run(job)

    assert result.compressed_size > result.original_size
    assert result.deliver_path == job.input_path
    assert result.delivered_size == len(data)
    assert result.reduction == 0.0
    pipeline.cleanup(job)
    assert store.listing() == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "mode, error_type, message",
    [
        ("fail", CompressionError, "Error: invalid PDF structure"),
        ("noop", CompressionError, "no output produced"),
        ("garbage", CompressionError, "not a readable PDF"),
    ],
)
async def test_failures_clean_up(make_pipeline, store, mode, error_type, message):
    pipeline = make_pipeline(mode)
    job = pipeline.create_job(*stored_upload(store, make_pdf()))

    with pytest.raises(error_type) as exc_info:
        await pipeline.run(job)

    assert message in exc_info.value.message
    assert job.cleaned
    assert store.listing() == []


@pytest.mark.asyncio
async def test_launch_error_cleans_up(store, tmp_path):
    pipeline = CompressionPipeline(store, GhostscriptCompressor(str(tmp_path / "missing-gs")))
    job = pipeline.create_job(*stored_upload(store, make_pdf()))

    with pytest.raises(LaunchError):
        await pipeline.run(job)

    assert store.listing() == []


@pytest.mark.asyncio
async def test_missing_upload_is_file_store_error(make_pipeline, store):
    pipeline = make_pipeline("copy")
    job = pipeline.create_job(store.new_id(), store.path_for("gone"))

    with pytest.raises(FileStoreError) as exc_info:
        await pipeline.run(job)

    assert str(store.directory) not in exc_info.value.message


@pytest.mark.asyncio
async def test_timeout_cleans_up(make_pipeline, store):
    pipeline = make_pipeline("hang", timeout=2)
    job = pipeline.create_job(*stored_upload(store, make_pdf()))

    with pytest.raises(CompressionError):
        await pipeline.run(job)

    assert store.listing() == []


@pytest.mark.asyncio
async def test_cancellation_cleans_up(make_pipeline, store, tmp_path):
    pipeline = make_pipeline("hang")
    job = pipeline.create_job(*stored_upload(store, make_pdf()))

    task = asyncio.create_task(pipeline.run(job))
    for _ in range(200):
        if any((tmp_path / "bin").glob("*.pid")):
            break
        await asyncio.sleep(0.05)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert job.cleaned
    assert not job.input_path.exists()
    assert store.listing() == []


@pytest.mark.asyncio
async def test_diagnostics_paths_are_redacted(store, tmp_path):
    script = tmp_path / "gs-echo"
    script.write_text(
        "#!/bin/sh\n"
        'for last; do :; done\n'
        'echo "Error: cannot open $last" >&2\n'
        "exit 2\n"
    )
    script.chmod(0o755)
    pipeline = CompressionPipeline(store, GhostscriptCompressor(str(script)))
    job = pipeline.create_job(*stored_upload(store, make_pdf()))

    with pytest.raises(CompressionError) as exc_info:
        await pipeline.run(job)

    message = exc_info.value.message
    assert "cannot open input.pdf" in message
    assert str(store.directory) not in message
    assert str(exc_info.value) == message


def test_cleanup_runs_once(make_pipeline, store, monkeypatch):
    pipeline = make_pipeline("copy")
    job = pipeline.create_job(*stored_upload(store, make_pdf()))

    removed = []
    original_remove = store.remove
    monkeypatch.setattr(store, "remove", lambda path: (removed.append(path), original_remove(path)))

    pipeline.cleanup(job)
    pipeline.cleanup(job)

    assert removed == [job.upload_path]
    assert store.listing() == []


@pytest.mark.parametrize(
    "filename, expected",
    [
        ("report.pdf", "compressed_report.pdf"),
        ("../../etc/passwd.pdf", "compressed_passwd.pdf"),
        ("C:\\Users\\me\\scan.pdf", "compressed_scan.pdf"),
        ("", "compressed_document.pdf"),
        (None, "compressed_document.pdf"),
    ],
)
def test_download_name(filename, expected):
    assert download_name(filename) == expected
