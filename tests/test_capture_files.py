import os
from pathlib import Path

import pytest

from media_gate.helpers import capture_files
from media_gate.helpers.capture_files import (
    write_base64_to_file,
    write_camera_clip_payload_to_file,
    write_camera_snap_payload_to_file,
    write_screen_record_payload_to_file,
    write_url_to_file,
)
from media_gate.helpers.capture_payloads import (
    parse_camera_clip_payload,
    parse_camera_snap_payload,
    parse_screen_record_payload,
)
from media_gate.helpers.media_errors import BadEncoding, SchemeRejected
from media_gate.helpers.media_safety import resolve_sandboxed_media_source


async def test_writes_camera_clip_payload_to_temp_path(tmp_path):
    payload = parse_camera_clip_payload({"format": "mp4", "base64": "aGk=", "durationMs": 200, "hasAudio": False})
    out = await write_camera_clip_payload_to_file(payload, facing="front", tmp_dir=str(tmp_path), correlation_id="clip1")
    assert out == os.path.join(str(tmp_path), "openclaw-camera-clip-front-clip1.mp4")
    assert Path(out).read_text() == "hi"


async def test_retry_with_same_id_overwrites_same_file(tmp_path):
    first = parse_camera_snap_payload({"format": "jpg", "base64": "Zmlyc3Q="})
    second = parse_camera_snap_payload({"format": "jpg", "base64": "c2Vjb25k"})
    a = await write_camera_snap_payload_to_file(first, "back", tmp_dir=str(tmp_path), correlation_id="r1")
    b = await write_camera_snap_payload_to_file(second, "back", tmp_dir=str(tmp_path), correlation_id="r1")
    assert a == b
    assert Path(b).read_text() == "second"
    assert len(list(tmp_path.iterdir())) == 1


async def test_writes_base64_to_file(tmp_path):
    out = tmp_path / "x.bin"
    written = await write_base64_to_file(str(out), "aGk=")
    assert written == 2
    assert out.read_text() == "hi"


async def test_base64_with_line_breaks_is_accepted(tmp_path):
    out = tmp_path / "x.bin"
    await write_base64_to_file(str(out), "aGVs\nbG8=\n")
    assert out.read_bytes() == b"hello"


@pytest.mark.parametrize("data, expected", [("aGk", b"hi"), ("aA", b"h"), ("aGVs\nbG8", b"hello")])
async def test_unpadded_base64_is_accepted(tmp_path, data, expected):
    out = tmp_path / "x.bin"
    assert await write_base64_to_file(str(out), data) == len(expected)
    assert out.read_bytes() == expected


@pytest.mark.parametrize("data", ["not base64!", "a", "@@@@"])
async def test_bad_base64_is_rejected_without_writing(tmp_path, data):
    out = tmp_path / "x.bin"
    with pytest.raises(BadEncoding, match="invalid base64"):
        await write_base64_to_file(str(out), data)
    assert not out.exists()


async def test_missing_directory_is_not_created(tmp_path):
    out = tmp_path / "missing" / "x.bin"
    with pytest.raises(FileNotFoundError):
        await write_base64_to_file(str(out), "aGk=")


async def test_writes_url_payload_to_file(tmp_path, stub_client_session, fake_response):
    session = stub_client_session(fake_response("url-content", url="https://example.com/clip.mp4"))
    out = tmp_path / "x.bin"
    await write_url_to_file(str(out), "https://example.com/clip.mp4")
    assert out.read_text() == "url-content"
    assert session.requested == ["https://example.com/clip.mp4"]


async def test_rejects_non_https_url_payload():
    with pytest.raises(SchemeRejected, match="(?i)only https"):
        await write_url_to_file("/tmp/ignored", "http://example.com/x.bin")


async def test_screen_record_prefers_inline_base64(tmp_path, monkeypatch):
    async def no_fetch(*args, **kwargs):
        raise AssertionError("fetch should not be used")

    monkeypatch.setattr(capture_files.secure_fetch, "fetch_to_file", no_fetch)
    payload = parse_screen_record_payload({"format": "mp4", "base64": "Zm9v", "url": "https://example.com/r.mp4"})
    out = await write_screen_record_payload_to_file(payload, tmp_dir=str(tmp_path), correlation_id="s1")
    assert out == os.path.join(str(tmp_path), "openclaw-screen-record-s1.mp4")
    assert Path(out).read_text() == "foo"


async def test_screen_record_url_goes_through_fetcher(tmp_path, stub_client_session, fake_response):
    stub_client_session(fake_response(b"recording", url="https://example.com/r.mp4"))
    payload = parse_screen_record_payload({"format": "mp4", "url": "https://example.com/r.mp4"})
    out = await write_screen_record_payload_to_file(payload, tmp_dir=str(tmp_path), correlation_id="s2")
    assert Path(out).read_bytes() == b"recording"


async def test_materialized_capture_resolves_as_trusted_media(isolated_roots):
    payload = parse_camera_snap_payload({"format": "jpg", "base64": "aGk=", "width": 1, "height": 1})
    out = await write_camera_snap_payload_to_file(payload, "front", correlation_id="m1")
    assert os.path.dirname(out) == isolated_roots["temp"]
    assert resolve_sandboxed_media_source(out, isolated_roots["sandbox"]) == out


async def test_base64_write_uses_async_file_io(tmp_path, monkeypatch):
    opened = []
    real_open = capture_files.aiofiles.open

    def tracking_open(path, *args, **kwargs):
        opened.append(path)
        return real_open(path, *args, **kwargs)

    monkeypatch.setattr(capture_files.aiofiles, "open", tracking_open)
    out = tmp_path / "x.bin"
    await write_base64_to_file(str(out), "aGk=")
    assert opened == [str(out)]
    assert out.read_bytes() == b"hi"
