# tests/unit/test_send_cli.py
from __future__ import annotations

import json
from pathlib import Path

import send_cli


def test_cli_send_prints_payload_and_cleans_up(monkeypatch, tmp_path: Path, capsys, png_bytes) -> None:
    monkeypatch.delenv("MEDIASEND_SCRATCH_DIR", raising=False)
    src = tmp_path / "in.png"
    src.write_bytes(png_bytes(4, 4))
    media_root = tmp_path / "media"

    rc = send_cli.main(["--media-root", str(media_root), "send", "123", str(src), "--pretty", "0"])
    assert rc == 0

    payload = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
    assert payload["action"] == "send"
    assert payload["channel_id"] == 123
    assert payload["mime_type"] == "image/png"
    assert payload["extras"]["key_type"] == 1

    # the copied transient file was removed before exit
    assert not (media_root / "tmp" / "in.png").exists()
    assert src.exists()


def test_cli_send_unresolvable_room_fails(tmp_path: Path, png_bytes) -> None:
    src = tmp_path / "in.png"
    src.write_bytes(png_bytes(4, 4))
    rc = send_cli.main(["--media-root", str(tmp_path / "m"), "send", "Some Room", str(src)])
    assert rc == 1


def test_cli_clear_cache(tmp_path: Path, capsys) -> None:
    media_root = tmp_path / "media"
    cache_dir = media_root / ".cache"
    cache_dir.mkdir(parents=True)
    (cache_dir / "ab.png").write_bytes(b"x")

    rc = send_cli.main(["--media-root", str(media_root), "clear-cache"])
    assert rc == 0
    assert "cache cleared" in capsys.readouterr().out
    assert {p.name for p in cache_dir.iterdir()} == {"index.json"}
