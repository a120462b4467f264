"""
Tests for the afbp CLI — commands run in-process against temp files.
"""

from __future__ import annotations

import sys

import pytest

from afblueprint._format.reader import iter_chunks
from afblueprint._format.spec import BRANDING_TAG
from afblueprint.branding import embed_branding, extract_branding
from afblueprint.cli import main

from conftest import make_png


def _run(monkeypatch, *argv):
    monkeypatch.setattr(sys, "argv", ["afbp", *argv])
    main()


class TestCommands:

    def test_validate_ok(self, tmp_path, blueprint, monkeypatch, capsys):
        path = tmp_path / "layout.png"
        path.write_bytes(blueprint)
        _run(monkeypatch, "validate", str(path))
        assert "OK:" in capsys.readouterr().out

    def test_validate_fail_exits_1(self, tmp_path, monkeypatch, capsys):
        path = tmp_path / "layout.png"
        path.write_bytes(b"MZ" + b"\x00" * 200)
        with pytest.raises(SystemExit) as exc:
            _run(monkeypatch, "validate", str(path))
        assert exc.value.code == 1
        assert "native_executable" in capsys.readouterr().err

    def test_missing_file(self, tmp_path, monkeypatch, capsys):
        with pytest.raises(SystemExit):
            _run(monkeypatch, "scan", str(tmp_path / "nope.png"))
        assert "Error: File not found" in capsys.readouterr().err

    def test_extract_writes_stripped(self, tmp_path, blueprint, payload, monkeypatch):
        src = tmp_path / "layout.png"
        src.write_bytes(blueprint)
        out = tmp_path / "out.png"
        preview = tmp_path / "preview.png"
        _run(monkeypatch, "extract", str(src), "-o", str(out), "--preview", str(preview))
        assert out.read_bytes().endswith(payload)
        assert preview.read_bytes() == blueprint[:-len(payload)]

    def test_brand_and_read_back(self, tmp_path, blueprint, branding_png, monkeypatch):
        src = tmp_path / "layout.png"
        src.write_bytes(blueprint)
        logo = tmp_path / "logo.png"
        logo.write_bytes(branding_png)
        _run(monkeypatch, "brand", str(src), "--branding", str(logo))
        assert extract_branding(src.read_bytes()) == branding_png

        out = tmp_path / "logo-out.png"
        _run(monkeypatch, "branding", str(src), "-o", str(out))
        assert out.read_bytes() == branding_png

    def test_branding_absent_exits_1(self, tmp_path, blueprint, monkeypatch):
        src = tmp_path / "layout.png"
        src.write_bytes(blueprint)
        with pytest.raises(SystemExit) as exc:
            _run(monkeypatch, "branding", str(src))
        assert exc.value.code == 1

    def test_pack(self, tmp_path, payload, monkeypatch):
        cover = tmp_path / "cover.png"
        cover.write_bytes(make_png())
        data = tmp_path / "payload.bin"
        data.write_bytes(payload)
        out = tmp_path / "packed.png"
        _run(monkeypatch, "pack", str(cover), str(data), "-o", str(out))
        assert out.read_bytes() == make_png() + payload

    def test_scan_clean(self, tmp_path, blueprint, monkeypatch, capsys):
        path = tmp_path / "layout.png"
        path.write_bytes(blueprint)
        _run(monkeypatch, "scan", str(path))
        assert "is clean" in capsys.readouterr().out

    def test_no_command_prints_usage(self, monkeypatch, capsys):
        with pytest.raises(SystemExit) as exc:
            _run(monkeypatch)
        assert exc.value.code == 0
        assert "afbp validate" in capsys.readouterr().out

    def test_brand_already_branded(self, tmp_path, blueprint, branding_png, monkeypatch, capsys):
        src = tmp_path / "layout.png"
        src.write_bytes(embed_branding(blueprint, branding_png))
        logo = tmp_path / "logo.png"
        logo.write_bytes(branding_png)
        _run(monkeypatch, "brand", str(src), "--branding", str(logo))
        assert "already branded" in capsys.readouterr().out

    def test_brand_corrupt_branding_chunk(self, tmp_path, blueprint, branding_png, monkeypatch, capsys):
        branded = bytearray(embed_branding(blueprint, branding_png))
        chunk = next(c for c in iter_chunks(bytes(branded)) if c.type == BRANDING_TAG)
        branded[chunk.offset + 8] ^= 0xFF
        src = tmp_path / "layout.png"
        src.write_bytes(bytes(branded))
        logo = tmp_path / "logo.png"
        logo.write_bytes(branding_png)
        with pytest.raises(SystemExit) as exc:
            _run(monkeypatch, "brand", str(src), "--branding", str(logo))
        assert exc.value.code == 1
        err = capsys.readouterr().err
        assert "corrupt branding chunk" in err
        assert "not a PNG container" not in err
        assert src.read_bytes() == bytes(branded)
