"""Tests for the command-line interface."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from sessionlens.cli import main, parse_args


@pytest.fixture(autouse=True)
def no_credentials(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    for var in ("GEMINI_API_KEY", "OPENROUTER_API_KEY", "SESSIONLENS_GEMINI_API_KEY"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    yield
    # main() installs handlers bound to the captured stderr
    logger = logging.getLogger("sessionlens")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)


class TestParseArgs:
    def test_regenerate(self) -> None:
        args = parse_args(["-v", "regenerate", "req.json"])
        assert args.command == "regenerate"
        assert args.request == Path("req.json")
        assert args.verbose is True

    def test_config_path(self) -> None:
        args = parse_args(["-c", "custom.yaml", "serve"])
        assert args.config == Path("custom.yaml")

    def test_no_command(self) -> None:
        assert parse_args([]).command is None


class TestMain:
    def test_chat_with_canned_client_falls_back(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        request = tmp_path / "chat.json"
        request.write_text(
            json.dumps({"sessionId": "s", "userMessage": "hi", "currentNote": "# Note"})
        )
        main(["chat", str(request)])
        output = json.loads(capsys.readouterr().out)
        assert output["updatedNote"] == "# Note"
        assert output["noteWasModified"] is False

    def test_invalid_request_exits_nonzero(self, tmp_path: Path) -> None:
        request = tmp_path / "regen.json"
        request.write_text(json.dumps({"sessionId": "s", "screens": []}))
        with pytest.raises(SystemExit) as exc_info:
            main(["regenerate", str(request)])
        assert exc_info.value.code == 1
