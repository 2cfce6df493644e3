"""Tests for the ``perplexity-chat`` command."""

from __future__ import annotations

import json

import pytest

from perplexity_chat.adapters.perplexity.perplexity_client import PerplexityClient
from perplexity_chat.cli import chat


@pytest.fixture
def transport(make_transport, monkeypatch: pytest.MonkeyPatch):
    """Route every client the CLI creates through a recording transport."""
    recording = make_transport()

    def _client(*args, **kwargs):
        kwargs["transport"] = recording
        return PerplexityClient(*args, **kwargs)

    monkeypatch.setattr("perplexity_chat.tasks.chat_completion.PerplexityClient", _client)
    monkeypatch.setattr(chat, "setup_json_logging", lambda *args, **kwargs: None)
    return recording


@pytest.fixture
def task_file(tmp_path, api_key):
    path = tmp_path / "task.json"
    path.write_text(
        json.dumps(
            {
                "apiKey": api_key,
                "model": "sonar",
                "messages": [{"type": "USER", "content": "What is Kestra?"}],
                "temperature": 0.7,
            }
        ),
        encoding="utf-8",
    )
    return path


class TestChatCli:
    def test_task_file_success(self, transport, task_file, capsys, completion_body) -> None:
        exit_code = chat.main(["--task", str(task_file)])

        assert exit_code == 0
        output = json.loads(capsys.readouterr().out)
        assert output["output_text"] == "4"
        assert output["raw_response"] == completion_body
        assert output["usage"] == {
            "usage.prompt.tokens": 5,
            "usage.completion.tokens": 1,
            "usage.total.tokens": 6,
        }
        assert transport.last_json["temperature"] == 0.7

    def test_flags_override_task_file(self, transport, task_file, capsys) -> None:
        exit_code = chat.main(
            [
                "--task",
                str(task_file),
                "--model",
                "sonar-pro",
                "--message",
                "system:Be brief.",
                "--message",
                "user:Hi",
                "--max-tokens",
                "32",
            ]
        )

        assert exit_code == 0
        sent = transport.last_json
        assert sent["model"] == "sonar-pro"
        assert sent["max_tokens"] == 32
        assert sent["messages"] == [
            {"role": "system", "content": "Be brief."},
            {"role": "user", "content": "Hi"},
        ]

    def test_environment_supplies_key_and_model(
        self, transport, api_key, monkeypatch: pytest.MonkeyPatch, capsys
    ) -> None:
        monkeypatch.setenv("PERPLEXITY_API_KEY", api_key)
        monkeypatch.setenv("PERPLEXITY_MODEL", "sonar-reasoning")

        exit_code = chat.main(["--message", "user:What is 2 plus 2?"])

        assert exit_code == 0
        assert transport.requests[-1].headers["Authorization"] == f"Bearer {api_key}"
        assert transport.last_json["model"] == "sonar-reasoning"

    def test_schema_file_and_json_path(self, transport, task_file, tmp_path) -> None:
        schema = tmp_path / "schema.json"
        schema.write_text('{"type":"object"}', encoding="utf-8")
        out = tmp_path / "out.json"

        exit_code = chat.main(
            ["--task", str(task_file), "--schema-file", str(schema), "--json-path", str(out)]
        )

        assert exit_code == 0
        assert json.loads(out.read_text(encoding="utf-8"))["output_text"] == "4"
        assert transport.last_json["response_format"] == {
            "type": "json_schema",
            "json_schema": {"schema": {"type": "object"}},
        }

    def test_missing_api_key_fails(self, transport, capsys) -> None:
        exit_code = chat.main(["--message", "user:Hi"])

        assert exit_code == 1
        assert "ConfigurationError" in capsys.readouterr().err
        assert transport.requests == []

    def test_bad_message_flag_fails(self, transport, task_file, capsys) -> None:
        exit_code = chat.main(["--task", str(task_file), "--message", "no-role-here"])

        assert exit_code == 1
        assert "ROLE:TEXT" in capsys.readouterr().err

    def test_unreadable_task_file_fails(self, transport, tmp_path, capsys) -> None:
        exit_code = chat.main(["--task", str(tmp_path / "missing.json")])

        assert exit_code == 1
        assert "Cannot read task definition" in capsys.readouterr().err

    def test_provider_error_fails(
        self, make_transport, task_file, monkeypatch: pytest.MonkeyPatch, capsys
    ) -> None:
        failing = make_transport(401, '{"error":"unauthorized"}')

        def _client(*args, **kwargs):
            kwargs["transport"] = failing
            return PerplexityClient(*args, **kwargs)

        monkeypatch.setattr("perplexity_chat.tasks.chat_completion.PerplexityClient", _client)
        monkeypatch.setattr(chat, "setup_json_logging", lambda *args, **kwargs: None)

        exit_code = chat.main(["--task", str(task_file)])

        err = capsys.readouterr().err
        assert exit_code == 1
        assert "ProviderError:" in err
        assert '{"error":"unauthorized"}' in err

    def test_runtime_settings_reach_client(
        self, make_transport, task_file, monkeypatch: pytest.MonkeyPatch, capsys
    ) -> None:
        seen: dict = {}
        recording = make_transport()

        def _client(*args, **kwargs):
            seen.update(kwargs)
            kwargs["transport"] = recording
            return PerplexityClient(*args, **kwargs)

        monkeypatch.setattr("perplexity_chat.tasks.chat_completion.PerplexityClient", _client)
        monkeypatch.setattr(chat, "setup_json_logging", lambda *args, **kwargs: None)
        monkeypatch.setenv("LOG_TRUNCATE_LENGTH", "250")
        monkeypatch.setenv("REQUEST_TIMEOUT_SEC", "15")

        exit_code = chat.main(["--task", str(task_file)])

        assert exit_code == 0
        assert seen["log_truncate_length"] == 250
        assert seen["timeout_sec"] == 15

    def test_unwritable_json_path_fails(self, transport, task_file, tmp_path, capsys) -> None:
        out = tmp_path / "missing-dir" / "out.json"

        exit_code = chat.main(["--task", str(task_file), "--json-path", str(out)])

        captured = capsys.readouterr()
        assert exit_code == 1
        assert "FileNotFoundError: Cannot write" in captured.err
        assert captured.out == ""
