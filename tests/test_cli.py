from types import SimpleNamespace
from unittest.mock import MagicMock, AsyncMock, patch

from typer.testing import CliRunner

from chatrelay.cli import app

runner = CliRunner()


def _patched_client():
    client_mock = MagicMock()
    client_mock.chat.completions.create = AsyncMock()
    client_mock.get = AsyncMock()
    return client_mock


class TestCli:

    def test_unconfigured_provider_exits(self, mock_env):
        result = runner.invoke(app, ["models", "github"])
        assert result.exit_code == 1
        assert "GITHUB_API_KEY" in result.output

    def test_models_rejects_unknown_option(self, mock_env):
        result = runner.invoke(app, ["models", "openai", "--files-dir", "attachments"])
        assert result.exit_code == 2

    @patch("chatrelay.providers.openai.AsyncOpenAI")
    def test_models_table(self, mock_openai_cls, mock_env):
        client_mock = _patched_client()
        response = MagicMock()
        response.json.return_value = {"data": [{"id": "gpt-4o-mini", "owned_by": "openai"}]}
        client_mock.get.return_value = response
        mock_openai_cls.return_value = client_mock

        result = runner.invoke(app, ["models", "openai"])

        assert result.exit_code == 0
        assert "gpt-4o-mini" in result.output

    @patch("chatrelay.providers.openai.AsyncOpenAI")
    def test_check_reports_failure(self, mock_openai_cls, mock_env):
        client_mock = _patched_client()
        client_mock.chat.completions.create.side_effect = RuntimeError("bad key")
        mock_openai_cls.return_value = client_mock

        result = runner.invoke(app, ["check", "openai", "gpt-4o"])

        assert result.exit_code == 1
        assert "bad key" in result.output

    @patch("chatrelay.providers.openai.AsyncOpenAI")
    def test_check_reports_success(self, mock_openai_cls, mock_env):
        client_mock = _patched_client()
        client_mock.chat.completions.create.return_value = SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content="hello"))]
        )
        mock_openai_cls.return_value = client_mock

        result = runner.invoke(app, ["check", "openai", "gpt-4o"])

        assert result.exit_code == 0
        assert "reachable" in result.output
