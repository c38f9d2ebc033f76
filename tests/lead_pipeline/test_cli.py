"""Tests for the command line interface."""

import json
from unittest.mock import AsyncMock, patch

import pytest

from lead_pipeline import main as cli
from lead_pipeline.config import config
from lead_pipeline.errors import NotFound


@pytest.fixture
def database_url():
    with patch.object(config, "DATABASE_URL", "postgresql+asyncpg://localhost/leads"):
        yield


class TestParser:

    @pytest.mark.unit
    def test_run_command(self):
        args = cli.create_parser().parse_args(
            ["run", "lead-1", "lead-2", "--skip", "contacts", "--skip", "webhook", "--max-retries", "0"]
        )

        assert args.command == "run"
        assert args.lead_ids == ["lead-1", "lead-2"]
        assert args.skip == ["contacts", "webhook"]
        assert args.max_retries == 0
        assert args.retry_delay is None

    @pytest.mark.unit
    def test_defaults(self):
        parser = cli.create_parser()

        reenrich = parser.parse_args(["reenrich"])
        nurture = parser.parse_args(["nurture"])

        assert (reenrich.threshold_days, reenrich.max_leads, reenrich.lead_ids) == (30, 25, None)
        assert nurture.mode == "auto"

    @pytest.mark.unit
    def test_rejects_unknown_mode(self):
        with pytest.raises(SystemExit):
            cli.create_parser().parse_args(["nurture", "--mode", "everything"])

    @pytest.mark.unit
    def test_command_required(self):
        with pytest.raises(SystemExit):
            cli.create_parser().parse_args([])


class TestCheckEnv:

    @pytest.mark.unit
    def test_missing_database_url(self, capsys):
        with patch.object(config, "DATABASE_URL", None):
            exit_code = cli.main(["check-env"])

        assert exit_code == 1
        assert "Missing required environment variables: DATABASE_URL" in capsys.readouterr().out

    @pytest.mark.unit
    def test_ready(self, capsys, database_url):
        with patch.object(config, "APOLLO_API_KEY", "key"):
            status = cli.check_environment()
            exit_code = cli.main(["check-env"])

        assert status["DATABASE_URL"] and status["APOLLO_API_KEY"]
        assert exit_code == 0
        assert "[✓] APOLLO_API_KEY" in capsys.readouterr().out


class TestMain:
    """Tests for command dispatch and exit codes."""

    @pytest.mark.unit
    def test_requires_database(self, capsys):
        with patch.object(config, "DATABASE_URL", None):
            assert cli.main(["enrich", "lead-1"]) == 1
        assert "DATABASE_URL is required" in capsys.readouterr().out

    @pytest.mark.unit
    def test_serve_requires_jwt_secret(self, capsys):
        with patch.object(config, "JWT_SECRET", ""), patch("uvicorn.run") as run:
            assert cli.main(["serve"]) == 1
        run.assert_not_called()
        assert "JWT_SECRET is required" in capsys.readouterr().out

    @pytest.mark.unit
    def test_prints_result(self, capsys, database_url):
        result = {"success": True, "results": []}
        with patch.object(cli, "_dispatch", new=AsyncMock(return_value=result)) as dispatch:
            exit_code = cli.main(["enrich", "lead-1"])

        assert exit_code == 0
        assert dispatch.await_args.args[0].lead_ids == ["lead-1"]
        assert json.loads(capsys.readouterr().out) == result

    @pytest.mark.unit
    def test_writes_output_file(self, tmp_path, database_url):
        output = tmp_path / "result.json"
        with patch.object(cli, "_dispatch", new=AsyncMock(return_value={"success": False})):
            exit_code = cli.main(["--output", str(output), "run", "lead-1"])

        assert exit_code == 1
        assert json.loads(output.read_text()) == {"success": False}

    @pytest.mark.unit
    def test_pipeline_error(self, capsys, database_url):
        with patch.object(cli, "_dispatch", new=AsyncMock(side_effect=NotFound("Lead not found"))):
            exit_code = cli.main(["score", "--llm", "lead-1"])

        assert exit_code == 1
        assert "Error (404): Lead not found" in capsys.readouterr().out
