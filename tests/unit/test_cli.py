"""Tests for CLI commands."""

import json
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest
from typer.testing import CliRunner

from jsmon_cli import __version__
from jsmon_cli.cli import app
from jsmon_cli.models.checkpoint import Checkpoint
from jsmon_cli.models.scan import ApiResult
from jsmon_cli.services.api_client import JsmonClient
from jsmon_cli.services.checkpoint_service import CheckpointService
from jsmon_cli.utils.exceptions import ApiError

runner = CliRunner()

AUTH = ["--key", "test-key", "--wksp", "w1"]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("JSMON_API_KEY", "JSMON_WORKSPACE_ID", "JSMON_RESUME_FILE"):
        monkeypatch.delenv(name, raising=False)


def mock_client(method, **kwargs):
    return patch.object(JsmonClient, method, new_callable=AsyncMock, **kwargs)


def test_version():
    result = runner.invoke(app, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.output


class TestUrlCommand:
    def test_success(self):
        with mock_client("upload_url", return_value=ApiResult.ok()) as upload:
            result = runner.invoke(app, AUTH + ["url", "https://a.test/app.js"])

        assert result.exit_code == 0
        assert "URL scan completed for - https://a.test/app.js" in result.output
        upload.assert_awaited_once_with("https://a.test/app.js", "w1")

    def test_rate_limited(self):
        with mock_client("upload_url", return_value=ApiResult.failure(429, "")):
            result = runner.invoke(app, AUTH + ["url", "https://a.test/app.js"])

        assert result.exit_code == 1
        assert "Rate limit reached" in result.output

    def test_generic_failure_reason(self):
        failure = ApiResult.failure(
            400, "URL Scan failed - Not a JS file. Please provide a valid URL."
        )
        with mock_client("upload_url", return_value=failure):
            result = runner.invoke(app, AUTH + ["url", "https://a.test/x"])

        assert result.exit_code == 1
        assert "Error uploading url: https://a.test/x - [HTTP 400] Not a JS file." in (
            result.output
        )

    def test_missing_workspace(self):
        with mock_client("upload_url") as upload:
            result = runner.invoke(app, ["--key", "k", "url", "https://a.test/x"])

        assert result.exit_code == 1
        assert "Workspace ID is required" in result.output
        upload.assert_not_awaited()

    def test_invalid_header(self):
        result = runner.invoke(app, AUTH + ["-H", "no-colon", "url", "https://a/x"])

        assert result.exit_code == 1
        assert "Invalid header" in result.output


class TestDomainCommand:
    def test_extracts_hostname(self):
        with mock_client("scan_domain", return_value=ApiResult.ok()) as scan:
            result = runner.invoke(
                app, AUTH + ["domain", "https://example.com/login?x=1"]
            )

        assert result.exit_code == 0
        assert "Domain scan completed for - example.com" in result.output
        scan.assert_awaited_once_with("example.com", "w1")

    def test_auth_failure(self):
        with mock_client("scan_domain", return_value=ApiResult.failure(401, "")):
            result = runner.invoke(app, AUTH + ["domain", "example.com"])

        assert result.exit_code == 1
        assert "API key is invalid" in result.output


class TestBatchCommands:
    def test_file_upload_prints_summary(self):
        results = [
            ApiResult.ok(),
            ApiResult.failure(400, "JS Scan failed - Empty body"),
            ApiResult.ok(),
        ]
        with runner.isolated_filesystem():
            Path("urls.txt").write_text("https://a/1.js\n\nhttps://a/2.js\nhttps://a/3.js\n")

            with mock_client("upload_url", side_effect=results):
                result = runner.invoke(app, AUTH + ["--silent", "file", "urls.txt"])

            assert result.exit_code == 0
            report = json.loads(result.stdout)
            assert report == {
                "success": ["https://a/1.js", "https://a/3.js"],
                "failed": [{"url": "https://a/2.js", "error": "Empty body"}],
                "summary": {
                    "total": 3,
                    "success": 2,
                    "failed": 1,
                    "lastUrl": "https://a/3.js",
                },
            }
            assert not Path("resume.cfg").exists()

    def test_file_upload_rate_limited(self):
        results = [ApiResult.ok(), ApiResult.failure(429, "")]
        with runner.isolated_filesystem():
            Path("urls.txt").write_text("https://a.com/x.js\n\nhttps://b.com/y.js\n")

            with mock_client("upload_url", side_effect=results):
                result = runner.invoke(app, AUTH + ["file", "urls.txt"])

            assert result.exit_code == 1
            assert "jsmon-cli resume resume.cfg" in result.output
            saved = json.loads(Path("resume.cfg").read_text())
            assert saved["last_index"] == 1
            assert saved["processed_urls"] == ["https://a.com/x.js", "https://b.com/y.js"]

    def test_file_upload_quota_exhausted(self):
        failure = ApiResult.failure(400, "Insufficient scan limit")
        with runner.isolated_filesystem():
            Path("urls.txt").write_text("https://a/1.js\n")

            with mock_client("upload_url", return_value=failure):
                result = runner.invoke(app, AUTH + ["file", "urls.txt"])

            assert result.exit_code == 1
            assert "Scan limit exhausted" in result.output
            assert Path("resume.cfg").exists()

    def test_file_upload_missing_file(self):
        with runner.isolated_filesystem():
            result = runner.invoke(app, AUTH + ["file", "missing.txt"])

        assert result.exit_code == 1
        assert "Failed to read" in result.output

    def test_resume_continues_and_keeps_checkpoint(self):
        with runner.isolated_filesystem():
            CheckpointService().save(
                Checkpoint(
                    source_path="urls.txt",
                    all_items=["https://a/1.js", "https://a/2.js"],
                    processed_items=["https://a/1.js"],
                    last_index=0,
                ),
                "saved.cfg",
            )

            with mock_client("upload_url", return_value=ApiResult.ok()) as upload:
                result = runner.invoke(app, AUTH + ["--silent", "resume", "saved.cfg"])

            assert result.exit_code == 0
            upload.assert_awaited_once_with("https://a/2.js", "w1")
            report = json.loads(result.stdout)
            assert report["success"] == ["https://a/2.js"]
            assert report["summary"]["total"] == 2
            assert json.loads(Path("saved.cfg").read_text())["last_index"] == 1

    def test_resume_file_mismatch(self):
        with runner.isolated_filesystem():
            CheckpointService().save(
                Checkpoint(source_path="a.txt", all_items=["https://a/1.js"]),
                "saved.cfg",
            )

            with mock_client("upload_url") as upload:
                result = runner.invoke(
                    app, AUTH + ["resume", "saved.cfg", "--file", "b.txt"]
                )

            assert result.exit_code == 1
            assert "belongs to" in result.output
            upload.assert_not_awaited()

    def test_resume_missing_checkpoint(self):
        with runner.isolated_filesystem():
            result = runner.invoke(app, AUTH + ["resume", "nope.cfg"])

        assert result.exit_code == 1
        assert "Checkpoint not found" in result.output


class TestWorkspaceCommands:
    def test_create_workspace(self):
        with mock_client("create_workspace", return_value="abc123") as create:
            result = runner.invoke(app, ["--key", "k", "create-workspace", "recon"])

        assert result.exit_code == 0
        assert "Workspace ID: abc123" in result.output
        create.assert_awaited_once_with("recon")

    def test_list_workspaces(self):
        workspaces = [{"wkspId": "1", "name": "main", "isShared": True}]
        with mock_client("get_workspaces", return_value=workspaces):
            result = runner.invoke(app, ["--key", "k", "workspaces"])

        assert result.exit_code == 0
        assert "main  (ID: 1)  -  Shared Workspace: Yes" in result.output

    def test_no_workspaces(self):
        with mock_client("get_workspaces", return_value=[]):
            result = runner.invoke(app, ["--key", "k", "workspaces"])

        assert result.exit_code == 0
        assert "No workspaces found." in result.output


class TestReportCommands:
    def test_urls(self):
        response = {"data": [{"value": "https://a/x.js"}, {"value": ""}]}
        with mock_client("get_intelligence", return_value=response) as fetch:
            result = runner.invoke(app, AUTH + ["urls", "--page", "2"])

        assert result.exit_code == 0
        assert json.loads(result.stdout) == ["https://a/x.js"]
        fetch.assert_awaited_once_with("w1", "jsurls", page=2)

    def test_invalid_page(self):
        with mock_client("get_intelligence") as fetch:
            result = runner.invoke(app, AUTH + ["urls", "--page", "0"])

        assert result.exit_code == 1
        assert "positive integer" in result.output
        fetch.assert_not_awaited()

    def test_domains_and_files(self):
        response = {"data": {"scans": [{"asset": "a.com"}]}}
        with mock_client("get_scans", return_value=response) as fetch:
            domains = runner.invoke(app, AUTH + ["domains"])
            files = runner.invoke(app, AUTH + ["files"])

        assert json.loads(domains.stdout) == ["a.com"]
        assert json.loads(files.stdout) == ["a.com"]
        categories = [call.args[1] for call in fetch.await_args_list]
        assert categories == ["domainScan", "fileScan"]

    def test_secrets_auth_error(self):
        error = ApiError("getSecrets failed: Unauthorized", 401)
        with mock_client("get_secrets", side_effect=error):
            result = runner.invoke(app, AUTH + ["secrets"])

        assert result.exit_code == 1
        assert "API key is invalid or not configured" in result.output

    def test_secrets_server_error(self):
        error = ApiError("getSecrets failed: boom", 500)
        with mock_client("get_secrets", side_effect=error):
            result = runner.invoke(app, AUTH + ["secrets"])

        assert result.exit_code == 1
        assert "[HTTP 500] getSecrets failed: boom" in result.output

    def test_recon_param(self):
        response = {"data": [{"value": {"url": "https://a/x.js", "parameters": []}}]}
        with mock_client("get_intelligence", return_value=response):
            result = runner.invoke(app, AUTH + ["recon", "param"])

        assert result.exit_code == 0
        assert json.loads(result.stdout) == [{"url": "https://a/x.js", "parameters": []}]

    def test_rsearch_unescapes_value(self):
        with mock_client("reverse_search", return_value=[{"resourceId": "r", "v": 1}]) as search:
            result = runner.invoke(app, AUTH + ["rsearch", "gqlqueries=a\\nb"])

        assert result.exit_code == 0
        assert json.loads(result.stdout) == [{"v": 1}]
        search.assert_awaited_once_with("w1", "gqlqueries", "a\nb")

    def test_rsearch_invalid_expression(self):
        result = runner.invoke(app, AUTH + ["rsearch", "emails"])

        assert result.exit_code == 1

    def test_filter(self):
        response = {"data": [{"value": "https://github.com/x"}]}
        with mock_client("get_intelligence", return_value=response) as fetch:
            result = runner.invoke(app, AUTH + ["filter", "urls=github.com"])

        assert result.exit_code == 0
        assert json.loads(result.stdout) == ["https://github.com/x"]
        fetch.assert_awaited_once_with("w1", "urls", page=1, search="github.com")

    def test_filter_rejects_field(self):
        with mock_client("get_intelligence") as fetch:
            result = runner.invoke(app, AUTH + ["filter", "ip=10.0.0.1"])

        assert result.exit_code == 1
        assert "Invalid field" in result.output
        fetch.assert_not_awaited()

    def test_count(self):
        analysis = {"totalUrls": 12, "totalDomains": 3}
        with mock_client("get_total_count_analysis", return_value=analysis) as fetch:
            result = runner.invoke(app, AUTH + ["count", "--run-id", "r1"])

        assert result.exit_code == 0
        assert "Workspace Count Analysis" in result.output
        assert "Total URLs:" in result.output
        assert "12" in result.output
        fetch.assert_awaited_once_with("w1", run_id="r1")
