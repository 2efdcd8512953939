"""Tests for the formhand CLI — plan and cookbook commands."""

from __future__ import annotations

import json

from typer.testing import CliRunner

from formhand import __version__
from formhand.cli.app import app

runner = CliRunner()


# ---------------------------------------------------------------------------
# 1. Global options
# ---------------------------------------------------------------------------

class TestGlobalOptions:

    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_help_lists_commands(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "plan" in result.stdout
        assert "cookbook" in result.stdout


# ---------------------------------------------------------------------------
# 2. formhand plan
# ---------------------------------------------------------------------------

class TestPlanCommand:

    def test_json_output(self, write_yaml, sample_page_dict, user_data, qa_answers):
        page = write_yaml("page.yaml", sample_page_dict)
        data = write_yaml("data.yaml", user_data)
        qa = write_yaml("qa.yaml", qa_answers)
        result = runner.invoke(app, ["plan", str(page), "--data", str(data), "--qa", str(qa), "--json"])
        assert result.exit_code == 0, result.output
        payload = json.loads(result.stdout)
        assert payload["tier0_count"] == 3
        assert payload["tier3_count"] == 1
        assert payload["unmatched"] == ["field-4"]
        assert [a["field_id"] for a in payload["actions"]] == ["field-1", "field-2", "field-3", "field-4"]
        assert payload["actions"][0]["method"] == "automation_id"
        assert payload["actions"][3]["tier"] == 3

    def test_table_output(self, write_yaml, sample_page_dict, user_data):
        page = write_yaml("page.yaml", sample_page_dict)
        data = write_yaml("data.yaml", user_data)
        result = runner.invoke(app, ["plan", str(page), "-d", str(data)])
        assert result.exit_code == 0, result.output
        assert "4 actions: 2 tier-0, 2 tier-3" in result.stdout
        assert "platform: workday" in result.stdout

    def test_platform_override(self, write_yaml, sample_page_dict, user_data):
        page = write_yaml("page.yaml", sample_page_dict)
        data = write_yaml("data.yaml", user_data)
        result = runner.invoke(app, ["plan", str(page), "-d", str(data), "-p", "generic", "--json"])
        payload = json.loads(result.stdout)
        # Without the Workday id map the first-name field has nothing to match on
        assert "field-1" in payload["unmatched"]

    def test_missing_page_file(self, tmp_path, write_yaml, user_data):
        data = write_yaml("data.yaml", user_data)
        result = runner.invoke(app, ["plan", str(tmp_path / "nope.yaml"), "-d", str(data)])
        assert result.exit_code == 2

    def test_bad_config(self, write_yaml, sample_page_dict, user_data):
        page = write_yaml("page.yaml", sample_page_dict)
        data = write_yaml("data.yaml", user_data)
        config = write_yaml("formhand.yaml", {"max_retries": -1})
        result = runner.invoke(app, ["plan", str(page), "-d", str(data), "-c", str(config)])
        assert result.exit_code == 2


# ---------------------------------------------------------------------------
# 3. formhand cookbook
# ---------------------------------------------------------------------------

class TestCookbookCommand:

    def _entry(self) -> dict:
        def action(selector: str, template: str) -> dict:
            return {
                "fieldSnapshot": {"id": selector, "selector": selector, "fieldType": "text", "label": selector},
                "domAction": {"selector": selector, "valueTemplate": template},
            }

        return {
            "pageFingerprint": "fp",
            "urlPattern": "https://x.test/apply",
            "actions": [
                action("#first", "{{first_name}}"),
                action("#middle", "{{middle_name}}"),
                action("#city", "{{city}}"),
            ],
            "perActionHealth": [1.0, 1.0, 0.9],
        }

    def test_preview(self, write_yaml, user_data):
        entry = write_yaml("entry.yaml", self._entry())
        data = write_yaml("data.yaml", user_data)
        result = runner.invoke(app, ["cookbook", str(entry), "-d", str(data)])
        assert result.exit_code == 0, result.output
        assert "2/3 actions would be attempted" in result.stdout
        assert "too many skips" in result.stdout

    def test_min_health_override(self, write_yaml, user_data):
        raw = self._entry()
        raw["actions"].pop(1)
        raw["perActionHealth"] = [1.0, 0.9]
        entry = write_yaml("entry.yaml", raw)
        data = write_yaml("data.yaml", user_data)
        result = runner.invoke(app, ["cookbook", str(entry), "-d", str(data), "--min-health", "0.95"])
        assert result.exit_code == 0, result.output
        assert "1/2 actions would be attempted" in result.stdout
