"""
Tests for parsing and rewriting the Prometheus config document.
"""

import pytest
import yaml
from cardinanny.errors import ConfigParseError
from cardinanny.scrape_config import ScrapeConfigDocument, label_drop_regex


class TestParse:
    def test_jobs_in_order(self, yaml_fixture):
        doc = ScrapeConfigDocument.parse(yaml_fixture("2-scrape-jobs.yaml"))

        assert doc.job_names == ["some-job", "some-other-job"]

    def test_empty_document(self):
        doc = ScrapeConfigDocument.parse("")

        assert doc.scrape_configs == []
        assert doc.to_yaml() == ""

    def test_unknown_top_level_field(self):
        with pytest.raises(ConfigParseError) as exc_info:
            ScrapeConfigDocument.parse("global:\n  scrape_interval: 15s\nbogus: 1\n")

        assert str(exc_info.value) == (
            "yaml: unmarshal errors:\n  line 3: field bogus not found in prometheus config"
        )

    def test_root_not_a_mapping(self):
        with pytest.raises(ConfigParseError) as exc_info:
            ScrapeConfigDocument.parse("- a\n- b\n")

        assert "cannot unmarshal list into prometheus config" in str(exc_info.value)

    def test_invalid_yaml_keeps_parser_message(self):
        text = "scrape_configs: [\n"
        with pytest.raises(yaml.YAMLError) as yaml_exc:
            yaml.safe_load(text)

        with pytest.raises(ConfigParseError) as exc_info:
            ScrapeConfigDocument.parse(text)

        assert str(exc_info.value) == str(yaml_exc.value)

    def test_duplicate_job_names(self):
        text = "scrape_configs:\n- job_name: a\n- job_name: a\n"

        with pytest.raises(ConfigParseError) as exc_info:
            ScrapeConfigDocument.parse(text)

        assert str(exc_info.value) == 'found multiple scrape configs with job name "a"'

    def test_missing_job_name(self):
        with pytest.raises(ConfigParseError):
            ScrapeConfigDocument.parse("scrape_configs:\n- scrape_interval: 5s\n")

    def test_relabel_configs_must_be_a_list(self):
        text = "scrape_configs:\n- job_name: a\n  metric_relabel_configs: drop\n"

        with pytest.raises(ConfigParseError):
            ScrapeConfigDocument.parse(text)


class TestAppendLabelDrop:
    def test_appends_after_existing_rules(self, yaml_fixture):
        doc = ScrapeConfigDocument.parse(yaml_fixture("2-scrape-jobs.yaml"))

        assert doc.append_label_drop("some-job", "a|b")

        rules = doc.find_job("some-job")["metric_relabel_configs"]
        assert rules[0]["action"] == "drop"
        assert rules[-1] == {"action": "labeldrop", "regex": "a|b"}
        assert "metric_relabel_configs" not in doc.find_job("some-other-job")

    def test_creates_rule_list_when_absent(self):
        doc = ScrapeConfigDocument.parse("scrape_configs:\n- job_name: a\n  metric_relabel_configs:\n")

        doc.append_label_drop("a", "x")

        assert doc.find_job("a")["metric_relabel_configs"] == [
            {"action": "labeldrop", "regex": "x"}
        ]

    def test_unknown_job(self, yaml_fixture):
        doc = ScrapeConfigDocument.parse(yaml_fixture("2-scrape-jobs.yaml"))

        assert not doc.append_label_drop("missing", "x")
        assert doc.to_yaml() == yaml_fixture("2-scrape-jobs.yaml")


def test_untouched_document_round_trips(yaml_fixture):
    text = yaml_fixture("2-scrape-jobs.yaml")

    assert ScrapeConfigDocument.parse(text).to_yaml() == text


def test_label_drop_regex():
    assert label_drop_regex(["somevalue", "anotherBadLabel"]) == "somevalue|anotherBadLabel"
    assert label_drop_regex(["only"]) == "only"
