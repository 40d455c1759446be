"""
In-memory form of the Prometheus configuration file.

The document keeps the parsed YAML as plain mappings so that sections
cardinanny does not touch survive a rewrite unchanged and in their original
key order. Only the structure the rewriter relies on is validated.
"""

from __future__ import annotations

from typing import Any, Iterable

import yaml

from cardinanny.errors import ConfigParseError

LABEL_DROP_ACTION = "labeldrop"

TOP_LEVEL_KEYS = frozenset(
    {
        "global",
        "runtime",
        "rule_files",
        "scrape_config_files",
        "scrape_configs",
        "storage",
        "tracing",
        "remote_write",
        "remote_read",
        "alerting",
        "otlp",
    }
)


def label_drop_regex(labels: Iterable[str]) -> str:
    """Join label names into one alternation, keeping their order."""
    return "|".join(labels)


def _unmarshal_error(line: int, reason: str) -> ConfigParseError:
    return ConfigParseError(f"yaml: unmarshal errors:\n  line {line}: {reason}")


class ScrapeConfigDocument:
    """A parsed Prometheus configuration with its ordered scrape jobs."""

    def __init__(self, data: dict[str, Any] | None = None) -> None:
        self.data: dict[str, Any] = data if data is not None else {}

    @classmethod
    def parse(cls, text: str) -> ScrapeConfigDocument:
        """
        Parse and validate a Prometheus config document.

        Raises:
            ConfigParseError: with the parser's message when the text is not
                valid YAML or not shaped like a Prometheus config
        """
        try:
            node = yaml.compose(text, Loader=yaml.SafeLoader)
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ConfigParseError(str(exc)) from exc

        if data is None:
            return cls()

        if not isinstance(node, yaml.MappingNode) or not isinstance(data, dict):
            line = node.start_mark.line + 1 if node is not None else 1
            raise _unmarshal_error(
                line, f"cannot unmarshal {type(data).__name__} into prometheus config"
            )

        for key_node, _ in node.value:
            if key_node.value not in TOP_LEVEL_KEYS:
                raise _unmarshal_error(
                    key_node.start_mark.line + 1,
                    f"field {key_node.value} not found in prometheus config",
                )

        document = cls(data)
        document._validate_scrape_configs()
        return document

    def _validate_scrape_configs(self) -> None:
        scrape_configs = self.data.get("scrape_configs")
        if scrape_configs is None:
            return
        if not isinstance(scrape_configs, list):
            raise ConfigParseError("scrape_configs must be a list")

        seen: set[str] = set()
        for job in scrape_configs:
            if not isinstance(job, dict):
                raise ConfigParseError("scrape config must be a mapping")
            name = job.get("job_name")
            if not isinstance(name, str) or not name:
                raise ConfigParseError("job_name is empty")
            if name in seen:
                raise ConfigParseError(f'found multiple scrape configs with job name "{name}"')
            seen.add(name)

            relabels = job.get("metric_relabel_configs")
            if relabels is not None and not isinstance(relabels, list):
                raise ConfigParseError(
                    f'metric_relabel_configs of job "{name}" must be a list'
                )

    @property
    def scrape_configs(self) -> list[dict[str, Any]]:
        return self.data.get("scrape_configs") or []

    @property
    def job_names(self) -> list[str]:
        return [job["job_name"] for job in self.scrape_configs]

    def find_job(self, job_name: str) -> dict[str, Any] | None:
        for job in self.scrape_configs:
            if job["job_name"] == job_name:
                return job
        return None

    def append_label_drop(self, job_name: str, regex: str) -> bool:
        """
        Append a labeldrop rule to the end of a job's metric relabeling.

        Returns:
            False if the job is not defined in this document
        """
        job = self.find_job(job_name)
        if job is None:
            return False

        if job.get("metric_relabel_configs") is None:
            job["metric_relabel_configs"] = []
        job["metric_relabel_configs"].append({"action": LABEL_DROP_ACTION, "regex": regex})
        return True

    def to_yaml(self) -> str:
        """Serialize back to Prometheus' YAML file format."""
        if not self.data:
            return ""
        return yaml.safe_dump(
            self.data,
            default_flow_style=False,
            sort_keys=False,
            allow_unicode=True,
        )
