"""
Tests for pipeline config loading and stage resolution.
"""
import json
import logging

import pytest

from backend.src.pipeline.config import (
    ARTICLE_GENERATION,
    DEPLOYMENT,
    KEYWORD_SCRAPING,
    SITE_BUILD,
    SITEMAP_SUBMISSION,
    STAGE_ORDER,
    StageConfig,
    default_pipeline_config,
    load_pipeline_config,
    parse_pipeline_config,
    resolve_stages,
)
from backend.src.pipeline.stages import StageRegistry
from backend.src.recovery import ErrorCategory, StructuredError


def write_config(tmp_path, data):
    path = tmp_path / "pipeline.config.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def noop_registry(names=STAGE_ORDER):
    registry = StageRegistry()
    for name in names:
        registry.register(name, lambda stage_config: (lambda: None))
    return registry


class TestDefaults:
    """Test the built-in configuration."""

    def test_missing_file_uses_defaults(self, tmp_path):
        config = load_pipeline_config(tmp_path / "missing.json")

        assert list(config.stages) == list(STAGE_ORDER)
        assert config.source is None
        assert config.get(DEPLOYMENT).enabled is False
        assert config.get(SITEMAP_SUBMISSION).enabled is True
        assert config.get(SITEMAP_SUBMISSION).options["autoSubmit"] is False
        assert config.get(ARTICLE_GENERATION).options == {"count": 10, "minWords": 1500}

    def test_defaults_are_not_shared(self):
        first = default_pipeline_config()
        second = default_pipeline_config()
        assert first.get(KEYWORD_SCRAPING).options is not second.get(KEYWORD_SCRAPING).options


class TestLoad:
    """Test reading config files."""

    def test_entries_merge_over_defaults(self, tmp_path):
        path = write_config(tmp_path, {"stages": [
            {"name": ARTICLE_GENERATION, "options": {"count": 3}},
            {"name": DEPLOYMENT, "enabled": True, "env": {"CF_ACCOUNT": 42}},
        ]})

        config = load_pipeline_config(path)

        assert config.source == str(path)
        assert list(config.stages) == [ARTICLE_GENERATION, DEPLOYMENT]
        assert config.get(ARTICLE_GENERATION).options == {"count": 3, "minWords": 1500}
        assert config.get(ARTICLE_GENERATION).enabled is True
        deployment = config.get(DEPLOYMENT)
        assert deployment.enabled is True
        assert deployment.env == {"CF_ACCOUNT": "42"}
        assert deployment.options["platform"] == "cloudflare"

    def test_custom_commands(self, tmp_path):
        path = write_config(tmp_path, {"stages": [
            {"name": SITE_BUILD, "commands": ["make site", "make check"]},
        ]})

        assert load_pipeline_config(path).get(SITE_BUILD).commands == ("make site", "make check")

    def test_legacy_layout(self, tmp_path):
        path = write_config(tmp_path, {
            "keywords": {"enabled": True, "niches": ["python"], "maxKeywords": 5},
            "articles": {"enabled": False, "count": 1},
            "deploy": {"enabled": True, "platform": "vercel"},
        })

        config = load_pipeline_config(path)

        assert list(config.stages) == [KEYWORD_SCRAPING, ARTICLE_GENERATION, DEPLOYMENT]
        assert config.get(KEYWORD_SCRAPING).options == {"niches": ["python"], "maxKeywords": 5}
        assert config.get(ARTICLE_GENERATION).enabled is False
        assert config.get(DEPLOYMENT).options["platform"] == "vercel"

    @pytest.mark.parametrize("content", [
        "{not json",
        json.dumps([1, 2]),
        json.dumps({"stages": {"name": SITE_BUILD}}),
        json.dumps({"stages": [{"enabled": True}]}),
        json.dumps({"stages": ["site-build"]}),
        json.dumps({"stages": [{"name": SITE_BUILD}, {"name": SITE_BUILD}]}),
        json.dumps({"stages": [{"name": SITE_BUILD, "commands": "make"}]}),
        json.dumps({"stages": [{"name": SITE_BUILD, "commands": 5}]}),
        json.dumps({"stages": [{"name": SITE_BUILD, "enabled": "false"}]}),
        json.dumps({"stages": [{"name": SITE_BUILD, "enabled": 0}]}),
        json.dumps({"stages": [{"name": SITE_BUILD, "env": ["NODE_ENV=production"]}]}),
        json.dumps({"stages": [{"name": SITE_BUILD, "options": ["outputDir"]}]}),
        json.dumps({"deploy": ["vercel"]}),
    ])
    def test_invalid_config(self, tmp_path, content):
        path = tmp_path / "bad.json"
        path.write_text(content, encoding="utf-8")

        with pytest.raises(StructuredError) as exc_info:
            load_pipeline_config(path)

        assert exc_info.value.category is ErrorCategory.VALIDATION
        assert exc_info.value.retryable is False

    def test_string_enabled_flag_is_rejected(self):
        """A quoted "false" must not turn a stage on."""
        with pytest.raises(StructuredError) as exc_info:
            parse_pipeline_config({"stages": [{"name": DEPLOYMENT, "enabled": "false"}]})

        assert exc_info.value.category is ErrorCategory.VALIDATION
        assert "deployment" in exc_info.value.message

    def test_snapshot(self):
        config = parse_pipeline_config({"stages": [{"name": SITE_BUILD, "enabled": False}]}, source="x.json")
        assert config.to_dict() == {
            "source": "x.json",
            "stages": [{"name": SITE_BUILD, "enabled": False, "options": {"outputDir": "./dist"}}],
        }


class TestResolveStages:
    """Test turning config into the ordered stage list."""

    def test_registry_order_wins(self):
        config = parse_pipeline_config({"stages": [
            {"name": SITEMAP_SUBMISSION},
            {"name": KEYWORD_SCRAPING},
        ]})

        stages = resolve_stages(config, noop_registry())

        assert [s.name for s in stages] == list(STAGE_ORDER)
        assert {s.name for s in stages if s.enabled} == {KEYWORD_SCRAPING, SITEMAP_SUBMISSION}

    def test_unknown_entries_are_ignored(self, caplog):
        config = parse_pipeline_config({"stages": [
            {"name": "social-posting"},
            {"name": SITE_BUILD},
        ]})

        with caplog.at_level(logging.WARNING):
            stages = resolve_stages(config, noop_registry([SITE_BUILD]))

        assert [s.name for s in stages] == [SITE_BUILD]
        assert "social-posting" in caplog.text

    def test_factories_receive_stage_config(self):
        received = []
        registry = StageRegistry()
        registry.register(SITE_BUILD, lambda stage_config: received.append(stage_config) or (lambda: None))
        config = parse_pipeline_config({"stages": [{"name": SITE_BUILD, "options": {"outputDir": "out"}}]})

        resolve_stages(config, registry)

        assert isinstance(received[0], StageConfig)
        assert received[0].options["outputDir"] == "out"

    def test_unconfigured_stage_factory_gets_disabled_config(self):
        received = []
        registry = StageRegistry()
        registry.register(DEPLOYMENT, lambda stage_config: received.append(stage_config) or (lambda: None))

        stages = resolve_stages(parse_pipeline_config({"stages": []}), registry)

        assert stages[0].enabled is False
        assert received[0] == StageConfig(name=DEPLOYMENT, enabled=False)
