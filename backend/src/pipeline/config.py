"""
Pipeline configuration: which stages run and how they are parameterized.

A config file holds a ``stages`` list::

    {"stages": [{"name": "site-build", "enabled": true,
                 "commands": ["pnpm run build"], "env": {"NODE_ENV": "production"},
                 "options": {"outputDir": "./dist"}}]}

Files written for the older section layout (``keywords``, ``articles``,
``build``, ``deploy``, ``sitemap``) are accepted as well. Entries are merged
over ``DEFAULT_PIPELINE_CONFIG``; a missing file means the defaults apply.
"""
import copy
import json
import os
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Mapping, Optional, Union

from .. import settings
from ..recovery import create_validation_error
from ..structured_logger import create_logger
from .types import Stage

if TYPE_CHECKING:
    from .stages import StageRegistry

logger = create_logger("config")

KEYWORD_SCRAPING = "keyword-scraping"
ARTICLE_GENERATION = "article-generation"
SITE_BUILD = "site-build"
DEPLOYMENT = "deployment"
SITEMAP_SUBMISSION = "sitemap-submission"

STAGE_ORDER = (KEYWORD_SCRAPING, ARTICLE_GENERATION, SITE_BUILD, DEPLOYMENT, SITEMAP_SUBMISSION)

# Section names of the older config layout
LEGACY_SECTIONS = {
    "keywords": KEYWORD_SCRAPING,
    "articles": ARTICLE_GENERATION,
    "build": SITE_BUILD,
    "deploy": DEPLOYMENT,
    "sitemap": SITEMAP_SUBMISSION,
}

DEFAULT_PIPELINE_CONFIG: dict[str, Any] = {
    "stages": [
        {
            "name": KEYWORD_SCRAPING,
            "enabled": True,
            "options": {
                "niches": ["frontend development", "React tutorials", "TypeScript basics", "Astro framework"],
                "maxKeywords": 100,
            },
        },
        {
            "name": ARTICLE_GENERATION,
            "enabled": True,
            "options": {"count": 10, "minWords": 1500},
        },
        {
            "name": SITE_BUILD,
            "enabled": True,
            "options": {"outputDir": "./dist"},
        },
        {
            # Deployment is opt-in
            "name": DEPLOYMENT,
            "enabled": False,
            "options": {"platform": "cloudflare"},
        },
        {
            "name": SITEMAP_SUBMISSION,
            "enabled": True,
            "options": {"autoSubmit": False},
        },
    ]
}


def _require_mapping(value: Any, what: str) -> Mapping[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise create_validation_error(
            f"Invalid {what}: expected an object, got {type(value).__name__}",
            metadata={"value": repr(value)},
        )
    return value


@dataclass(frozen=True)
class StageConfig:
    """Settings for one stage."""
    name: str
    enabled: bool = True
    commands: Optional[tuple[str, ...]] = None
    env: Mapping[str, str] = field(default_factory=dict)
    options: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'StageConfig':
        name = data.get("name")
        if not isinstance(name, str) or not name:
            raise create_validation_error(
                f"Invalid stage entry, missing name: {data!r}",
                metadata={"entry": dict(data)},
            )

        commands = data.get("commands")
        if commands is not None:
            if not isinstance(commands, (list, tuple)) or not all(isinstance(c, str) for c in commands):
                raise create_validation_error(
                    f"Invalid commands for stage '{name}': expected a list of strings",
                    metadata={"stage": name},
                )
            commands = tuple(commands)

        enabled = data.get("enabled", True)
        if not isinstance(enabled, bool):
            raise create_validation_error(
                f"Invalid enabled flag for stage '{name}': expected true or false, got {enabled!r}",
                metadata={"stage": name},
            )

        env = _require_mapping(data.get("env"), f"env for stage '{name}'")
        options = _require_mapping(data.get("options"), f"options for stage '{name}'")

        return cls(
            name=name,
            enabled=enabled,
            commands=commands,
            env={str(k): str(v) for k, v in env.items()},
            options=dict(options),
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"name": self.name, "enabled": self.enabled}
        if self.commands is not None:
            data["commands"] = list(self.commands)
        if self.env:
            data["env"] = dict(self.env)
        if self.options:
            data["options"] = dict(self.options)
        return data


@dataclass
class PipelineConfig:
    """Stage settings keyed by name, in file order."""
    stages: dict[str, StageConfig]
    source: Optional[str] = None

    def get(self, name: str) -> Optional[StageConfig]:
        return self.stages.get(name)

    def to_dict(self) -> dict[str, Any]:
        """Snapshot stored alongside each report."""
        return {
            "source": self.source,
            "stages": [stage.to_dict() for stage in self.stages.values()],
        }


def _from_legacy(data: Mapping[str, Any]) -> list[dict[str, Any]]:
    entries = []
    for section, name in LEGACY_SECTIONS.items():
        if section not in data:
            continue
        values = dict(_require_mapping(data[section], f"'{section}' section"))
        entry: dict[str, Any] = {"name": name, "enabled": values.pop("enabled", True)}
        for key in ("commands", "env"):
            if key in values:
                entry[key] = values.pop(key)
        entry["options"] = values
        entries.append(entry)
    return entries


def parse_pipeline_config(data: Any, source: Optional[str] = None) -> PipelineConfig:
    """Build a config from decoded JSON, merged over the defaults."""
    if not isinstance(data, dict):
        raise create_validation_error(
            f"Invalid pipeline config: expected an object, got {type(data).__name__}",
            metadata={"source": source},
        )

    if "stages" in data:
        entries = data["stages"]
        if not isinstance(entries, list):
            raise create_validation_error(
                "Invalid pipeline config: 'stages' must be a list",
                metadata={"source": source},
            )
    else:
        entries = _from_legacy(data)

    defaults = {entry["name"]: entry for entry in DEFAULT_PIPELINE_CONFIG["stages"]}
    stages: dict[str, StageConfig] = {}
    for entry in entries:
        if not isinstance(entry, dict):
            raise create_validation_error(
                f"Invalid stage entry: {entry!r}",
                metadata={"source": source},
            )
        name = entry.get("name")
        merged = copy.deepcopy(defaults.get(name, {})) if isinstance(name, str) else {}
        options = {
            **merged.get("options", {}),
            **_require_mapping(entry.get("options"), f"options for stage '{name}'"),
        }
        merged.update(entry)
        merged["options"] = options

        stage = StageConfig.from_dict(merged)
        if stage.name in stages:
            raise create_validation_error(
                f"Duplicate stage '{stage.name}' in pipeline config",
                metadata={"source": source},
            )
        stages[stage.name] = stage

    return PipelineConfig(stages=stages, source=source)


def default_pipeline_config() -> PipelineConfig:
    return parse_pipeline_config(copy.deepcopy(DEFAULT_PIPELINE_CONFIG))


def load_pipeline_config(path: Union[str, os.PathLike, None] = None) -> PipelineConfig:
    """Load the pipeline config file, falling back to the defaults."""
    path = os.fspath(path or settings.CONFIG_PATH)

    if not os.path.exists(path):
        logger.warn("Using default configuration", {"path": path})
        return default_pipeline_config()

    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise create_validation_error(
            f"Invalid JSON in pipeline config {path}: {e}",
            metadata={"source": path},
        ) from e

    config = parse_pipeline_config(data, source=path)
    logger.info(f"Loaded config from: {path}")
    return config


def resolve_stages(config: PipelineConfig, registry: "StageRegistry") -> list[Stage]:
    """
    Turn the config into the ordered stage list.

    Order follows the registry. Registered stages the config does not
    mention are disabled; config entries for unknown stages are ignored.
    """
    known = set(registry.names())
    for name in config.stages:
        if name not in known:
            logger.warn(f"Ignoring unknown stage '{name}' in pipeline config", {"known": sorted(known)})

    stages = []
    for name in registry.names():
        stage_config = config.get(name)
        if stage_config is None:
            logger.debug(f"{name} not configured, disabled")
            stage_config = StageConfig(name=name, enabled=False)
        stages.append(registry.build(stage_config))
    return stages
