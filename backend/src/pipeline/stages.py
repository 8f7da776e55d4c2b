"""
Stage registry and the default command-driven stages.

Each default stage shells out to the workspace package that does the real
work (keyword scraping, article generation, site build, deployment and
sitemap submission). Every command runs through the retry engine, so
transient failures reported on the command's output (timeouts, rate limits,
dropped connections) are retried while anything else fails the stage.
"""
import asyncio
import json
import os
import shlex
import shutil
from pathlib import Path
from typing import Any, Awaitable, Callable, Mapping, Optional, Sequence, Union

from .. import settings
from ..recovery import RetryOptions, create_timeout_error, create_validation_error, with_retry
from ..structured_logger import StructuredLogger, create_logger
from .config import (
    ARTICLE_GENERATION,
    DEPLOYMENT,
    KEYWORD_SCRAPING,
    SITE_BUILD,
    SITEMAP_SUBMISSION,
    StageConfig,
)
from .exceptions import CommandFailedError
from .types import Stage, StageHandler

logger = create_logger("stages")

StageFactory = Callable[[StageConfig], StageHandler]

# Characters of command output kept in the failure message
OUTPUT_TAIL_CHARS = 500

ARTICLE_EXTENSIONS = (".md", ".mdx")


def _workspace_commands(package: str, entrypoint: bool = True) -> list[str]:
    commands = [f"pnpm run build --filter @seo-spy/{package}"]
    if entrypoint:
        commands.append(f"node packages/{package}/dist/index.js")
    return commands


DEFAULT_COMMANDS: dict[str, list[str]] = {
    KEYWORD_SCRAPING: _workspace_commands("keyword-spy"),
    ARTICLE_GENERATION: _workspace_commands("article-gen"),
    SITE_BUILD: _workspace_commands("site-template", entrypoint=False),
    DEPLOYMENT: _workspace_commands("deploy"),
    SITEMAP_SUBMISSION: _workspace_commands("sitemap-submitter"),
}


class StageRegistry:
    """Ordered mapping of stage names to handler factories."""

    def __init__(self):
        self._factories: dict[str, StageFactory] = {}

    def register(self, name: str, factory: Optional[StageFactory] = None):
        """Register ``factory`` under ``name``; usable as a decorator."""
        def decorator(func: StageFactory) -> StageFactory:
            if name in self._factories:
                raise ValueError(f"Stage '{name}' is already registered")
            self._factories[name] = func
            return func

        if factory is not None:
            return decorator(factory)
        return decorator

    def names(self) -> list[str]:
        return list(self._factories)

    def get(self, name: str) -> StageFactory:
        try:
            return self._factories[name]
        except KeyError:
            raise KeyError(f"Unknown stage '{name}'") from None

    def build(self, stage_config: StageConfig) -> Stage:
        handler = self.get(stage_config.name)(stage_config)
        return Stage(name=stage_config.name, handler=handler, enabled=stage_config.enabled)

    def __contains__(self, name: object) -> bool:
        return name in self._factories

    def __len__(self) -> int:
        return len(self._factories)


class CommandStage:
    """
    Stage handler that runs shell-style commands one after another.

    Args:
        name: Stage name, used in logs
        commands: Command lines, split with ``shlex``
        cwd: Working directory for the commands
        env: Extra environment variables layered over ``environ``
        environ: Base environment; defaults to ``os.environ`` at call time
        required_env: Variables that must be set before anything runs
        skip_reason: Returns a reason to finish early without running commands
        prepare: Runs in a worker thread before the commands
        retry_options: Retry policy applied to each command
        timeout: Per-command timeout in seconds
    """

    def __init__(
        self,
        name: str,
        commands: Sequence[str],
        cwd: Union[str, os.PathLike, None] = None,
        env: Optional[Mapping[str, str]] = None,
        environ: Optional[Mapping[str, str]] = None,
        required_env: Sequence[str] = (),
        skip_reason: Optional[Callable[[], Optional[str]]] = None,
        prepare: Optional[Callable[[], Any]] = None,
        retry_options: Optional[RetryOptions] = None,
        timeout: Optional[float] = None,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
        logger: Optional[StructuredLogger] = None,
    ):
        self.name = name
        self.commands = list(commands)
        self.cwd = os.fspath(cwd) if cwd is not None else None
        self.env = dict(env or {})
        self.environ = environ
        self.required_env = tuple(required_env)
        self.skip_reason = skip_reason
        self.prepare = prepare
        self.retry_options = retry_options or RetryOptions()
        self.timeout = timeout
        self._sleep = sleep
        self.logger = logger or create_logger(f"stages.{name}")

    def _base_environ(self) -> Mapping[str, str]:
        return self.environ if self.environ is not None else os.environ

    def check_requirements(self) -> None:
        environ = self._base_environ()
        for var in self.required_env:
            if not environ.get(var):
                raise create_validation_error(
                    f"{var} is required for {self.name.replace('-', ' ')}",
                    metadata={"stage": self.name, "variable": var},
                )

    async def __call__(self) -> None:
        self.check_requirements()

        if self.skip_reason is not None:
            reason = self.skip_reason()
            if reason:
                self.logger.warn(reason, {"stage": self.name})
                return

        if self.prepare is not None:
            await asyncio.to_thread(self.prepare)

        for command in self.commands:
            await with_retry(lambda: self.run_command(command), self.retry_options, sleep=self._sleep)

    async def run_command(self, command: str) -> str:
        """Run one command and return its combined output."""
        argv = shlex.split(command)
        self.logger.info(f"Running: {command}", {"stage": self.name})

        process = await asyncio.create_subprocess_exec(
            *argv,
            cwd=self.cwd,
            env={**self._base_environ(), **self.env},
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
        )
        try:
            stdout, _ = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise create_timeout_error(
                f"Command '{command}' timed out after {self.timeout}s",
                metadata={"stage": self.name, "command": command},
            ) from None

        output = stdout.decode(errors="replace") if stdout else ""
        for line in output.splitlines():
            self.logger.debug(line, {"stage": self.name})

        if process.returncode != 0:
            tail = output.strip()[-OUTPUT_TAIL_CHARS:] or None
            raise CommandFailedError(argv, process.returncode, tail)
        return output


def copy_articles(source_dir: Union[str, os.PathLike], target_dir: Union[str, os.PathLike]) -> int:
    """Copy generated articles into the site's content directory.

    Returns:
        Number of files copied

    """
    source = Path(source_dir)
    target = Path(target_dir)

    if not source.is_dir():
        logger.warn("No articles found to copy", {"source": str(source)})
        return 0

    target.mkdir(parents=True, exist_ok=True)
    copied = 0
    for path in sorted(source.iterdir()):
        if path.is_file() and path.suffix.lower() in ARTICLE_EXTENSIONS:
            shutil.copy2(path, target / path.name)
            copied += 1

    logger.info(f"Copied {copied} articles to site content directory", {"target": str(target)})
    return copied


def _sitemap_skip_reason(stage_config: StageConfig, environ: Optional[Mapping[str, str]]) -> Callable[[], Optional[str]]:
    def reason() -> Optional[str]:
        if not stage_config.options.get("autoSubmit", False):
            return "Sitemap generated (auto-submit disabled)"
        env = environ if environ is not None else os.environ
        if not env.get(settings.GOOGLE_SERVICE_ACCOUNT_VAR):
            return f"{settings.GOOGLE_SERVICE_ACCOUNT_VAR} not set, skipping"
        return None
    return reason


def default_registry(
    cwd: Union[str, os.PathLike, None] = None,
    environ: Optional[Mapping[str, str]] = None,
    retry_options: Optional[RetryOptions] = None,
    articles_dir: Union[str, os.PathLike, None] = None,
    site_content_dir: Union[str, os.PathLike, None] = None,
) -> StageRegistry:
    """Registry with the five pipeline stages in execution order."""
    registry = StageRegistry()
    cwd = cwd if cwd is not None else settings.BASE_DIR

    def command_stage(stage_config: StageConfig, **kwargs: Any) -> CommandStage:
        commands = stage_config.commands
        if commands is None:
            commands = DEFAULT_COMMANDS[stage_config.name]
        env = {"PIPELINE_STAGE_OPTIONS": json.dumps(dict(stage_config.options)), **stage_config.env}
        return CommandStage(
            stage_config.name,
            commands,
            cwd=cwd,
            env=env,
            environ=environ,
            retry_options=retry_options,
            **kwargs,
        )

    registry.register(KEYWORD_SCRAPING, command_stage)

    @registry.register(ARTICLE_GENERATION)
    def article_generation(stage_config: StageConfig) -> CommandStage:
        return command_stage(stage_config, required_env=(settings.ANTHROPIC_API_KEY_VAR,))

    @registry.register(SITE_BUILD)
    def site_build(stage_config: StageConfig) -> CommandStage:
        source = articles_dir or settings.ARTICLES_DIR
        target = site_content_dir or settings.SITE_CONTENT_DIR
        return command_stage(stage_config, prepare=lambda: copy_articles(source, target))

    @registry.register(DEPLOYMENT)
    def deployment(stage_config: StageConfig) -> CommandStage:
        platform = stage_config.options.get("platform", "cloudflare")
        stage = command_stage(stage_config)
        stage.env.setdefault("DEPLOY_PLATFORM", str(platform))
        return stage

    @registry.register(SITEMAP_SUBMISSION)
    def sitemap_submission(stage_config: StageConfig) -> CommandStage:
        return command_stage(stage_config, skip_reason=_sitemap_skip_reason(stage_config, environ))

    return registry
