"""
Tests for command-driven stages, run against real subprocesses.
"""
import os
import shlex
import sys

import pytest
from unittest.mock import Mock

from backend.src.pipeline.config import (
    ARTICLE_GENERATION,
    DEPLOYMENT,
    KEYWORD_SCRAPING,
    SITE_BUILD,
    SITEMAP_SUBMISSION,
    STAGE_ORDER,
    StageConfig,
    default_pipeline_config,
)
from backend.src.pipeline.exceptions import CommandFailedError
from backend.src.pipeline.stages import (
    DEFAULT_COMMANDS,
    CommandStage,
    StageRegistry,
    copy_articles,
    default_registry,
)
from backend.src.recovery import ErrorCategory, RetryOptions, StructuredError

PYTHON = shlex.quote(sys.executable)


def python(code):
    return f"{PYTHON} -c {shlex.quote(code)}"


class FakeSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


FLAKY_SCRIPT = """
import pathlib, sys
counter = pathlib.Path(sys.argv[1])
runs = int(counter.read_text()) if counter.exists() else 0
counter.write_text(str(runs + 1))
if runs == 0:
    print("HTTP 429 Too Many Requests")
    sys.exit(1)
print("done")
"""


class TestCommandStage:
    """Test running commands through the retry engine."""

    @pytest.mark.asyncio
    async def test_runs_commands_in_order(self, tmp_path):
        log = tmp_path / "log.txt"
        stage = CommandStage("build", [
            python(f"open({str(log)!r}, 'a').write('one\\n')"),
            python(f"open({str(log)!r}, 'a').write('two\\n')"),
        ])

        await stage()

        assert log.read_text().splitlines() == ["one", "two"]

    @pytest.mark.asyncio
    async def test_run_command_returns_output(self):
        stage = CommandStage("echo", [])
        output = await stage.run_command(python("print('hello')"))
        assert output.strip() == "hello"

    @pytest.mark.asyncio
    async def test_non_zero_exit_fails_without_retry(self):
        sleep = FakeSleep()
        stage = CommandStage("broken", [python("import sys; print('bad input'); sys.exit(3)")], sleep=sleep)

        with pytest.raises(StructuredError) as exc_info:
            await stage()

        cause = exc_info.value.__cause__
        assert isinstance(cause, CommandFailedError)
        assert cause.returncode == 3
        assert cause.output == "bad input"
        assert exc_info.value.category is ErrorCategory.UNKNOWN
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_transient_output_is_retried(self, tmp_path):
        script = tmp_path / "flaky.py"
        script.write_text(FLAKY_SCRIPT, encoding="utf-8")
        counter = tmp_path / "runs"
        sleep = FakeSleep()
        stage = CommandStage(
            "flaky",
            [f"{PYTHON} {shlex.quote(str(script))} {shlex.quote(str(counter))}"],
            retry_options=RetryOptions(max_attempts=3),
            sleep=sleep,
        )

        await stage()

        assert counter.read_text() == "2"
        assert sleep.delays == [1.0]

    @pytest.mark.asyncio
    async def test_env_and_cwd(self, tmp_path):
        out = tmp_path / "out.txt"
        stage = CommandStage(
            "env",
            [python(f"import os; open({str(out)!r}, 'w').write(os.environ['STAGE_FLAG'] + '|' + os.getcwd())")],
            cwd=tmp_path,
            env={"STAGE_FLAG": "on"},
        )

        await stage()

        flag, cwd = out.read_text().split("|")
        assert flag == "on"
        assert os.path.realpath(cwd) == os.path.realpath(tmp_path)

    @pytest.mark.asyncio
    async def test_missing_required_env(self, tmp_path):
        marker = tmp_path / "ran"
        stage = CommandStage(
            ARTICLE_GENERATION,
            [python(f"open({str(marker)!r}, 'w')")],
            environ={},
            required_env=("ANTHROPIC_API_KEY",),
        )

        with pytest.raises(StructuredError) as exc_info:
            await stage()

        assert str(exc_info.value) == "ANTHROPIC_API_KEY is required for article generation"
        assert exc_info.value.category is ErrorCategory.VALIDATION
        assert not marker.exists()

    @pytest.mark.asyncio
    async def test_skip_reason_stops_before_commands(self, tmp_path):
        marker = tmp_path / "ran"
        prepare = Mock()
        stage = CommandStage(
            "skippable",
            [python(f"open({str(marker)!r}, 'w')")],
            skip_reason=lambda: "nothing to do",
            prepare=prepare,
        )

        await stage()

        assert not marker.exists()
        prepare.assert_not_called()

    @pytest.mark.asyncio
    async def test_prepare_runs_first(self):
        prepare = Mock()
        await CommandStage("prepared", [], prepare=prepare)()
        prepare.assert_called_once_with()

    @pytest.mark.asyncio
    async def test_timeout(self):
        stage = CommandStage(
            "slow",
            [python("import time; time.sleep(10)")],
            timeout=0.2,
            retry_options=RetryOptions(max_attempts=1),
        )

        with pytest.raises(StructuredError) as exc_info:
            await stage()

        assert exc_info.value.category is ErrorCategory.TIMEOUT

    @pytest.mark.asyncio
    async def test_missing_executable(self):
        sleep = FakeSleep()
        stage = CommandStage("missing", ["definitely-not-an-installed-binary --version"], sleep=sleep)

        with pytest.raises(StructuredError) as exc_info:
            await stage()

        assert isinstance(exc_info.value.__cause__, FileNotFoundError)
        assert sleep.delays == []


class TestCopyArticles:
    """Test copying generated articles into the site."""

    def test_missing_source(self, tmp_path):
        assert copy_articles(tmp_path / "missing", tmp_path / "target") == 0
        assert not (tmp_path / "target").exists()

    def test_copies_markdown_only(self, tmp_path):
        source = tmp_path / "articles"
        source.mkdir()
        (source / "one.md").write_text("# One")
        (source / "two.mdx").write_text("# Two")
        (source / "notes.txt").write_text("skip")
        target = tmp_path / "site" / "posts"

        assert copy_articles(source, target) == 2
        assert sorted(p.name for p in target.iterdir()) == ["one.md", "two.mdx"]
        assert (target / "one.md").read_text() == "# One"


class TestStageRegistry:
    """Test registration and building."""

    def test_register_and_build(self):
        registry = StageRegistry()
        handler = Mock()

        @registry.register("custom")
        def factory(stage_config):
            return handler

        stage = registry.build(StageConfig(name="custom", enabled=False))

        assert "custom" in registry
        assert len(registry) == 1
        assert stage.handler is handler
        assert stage.enabled is False

    def test_duplicate_registration(self):
        registry = StageRegistry()
        registry.register("a", Mock())
        with pytest.raises(ValueError):
            registry.register("a", Mock())

    def test_unknown_stage(self):
        with pytest.raises(KeyError):
            StageRegistry().get("nope")


class TestDefaultRegistry:
    """Test the five default stages."""

    def test_order(self):
        assert default_registry().names() == list(STAGE_ORDER)

    def test_default_commands(self):
        assert DEFAULT_COMMANDS[KEYWORD_SCRAPING] == [
            "pnpm run build --filter @seo-spy/keyword-spy",
            "node packages/keyword-spy/dist/index.js",
        ]
        assert DEFAULT_COMMANDS[SITE_BUILD] == ["pnpm run build --filter @seo-spy/site-template"]

    @pytest.mark.asyncio
    async def test_article_generation_requires_api_key(self, tmp_path):
        registry = default_registry(cwd=tmp_path, environ={})
        stage = registry.build(default_pipeline_config().get(ARTICLE_GENERATION))

        with pytest.raises(StructuredError, match="ANTHROPIC_API_KEY is required"):
            await stage.handler()

    @pytest.mark.asyncio
    async def test_sitemap_skipped_without_auto_submit(self, tmp_path):
        registry = default_registry(cwd=tmp_path, environ={})
        stage = registry.build(default_pipeline_config().get(SITEMAP_SUBMISSION))

        # Would fail if the pnpm commands actually ran
        await stage.handler()

    @pytest.mark.asyncio
    async def test_sitemap_skipped_without_credentials(self, tmp_path):
        registry = default_registry(cwd=tmp_path, environ={})
        stage = registry.build(StageConfig(name=SITEMAP_SUBMISSION, options={"autoSubmit": True}))

        await stage.handler()

    @pytest.mark.asyncio
    async def test_sitemap_submits_with_credentials(self, tmp_path):
        marker = tmp_path / "submitted"
        environ = dict(os.environ, GOOGLE_SERVICE_ACCOUNT_KEY_PATH="/secrets/key.json")
        registry = default_registry(cwd=tmp_path, environ=environ)
        stage = registry.build(StageConfig(
            name=SITEMAP_SUBMISSION,
            commands=(python(f"open({str(marker)!r}, 'w')"),),
            options={"autoSubmit": True},
        ))

        await stage.handler()

        assert marker.exists()

    @pytest.mark.asyncio
    async def test_site_build_copies_articles(self, tmp_path):
        articles = tmp_path / "articles"
        articles.mkdir()
        (articles / "post.md").write_text("# Post")
        content = tmp_path / "content"
        registry = default_registry(
            cwd=tmp_path,
            environ=dict(os.environ),
            articles_dir=articles,
            site_content_dir=content,
        )
        stage = registry.build(StageConfig(name=SITE_BUILD, commands=(python("pass"),)))

        await stage.handler()

        assert (content / "post.md").read_text() == "# Post"

    @pytest.mark.asyncio
    async def test_stage_options_and_platform_are_exported(self, tmp_path):
        out = tmp_path / "env.txt"
        registry = default_registry(cwd=tmp_path, environ=dict(os.environ))
        code = (
            "import os; "
            f"open({str(out)!r}, 'w').write(os.environ['DEPLOY_PLATFORM'] + '|' + os.environ['PIPELINE_STAGE_OPTIONS'])"
        )
        stage = registry.build(StageConfig(
            name=DEPLOYMENT,
            commands=(python(code),),
            options={"platform": "vercel"},
        ))

        await stage.handler()

        platform, options = out.read_text().split("|", 1)
        assert platform == "vercel"
        assert options == '{"platform": "vercel"}'
