"""Tests for the typer CLI with the application wiring patched out."""

from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from typer.testing import CliRunner

from flavortown.cli import EXIT_CODE_FAIL, EXIT_CODE_OK, app
from flavortown.core.cache import CacheStats
from flavortown.core.exceptions import ConfigurationError
from flavortown.core.pricing import TokenTracker
from flavortown.repositories import Err, Ok
from flavortown.schemas.base import TokenUsage
from flavortown.schemas.records import EpisodeRecord, EpisodeRestaurantRecord, LongFormCandidate
from flavortown.schemas.workflow import StepStatus, WorkflowResult, WorkflowStatus, WorkflowStep
from flavortown.services.episode_description import EpisodeDescriptionResult
from flavortown.workflows import StatusSweepOutput, StatusUpdate

runner = CliRunner()

RID = "3f2b8c1e-9d4a-4b6f-8a2e-1c5d7e9f0a3b"


def _result(success=True, output=None, name="manual-restaurant-addition") -> WorkflowResult:
    now = datetime.now(timezone.utc)
    return WorkflowResult(
        success=success,
        workflow_id=f"{name}-1-abcdefg",
        workflow_name=name,
        status=WorkflowStatus.COMPLETED if success else WorkflowStatus.FAILED,
        steps=(WorkflowStep(1, "Verify restaurant exists in database", StepStatus.COMPLETED),),
        started_at=now,
        completed_at=now,
        duration_ms=12,
        output=output,
    )


def _workflow(result: WorkflowResult) -> MagicMock:
    workflow = MagicMock()
    workflow.execute = AsyncMock(return_value=result)
    workflow.tracker = TokenTracker()
    return workflow


@pytest.fixture
def enrichment_app():
    fake = MagicMock()
    fake.aclose = AsyncMock()
    with patch("flavortown.cli._build_app", return_value=fake):
        yield fake


class TestAddRestaurant:
    def test_success(self, enrichment_app):
        workflow = _workflow(_result())
        enrichment_app.manual_addition_workflow.return_value = workflow

        result = runner.invoke(app, ["add-restaurant", RID, "Mama's Kitchen", "Denver", "-s", "CO", "--dry-run"])

        assert result.exit_code == EXIT_CODE_OK
        sent = workflow.execute.await_args.args[0]
        assert sent.restaurant_id == RID
        assert sent.state == "CO"
        assert sent.dry_run is True
        assert "DRY RUN" in result.output
        enrichment_app.aclose.assert_awaited_once()

    def test_failed_workflow_exits_1(self, enrichment_app):
        enrichment_app.manual_addition_workflow.return_value = _workflow(_result(success=False))

        result = runner.invoke(app, ["add-restaurant", RID, "Mama's Kitchen", "Denver"])

        assert result.exit_code == EXIT_CODE_FAIL

    def test_configuration_error_exits_1(self):
        with patch("flavortown.cli._build_app", side_effect=ConfigurationError("OPENAI_API_KEY is required")):
            result = runner.invoke(app, ["add-restaurant", RID, "Mama's Kitchen", "Denver"])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "OPENAI_API_KEY is required" in result.output


class TestRefresh:
    def test_single_restaurant_scope_flags(self, enrichment_app):
        workflow = _workflow(_result(name="refresh-stale-restaurant"))
        enrichment_app.refresh_workflow.return_value = workflow

        result = runner.invoke(app, ["refresh", RID, "--no-data"])

        assert result.exit_code == EXIT_CODE_OK
        sent = workflow.execute.await_args.args[0]
        assert sent.scope.data is False
        assert sent.scope.status is True

    def test_nothing_stale(self, enrichment_app):
        enrichment_app.restaurants.get_all_stale = AsyncMock(return_value=Ok([]))

        result = runner.invoke(app, ["refresh", "--days", "30", "--limit", "5"])

        assert result.exit_code == EXIT_CODE_OK
        assert "No restaurants need refreshing" in result.output
        enrichment_app.restaurants.get_all_stale.assert_awaited_once_with(30, 5)

    def test_database_error(self, enrichment_app):
        enrichment_app.restaurants.get_all_stale = AsyncMock(return_value=Err("boom"))

        result = runner.invoke(app, ["refresh"])

        assert result.exit_code == EXIT_CODE_FAIL


class TestSweep:
    def _run(self, enrichment_app, args, output=None):
        workflow = _workflow(_result(output=output or StatusSweepOutput(), name="restaurant-status-sweep"))
        enrichment_app.status_sweep_workflow.return_value = workflow
        result = runner.invoke(app, ["sweep", *args])
        return result, workflow

    def test_defaults_use_criteria(self, enrichment_app):
        result, workflow = self._run(enrichment_app, [])

        assert result.exit_code == EXIT_CODE_OK
        sent = workflow.execute.await_args.args[0]
        assert sent.restaurant_ids is None
        assert sent.criteria.not_verified_in_days == 180
        assert sent.limit == 50
        assert sent.min_confidence == 0.75
        assert sent.batch_size == 10

    def test_all_and_no_limit(self, enrichment_app):
        _, workflow = self._run(enrichment_app, ["--all", "--no-limit", "--status", "open", "--concurrency", "4"])

        sent = workflow.execute.await_args.args[0]
        assert sent.criteria.not_verified_in_days is None
        assert sent.criteria.status == "open"
        assert sent.limit is None
        assert sent.batch_size == 4

    def test_explicit_ids(self, enrichment_app):
        _, workflow = self._run(enrichment_app, ["--id", RID, "--id", RID.replace("3f", "4f", 1), "--dry-run"])

        sent = workflow.execute.await_args.args[0]
        assert sent.criteria is None
        assert len(sent.restaurant_ids) == 2
        assert sent.dry_run is True

    def test_prints_updates(self, enrichment_app):
        output = StatusSweepOutput(
            total_processed=3, total_updated=1, total_skipped=2,
            updates=[StatusUpdate(RID, "Diner 1", "open", "closed", 0.9)],
        )

        result, _ = self._run(enrichment_app, [], output=output)

        assert "Diner 1: open -> closed (0.90)" in result.output
        assert "Updated: 1" in result.output

    def test_invalid_status_filter(self, enrichment_app):
        result = runner.invoke(app, ["sweep", "--status", "maybe"])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "Invalid filter" in result.output
        enrichment_app.status_sweep_workflow.assert_not_called()


class TestEpisodes:
    def test_generates_and_saves(self, enrichment_app):
        episodes = enrichment_app.episodes
        episodes.find_for_meta_description = AsyncMock(return_value=Ok([
            EpisodeRecord(id="e1", title="Comfort Classics", season=12, episode_number=5),
        ]))
        episodes.get_episode_restaurants = AsyncMock(return_value=Ok([
            EpisodeRestaurantRecord(id="r1", name="Mama's Kitchen"),
        ]))
        episodes.update_meta_description = AsyncMock(return_value=Ok(None))
        enrichment_app.episode_descriptions.generate_episode_description = AsyncMock(
            return_value=EpisodeDescriptionResult(
                "e1", success=True, meta_description="meta",
                tokens_used=TokenUsage(prompt_tokens=100, completion_tokens=50, total_tokens=150),
            )
        )

        result = runner.invoke(app, ["episodes", "--limit", "1"])

        assert result.exit_code == EXIT_CODE_OK
        assert "Succeeded: 1" in result.output
        episodes.find_for_meta_description.assert_awaited_once_with(1, include_described=False)
        enrichment_app.episode_descriptions.generate_episode_description.assert_awaited_once_with(
            "e1", 12, 5, "Comfort Classics", ["Mama's Kitchen"],
        )
        episodes.update_meta_description.assert_awaited_once_with("e1", "meta")

    def test_dry_run_only_lists(self, enrichment_app):
        enrichment_app.episodes.find_for_meta_description = AsyncMock(return_value=Ok([
            EpisodeRecord(id="e1", title="Comfort Classics", season=12, episode_number=5),
        ]))
        enrichment_app.episodes.get_episode_restaurants = AsyncMock()

        result = runner.invoke(app, ["episodes", "--dry-run"])

        assert result.exit_code == EXIT_CODE_OK
        assert "S12E5: Comfort Classics" in result.output
        enrichment_app.episodes.get_episode_restaurants.assert_not_awaited()


class TestLongForm:
    def test_dry_run_lists_candidates(self, enrichment_app):
        enrichment_app.restaurants.find_for_long_form = AsyncMock(return_value=Ok([
            LongFormCandidate(id=RID, name="Mama's Kitchen", city="Denver"),
        ]))
        enrichment_app.long_form.generate_long_form_content = AsyncMock()

        result = runner.invoke(app, ["long-form", "--no-limit", "--dry-run"])

        assert result.exit_code == EXIT_CODE_OK
        assert "Mama's Kitchen (Denver)" in result.output
        enrichment_app.restaurants.find_for_long_form.assert_awaited_once_with(None, include_enriched=False)
        enrichment_app.long_form.generate_long_form_content.assert_not_awaited()

    def test_rejects_zero_concurrency(self, enrichment_app):
        result = runner.invoke(app, ["long-form", "--concurrency", "0"])
        assert result.exit_code == EXIT_CODE_FAIL


class TestCacheCommands:
    def test_cache_stats(self, enrichment_app):
        enrichment_app.cache.stats = AsyncMock(return_value=CacheStats(
            total=3, by_type={"restaurant": 2, "episode": 1}, by_source={"tavily": 3}, expired=1,
        ))

        result = runner.invoke(app, ["cache-stats"])

        assert result.exit_code == EXIT_CODE_OK
        assert "type: restaurant" in result.output
        assert "source: tavily" in result.output

    def test_invalidate(self, enrichment_app):
        enrichment_app.cache.invalidate = AsyncMock(return_value=2)

        result = runner.invoke(app, ["invalidate-cache", "restaurant", "--id", "r1"])

        assert result.exit_code == EXIT_CODE_OK
        assert "Invalidated 2 cache entries for restaurant r1" in result.output
        enrichment_app.cache.invalidate.assert_awaited_once_with("restaurant", "r1")
