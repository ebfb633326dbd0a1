import pytest
from conftest import FakeContext, Recorder

from analyst_panel.agents.collaborative.application.context_collector import (
    ContextCollector,
)
from analyst_panel.agents.collaborative.domain.errors import ContextFailure


@pytest.mark.asyncio
async def test_collect_returns_digest_and_reports_it(subject, digest):
    progress = Recorder()
    collector = ContextCollector(provider=FakeContext(digest=digest))

    result = await collector.collect(subject, progress)

    assert result == digest
    assert progress.mentions("positive")
    assert progress.mentions("4 articles")


@pytest.mark.asyncio
async def test_no_provider_means_no_context(subject):
    progress = Recorder()

    result = await ContextCollector(provider=None).collect(subject, progress)

    assert result is None
    assert len(progress.items) == 1


@pytest.mark.asyncio
async def test_empty_result_is_reported(subject):
    progress = Recorder()

    result = await ContextCollector(provider=FakeContext()).collect(subject, progress)

    assert result is None
    assert progress.mentions("No relevant market news found for 2330")


@pytest.mark.asyncio
async def test_failure_is_absorbed(subject):
    progress = Recorder()
    provider = FakeContext(error=ContextFailure("news API down"))

    result = await ContextCollector(provider=provider).collect(subject, progress)

    assert result is None
    assert progress.mentions("news API down")


@pytest.mark.asyncio
async def test_timeout_is_absorbed(subject, digest):
    progress = Recorder()
    provider = FakeContext(digest=digest, delay=1.0)

    result = await ContextCollector(provider=provider, timeout_seconds=0.01).collect(
        subject, progress
    )

    assert result is None
    assert progress.mentions("timed out")
