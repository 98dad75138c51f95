import asyncio
import re

import pytest

from pagetest import ExpectationFailed, SessionClosedError, expect
from pagetest.errors import ChannelError
from pagetest.expect import _Assertions
from pagetest.polling import PollConfig, Poller, PollState, poll_until


# ================================================================================
# Poller
# ================================================================================

@pytest.mark.asyncio
async def test_poller_succeeds_on_first_matching_probe():
    values = iter([1, 2, 3, 4])

    async def probe():
        return next(values)

    poller = Poller(probe, lambda v: v == 3, PollConfig(timeout_ms=1000, interval_ms=10))
    assert await poller.run() == 3
    assert poller.state is PollState.SUCCEEDED
    assert poller.attempts == 3


@pytest.mark.asyncio
async def test_poller_failure_carries_last_observation():
    async def probe():
        return "nope"

    poller = Poller(
        probe, lambda v: v == "yes", PollConfig(timeout_ms=200, interval_ms=50),
        description="value to be yes", expected="yes",
    )
    with pytest.raises(ExpectationFailed) as exc_info:
        await poller.run()

    error = exc_info.value
    assert isinstance(error, AssertionError)
    assert poller.state is PollState.FAILED
    assert error.expected == "yes"
    assert error.actual == "nope"
    assert error.attempts == poller.attempts >= 2
    assert "value to be yes: expected 'yes', last observed 'nope'" in str(error)


@pytest.mark.asyncio
async def test_transient_channel_errors_are_retried():
    calls = []

    async def probe():
        calls.append(1)
        if len(calls) < 3:
            raise ChannelError("Element is not attached to the DOM")
        return "ready"

    assert await poll_until(probe, lambda v: v == "ready", timeout_ms=1000, poll_interval_ms=10) == "ready"
    assert len(calls) == 3


@pytest.mark.asyncio
async def test_session_closed_error_propagates_immediately():
    async def probe():
        raise SessionClosedError("Page page@1 is closed")

    with pytest.raises(SessionClosedError):
        await poll_until(probe, lambda v: True, timeout_ms=1000, poll_interval_ms=10)


@pytest.mark.asyncio
async def test_cancellation_interrupts_sleep():
    async def probe():
        return False

    poller = Poller(probe, bool, PollConfig(timeout_ms=10000, interval_ms=1000))
    task = asyncio.ensure_future(poller.run())
    await asyncio.sleep(0.05)

    loop = asyncio.get_running_loop()
    started = loop.time()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert loop.time() - started < 0.5
    assert poller.state is PollState.CANCELLED


@pytest.mark.asyncio
async def test_interval_growth_is_capped():
    async def probe():
        return 0

    poller = Poller(
        probe, lambda v: False,
        PollConfig(timeout_ms=300, interval_ms=10, multiplier=2.0, max_interval_ms=40),
    )
    with pytest.raises(ExpectationFailed):
        await poller.run()
    # 10 + 20 + 40 + 40 ... fits at least six attempts into 300ms
    assert poller.attempts >= 6


# ================================================================================
# Page assertions
# ================================================================================

def test_assertion_base_cannot_be_instantiated():
    with pytest.raises(TypeError):
        _Assertions(None)


@pytest.mark.asyncio
async def test_title_that_changes_later_is_awaited(page):
    await page.goto("/title")

    loop = asyncio.get_running_loop()
    started = loop.time()
    await expect(page, timeout_ms=2000).to_have_title(re.compile("Foo"))
    elapsed = loop.time() - started

    # Succeeds shortly after the change, not at the deadline
    assert 0.3 <= elapsed < 1.2


@pytest.mark.asyncio
async def test_title_that_changes_too_late_fails_with_earlier_title(page, config):
    await page.goto("/title")

    loop = asyncio.get_running_loop()
    started = loop.time()
    with pytest.raises(ExpectationFailed) as exc_info:
        await expect(page, timeout_ms=100).to_have_title(re.compile("Foo"))
    elapsed = loop.time() - started

    assert exc_info.value.actual == "Loading"
    assert "/Foo/" in str(exc_info.value)
    # Never later than timeout + one poll interval (plus scheduling slack)
    assert elapsed < 0.1 + config.timeouts.poll_interval_ms / 1000 + 0.1


@pytest.mark.asyncio
async def test_url_assertions(page):
    await page.goto("/a")

    await expect(page).to_have_url("https://example.test/a")
    await expect(page).to_have_url("/a")
    await expect(page).to_have_url(re.compile(r".*/a$"))
    await expect(page).not_.to_have_url(re.compile("intro"))


@pytest.mark.asyncio
async def test_negated_title_fails_when_title_matches(page):
    with pytest.raises(ExpectationFailed, match="not page title"):
        await expect(page, timeout_ms=100).not_.to_have_title("Fixtures")


# ================================================================================
# Locator assertions
# ================================================================================

@pytest.mark.asyncio
async def test_visibility_assertions(page):
    await expect(page.locator("li.item").first).to_be_visible()
    await expect(page.locator(".note")).to_be_hidden()
    await expect(page.locator(".note")).to_be_attached()
    await expect(page.locator("#does-not-exist")).to_be_hidden()
    await expect(page.locator("#does-not-exist")).not_.to_be_attached()


@pytest.mark.asyncio
async def test_visibility_is_awaited(page):
    await page.locator("#reveal").click()

    await expect(page.locator("#later")).to_be_visible()
    await expect(page.locator("#later")).to_have_text("Shown later")


@pytest.mark.asyncio
async def test_missing_element_fails_visibility_with_detached_state(page):
    with pytest.raises(ExpectationFailed) as exc_info:
        await expect(page.locator("#does-not-exist"), timeout_ms=150).to_be_visible()

    assert exc_info.value.actual == "detached"


@pytest.mark.asyncio
async def test_attribute_and_text_assertions(page):
    alpha = page.locator("text=Alpha")

    await expect(alpha).to_have_attribute("href", "/a")
    await expect(alpha).to_have_attribute("href", re.compile(r"^/\w$"))
    await expect(alpha).not_.to_have_attribute("href", "/b")
    await expect(page.locator(".spaced")).to_have_text("Hello world")
    await expect(page.locator(".spaced")).to_contain_text("world")
    await expect(page.locator(".spaced")).to_have_text(re.compile(r"Hello\s+world"))


@pytest.mark.asyncio
async def test_count_assertion(page):
    await expect(page.locator("li.item")).to_have_count(3)
    await expect(page.locator(".card")).not_.to_have_count(3)

    with pytest.raises(ExpectationFailed) as exc_info:
        await expect(page.locator(".card"), timeout_ms=100).to_have_count(5)
    assert exc_info.value.actual == 2


def test_expect_rejects_other_targets():
    with pytest.raises(TypeError):
        expect("https://playwright.dev")
