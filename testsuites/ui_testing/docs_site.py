"""
================================================================================
playwright.dev Docs Site Suite
================================================================================

End-to-end checks against https://playwright.dev, declared as a pagetest
TestSuite so they run through the FixtureRunner (run_tests.py --suite docs)
or one by one under pytest (tests/test_docs_site.py).

Every body receives its page explicitly.

================================================================================
"""

import re

from pagetest import PageController, TestSuite, expect


BASE_URL = "https://playwright.dev"

suite = TestSuite("playwright.dev docs site")


@suite.test(
    name="Homepage has Playwright in title and Get Started links to the intro page",
    tags=["P0", "smoke"],
)
async def homepage_get_started(page: PageController) -> None:
    await page.goto(BASE_URL)

    await expect(page).to_have_title(re.compile("Playwright"))

    get_started = page.locator("text=Get Started")
    await expect(get_started).to_have_attribute("href", "/docs/intro")

    await get_started.click()

    await expect(page).to_have_url(re.compile(".*intro"))


@suite.test(name="Search functionality works", tags=["P1"])
async def search_functionality(page: PageController) -> None:
    await page.goto(BASE_URL)

    await page.locator("button[aria-label='Search']").first.click()
    await page.locator("input[placeholder='Search docs']").fill("api")

    await expect(page.locator(".DocSearch-Dropdown")).to_be_visible()


@suite.test(name="Navigation menu is visible", tags=["P0", "smoke"])
async def navigation_menu(page: PageController) -> None:
    await page.goto(BASE_URL)

    for item in ("Docs", "API", "Community"):
        await expect(page.locator(f"nav >> text={item}")).to_be_visible()


@suite.test(name="Docs page loads correctly", tags=["P0"])
async def docs_page(page: PageController) -> None:
    await page.goto(f"{BASE_URL}/docs/intro")

    await expect(page).to_have_title(re.compile("Installation"))

    heading = page.locator("h1")
    await expect(heading).to_be_visible()
    await expect(heading).to_contain_text("Installation")


@suite.test(name="Code example is displayed", tags=["P2"])
async def code_example(page: PageController) -> None:
    await page.goto(BASE_URL)

    code_block = page.locator("pre code").first
    await expect(code_block).to_be_visible()

    code_text = await code_block.text_content()
    assert code_text, "Code block is empty"


@suite.test(name="Language tabs work", tags=["P2"])
async def language_tabs(page: PageController) -> None:
    await page.goto(f"{BASE_URL}/docs/intro")

    nodejs_tab = page.locator("button:has-text('Node.js')").first
    if await nodejs_tab.is_visible():
        await nodejs_tab.click()
        await expect(nodejs_tab).to_have_attribute("aria-selected", "true")


@suite.test(name="Footer contains links", tags=["P2"])
async def footer_links(page: PageController) -> None:
    await page.goto(BASE_URL)

    await page.evaluate("window.scrollTo(0, document.body.scrollHeight)")

    github_link = page.locator("footer a[href*='github.com']").first
    await expect(github_link).to_be_visible()


@suite.test(name="Dark mode toggle exists", tags=["P3"])
async def dark_mode_toggle(page: PageController) -> None:
    await page.goto(BASE_URL)

    theme_toggle = page.locator(
        "button[title*='theme' i], button[aria-label*='theme' i]"
    ).first
    await expect(theme_toggle).to_be_visible()
