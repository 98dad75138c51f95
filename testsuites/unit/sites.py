"""
Static documents served by StaticSiteChannel in the unit suite.

PLAYWRIGHT_DEV mirrors the parts of https://playwright.dev the docs-site
suite touches, so that suite can also run offline.
"""

from testsuites.unit.static_browser import SitePage, set_title


NAVBAR = """
<nav class="navbar">
  <a class="navbar__brand" href="/">Playwright</a>
  <a class="navbar__item navbar__link" href="/docs/intro">Docs</a>
  <a class="navbar__item navbar__link" href="/docs/api/class-playwright">API</a>
  <a class="navbar__item navbar__link" href="/community/welcome">Community</a>
  <button type="button" class="DocSearch DocSearch-Button" aria-label="Search"
          data-reveal=".DocSearch-Modal">Search</button>
  <button type="button" class="clean-btn toggleButton"
          title="Switch theme (currently light mode)"
          aria-label="Switch theme (currently light mode)">Light</button>
</nav>
<div class="DocSearch-Modal" hidden>
  <input class="DocSearch-Input" placeholder="Search docs" data-reveal=".DocSearch-Dropdown">
  <div class="DocSearch-Dropdown" style="display: none">
    <ul><li><a href="/docs/api/class-playwright">Playwright Library</a></li></ul>
  </div>
</div>
"""

FOOTER = """
<footer class="footer">
  <a class="footer__link-item" href="https://github.com/microsoft/playwright">GitHub</a>
  <a class="footer__link-item" href="https://aka.ms/playwright/discord">Discord</a>
</footer>
"""

HOME_HTML = f"""
<html>
<head><title>Fast and reliable end-to-end testing for modern web apps | Playwright</title></head>
<body>
{NAVBAR}
<header class="hero">
  <h1 class="hero__title">Playwright enables reliable end-to-end testing for modern web apps.</h1>
  <a class="getStarted_Sjon" href="/docs/intro">Get started</a>
</header>
<main>
  <pre><code>npm init playwright@latest</code></pre>
  <pre><code>npx playwright test</code></pre>
</main>
{FOOTER}
</body>
</html>
"""

INTRO_HTML = f"""
<html>
<head><title>Installation | Playwright</title></head>
<body>
{NAVBAR}
<article>
  <h1>Installation</h1>
  <p>Playwright Test is an end-to-end test framework for modern web apps.</p>
  <div role="tablist" class="tabs">
    <button role="tab" class="tabs__item" aria-selected="false">Node.js</button>
    <button role="tab" class="tabs__item" aria-selected="true">Python</button>
    <button role="tab" class="tabs__item" aria-selected="false">Java</button>
  </div>
</article>
{FOOTER}
</body>
</html>
"""

API_HTML = f"""
<html>
<head><title>Playwright Library | Playwright</title></head>
<body>{NAVBAR}<h1>Playwright Library</h1>{FOOTER}</body>
</html>
"""

PLAYWRIGHT_DEV = {
    "https://playwright.dev/": SitePage(HOME_HTML),
    "https://playwright.dev/docs/intro": SitePage(INTRO_HTML),
    "https://playwright.dev/docs/api/class-playwright": SitePage(API_HTML),
}


LIST_HTML = """
<html>
<head><title>Fixtures</title></head>
<body>
  <ul id="menu">
    <li class="item"><a href="/a">Alpha</a></li>
    <li class="item"><a href="/b">Beta</a></li>
    <li class="item" hidden><a href="/c">Gamma</a></li>
  </ul>
  <section class="card"><h2>First card</h2><button class="buy">Buy</button></section>
  <section class="card"><h2>Second card</h2><button class="buy">Buy</button></section>
  <p class="note" style="visibility: hidden">Hidden note</p>
  <p class="spaced">  Hello
       world  </p>
  <button id="reveal" data-reveal="#later">Show</button>
  <div id="later" style="display: none">Shown later</div>
  <input id="name" placeholder="Your name">
  <input id="token" type="hidden" value="secret">
</body>
</html>
"""

SLOW_TITLE_HTML = "<html><head><title>Loading</title></head><body><h1>Slow</h1></body></html>"

EXAMPLE = {
    "https://example.test/": SitePage(LIST_HTML),
    "https://example.test/a": SitePage("<html><head><title>A</title></head><body>a</body></html>"),
    "https://example.test/b": SitePage("<html><head><title>B</title></head><body>b</body></html>"),
    "https://example.test/slow": SitePage(
        "<html><head><title>Slow</title></head><body>slow</body></html>", delay=1.0
    ),
    "https://example.test/hang": SitePage(
        "<html><head><title>Hang</title></head><body>hang</body></html>", delay=30.0
    ),
    "https://example.test/title": SitePage(SLOW_TITLE_HTML, mutations=[(0.5, set_title("Foo"))]),
}
