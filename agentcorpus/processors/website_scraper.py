"""
Website extractor: bounded crawl of a site rendered in a headless browser.

Pages are rendered with Playwright (JavaScript executed), the rendered
body is stripped to plain text with BeautifulSoup, and links sharing the
seed's scheme, host and path prefix feed a LIFO frontier. A hard page
cap bounds the crawl.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Set
from urllib.parse import urldefrag, urlparse

from bs4 import BeautifulSoup

from .base import SourceExtractor, ContentExtractionError, NoContentScrapedError
from ..config import CrawlerConfig, MAX_CRAWL_PAGES
from ..models import SourceKind


logger = logging.getLogger(__name__)


NON_CONTENT_TAGS = ["script", "style", "noscript", "template"]

LINKS_SCRIPT = """() => Array.from(document.querySelectorAll('a'))
    .map((anchor) => anchor.href)
    .filter((href) => href && href.startsWith('http'))"""

BODY_SCRIPT = "() => document.body ? document.body.innerHTML : ''"


@dataclass
class RenderedPage:
    """Rendered body markup of a page and the absolute links it contains."""
    url: str
    html: str
    links: List[str] = field(default_factory=list)


@dataclass
class CrawlResult:
    """Page texts in visit order plus the set of URLs fetched."""
    texts: List[str] = field(default_factory=list)
    visited: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)

    @property
    def content(self) -> str:
        return "\n\n".join(self.texts).strip()


class PageRenderer(ABC):
    """Renders a URL with full script execution."""

    async def __aenter__(self) -> "PageRenderer":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        await self.close()
        return False

    async def start(self) -> None:
        pass

    @abstractmethod
    async def render(self, url: str) -> RenderedPage:
        pass

    async def close(self) -> None:
        pass


class PlaywrightRenderer(PageRenderer):
    """PageRenderer backed by a headless Chromium instance."""

    def __init__(self, config: CrawlerConfig):
        self.config = config
        self._playwright = None
        self._browser = None

    async def start(self) -> None:
        from playwright.async_api import async_playwright

        self._playwright = await async_playwright().start()
        try:
            self._browser = await self._playwright.chromium.launch(headless=self.config.headless)
        except Exception:
            await self.close()
            raise

    async def render(self, url: str) -> RenderedPage:
        if self._browser is None:
            raise ContentExtractionError("Browser not started")

        page = await self._browser.new_page()
        try:
            await page.goto(url, wait_until=self.config.wait_until, timeout=self.config.navigation_timeout_ms)
            html = await page.evaluate(BODY_SCRIPT)
            try:
                links = await page.evaluate(LINKS_SCRIPT)
            except Exception as e:
                logger.warning(f"Error getting links from {url}: {e}")
                links = []
            return RenderedPage(url=url, html=html or "", links=list(links or []))
        finally:
            await page.close()

    async def close(self) -> None:
        try:
            if self._browser is not None:
                await self._browser.close()
        except Exception as e:
            logger.warning(f"Error closing browser: {e}")
        finally:
            self._browser = None
            if self._playwright is not None:
                await self._playwright.stop()
                self._playwright = None


def html_to_text(html: str) -> str:
    """Strip every tag from an HTML fragment, keeping readable text lines."""
    soup = BeautifulSoup(html or "", "html.parser")
    for tag in soup(NON_CONTENT_TAGS):
        tag.decompose()
    lines = (line.strip() for line in soup.get_text(separator="\n").splitlines())
    return "\n".join(line for line in lines if line)


def within_site(link: str, base_url: str) -> bool:
    """True if ``link`` has the origin of ``base_url`` and lies under its path."""
    link_parts, base_parts = urlparse(link), urlparse(base_url)
    if link_parts.scheme.lower() != base_parts.scheme.lower():
        return False
    if link_parts.netloc.lower() != base_parts.netloc.lower():
        return False
    return link_parts.path.startswith(base_parts.path)


def validate_url(url: Optional[str]) -> str:
    if not url or not isinstance(url, str) or not url.strip():
        raise ContentExtractionError("baseUrl must be a non-empty string")
    url = url.strip()
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ContentExtractionError("Invalid URL format")
    return url


class WebsiteCrawler:
    """Bounded depth-first crawl over the pages below a seed URL."""

    def __init__(self, renderer: PageRenderer, max_pages: int = MAX_CRAWL_PAGES):
        self.renderer = renderer
        self.max_pages = max(1, min(max_pages, MAX_CRAWL_PAGES))

    async def crawl(self, base_url: str) -> CrawlResult:
        result = CrawlResult()
        visited: Set[str] = set()
        frontier: List[str] = [base_url]

        while frontier and len(visited) < self.max_pages:
            current = frontier.pop()
            if current in visited:
                continue
            visited.add(current)
            result.visited.append(current)

            try:
                page = await self.renderer.render(current)
            except Exception as e:
                logger.warning(f"Error scraping {current}: {e}")
                result.failed.append(current)
                continue

            text = html_to_text(page.html)
            if text:
                result.texts.append(text)
                logger.debug(f"Successfully scraped content from {current}")

            for link in page.links:
                link, _ = urldefrag(link)
                if within_site(link, base_url) and link not in visited:
                    frontier.append(link)

        logger.info(f"Scraped {len(result.visited)} pages from {base_url} ({len(result.failed)} failed)")
        return result


class WebsiteExtractor(SourceExtractor):
    """Crawls a website and returns the concatenated text of its pages."""

    source_kind = SourceKind.WEBSITE

    def __init__(self, config: CrawlerConfig,
                 renderer_factory: Optional[Callable[[], PageRenderer]] = None):
        self.config = config
        self.renderer_factory = renderer_factory or (lambda: PlaywrightRenderer(config))

    async def _extract(self, base_url: str) -> str:
        base_url = validate_url(base_url)

        async with self.renderer_factory() as renderer:
            result = await WebsiteCrawler(renderer, self.config.max_pages).crawl(base_url)

        content = result.content
        if not content:
            raise NoContentScrapedError("No content scraped from website")
        return content
