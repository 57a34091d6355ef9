"""
Static site generator.

Writes published pages into ``pages/`` and rebuilds the homepage index
from whatever pages exist. All writes go to a temporary file first and are
moved into place atomically, so a request never reads a half-written page.
"""

import html
import logging
import re
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import List

import aiofiles
import aiofiles.os

from sopen.core.publish_mode import PublishRequest

logger = logging.getLogger(__name__)

_TITLE_RE = re.compile(r"<title>(.*?)</title>", re.IGNORECASE | re.DOTALL)

# Pages served by name, never listed on the homepage
_RESERVED_PAGES = {"index.html", "dashboard.html"}

_PAGE_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>{title}</title>
<link rel="stylesheet" href="/assets/style.css">
</head>
<body>
<article>
<h1>{title}</h1>
{byline}
<div class="content">{body}</div>
</article>
<p><a href="/">Back to Sopen</a></p>
</body>
</html>
"""

_INDEX_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>{site_title}</title>
<link rel="stylesheet" href="/assets/style.css">
</head>
<body>
<h1>{site_title}</h1>
<ul class="pages">
{items}
</ul>
<footer>Generated {generated_at}</footer>
</body>
</html>
"""


@dataclass(frozen=True)
class PageEntry:
    slug: str
    title: str
    url: str
    modified: float


class HomepageGenerator:
    def __init__(self, pages_dir: Path, site_title: str = "Sopen"):
        self.pages_dir = Path(pages_dir)
        self.site_title = site_title

    @property
    def homepage_path(self) -> Path:
        return self.pages_dir / "index.html"

    async def list_pages(self) -> List[PageEntry]:
        if not await aiofiles.os.path.isdir(self.pages_dir):
            return []
        entries = []
        for name in await aiofiles.os.listdir(self.pages_dir):
            if not name.endswith(".html") or name in _RESERVED_PAGES or name.startswith("."):
                continue
            path = self.pages_dir / name
            stat = await aiofiles.os.stat(path)
            async with aiofiles.open(path, "r", encoding="utf-8") as f:
                head = await f.read(4096)
            match = _TITLE_RE.search(head)
            title = html.unescape(match.group(1).strip()) if match else path.stem
            entries.append(PageEntry(slug=path.stem, title=title, url=f"/pages/{name}", modified=stat.st_mtime))
        entries.sort(key=lambda e: e.modified, reverse=True)
        return entries

    async def generate(self, target_path: Path) -> None:
        """Build the homepage index at ``target_path``."""
        pages = await self.list_pages()
        items = "\n".join(
            f'<li><a href="{html.escape(p.url)}">{html.escape(p.title)}</a></li>' for p in pages
        )
        content = _INDEX_TEMPLATE.format(
            site_title=html.escape(self.site_title),
            items=items or "<li>Nothing published yet.</li>",
            generated_at=datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC"),
        )
        await self._write_atomic(Path(target_path), content)
        logger.info(f"🏠 Homepage generated with {len(pages)} page(s)")

    async def render_page(self, request: PublishRequest) -> Path:
        target = self.pages_dir / f"{request.slug}.html"
        byline = f'<p class="byline">By {html.escape(request.author)}</p>' if request.author else ""
        paragraphs = "".join(
            f"<p>{html.escape(block.strip())}</p>" for block in request.body.split("\n\n") if block.strip()
        )
        content = _PAGE_TEMPLATE.format(title=html.escape(request.title), byline=byline, body=paragraphs)
        await self._write_atomic(target, content)
        return target

    async def publish(self, request: PublishRequest) -> Path:
        """Publish pipeline: render the page, then refresh the homepage."""
        target = await self.render_page(request)
        await self.generate(self.homepage_path)
        return target

    async def _write_atomic(self, target: Path, content: str) -> None:
        await aiofiles.os.makedirs(target.parent, exist_ok=True)
        tmp = target.with_name(f".{target.name}.{uuid.uuid4().hex[:8]}.tmp")
        async with aiofiles.open(tmp, "w", encoding="utf-8") as f:
            await f.write(content)
        await aiofiles.os.replace(tmp, target)
