"""
Background processes started once the routes are mounted:
- PublishScheduler: periodic jobs (homepage refresh)
- PagesWatcher: polls the pages directory and rebuilds the homepage
"""

from sopen.background.file_watcher import PagesWatcher
from sopen.background.scheduler import PublishScheduler

__all__ = ["PagesWatcher", "PublishScheduler"]
