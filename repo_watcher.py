import logging
import os
from typing import Optional

from PyQt6.QtCore import QObject, pyqtSignal
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

logger = logging.getLogger(__name__)

# .git 下会改变提交历史或状态的文件（相对 .git 目录）
GIT_PATHS_OF_INTEREST = (
    "logs/HEAD",
    "HEAD",
    "FETCH_HEAD",
    "ORIG_HEAD",
    "packed-refs",
    "index",
)
GIT_REFS_PREFIX = "refs/"


class RepoChangeHandler(FileSystemEventHandler, QObject):
    """Handles file system events from watchdog and signals the owner."""

    repo_changed = pyqtSignal(str, str)  # (event_type, path)

    def on_any_event(self, event):
        if event.event_type in ("opened", "closed", "closed_no_write"):
            return
        # git 先写 xxx.lock 再改名，改名事件按目标路径判断
        paths = [os.fsdecode(event.src_path)]
        dest_path = getattr(event, "dest_path", "")
        if dest_path:
            paths.insert(0, os.fsdecode(dest_path))
        for path in paths:
            if self.is_change_of_interest(path):
                logger.debug("Repository change: %s on %s", event.event_type, path)
                self.repo_changed.emit(event.event_type, path)
                return

    @staticmethod
    def is_change_of_interest(path: str) -> bool:
        """工作区文件的变化都关心；.git 内只关心引用、HEAD 和索引，锁文件除外"""
        parts = path.replace(os.sep, "/").split("/")
        if ".git" not in parts:
            return True
        git_index = len(parts) - 1 - parts[::-1].index(".git")
        git_path = "/".join(parts[git_index + 1 :])
        if git_path.endswith(".lock"):
            return False
        return git_path in GIT_PATHS_OF_INTEREST or git_path.startswith(GIT_REFS_PREFIX)


class RepoWatcher:
    """Watches a repository folder with a watchdog observer."""

    def __init__(self):
        self.observer: Optional[Observer] = None
        self.handler: Optional[RepoChangeHandler] = None

    def start(self, repo_path: str, callback) -> RepoChangeHandler:
        """开始监听，callback(event_type, path) 在仓库变化时调用"""
        self.stop()  # Stop any previous observer

        self.handler = RepoChangeHandler()
        self.handler.repo_changed.connect(callback)

        self.observer = Observer()
        self.observer.schedule(self.handler, repo_path, recursive=True)
        self.observer.start()
        logger.info("Started watching repository for changes: %s", repo_path)
        return self.handler

    def stop(self):
        """Stops the watchdog observer if it's running."""
        if self.observer and self.observer.is_alive():
            self.observer.stop()
            self.observer.join()  # Wait for the thread to finish
            logger.info("Stopped watching repository.")
        self.observer = None
        self.handler = None

    def is_watching(self) -> bool:
        return self.observer is not None and self.observer.is_alive()
