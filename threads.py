import logging
from typing import TYPE_CHECKING, Optional

from PyQt6.QtCore import QThread, pyqtSignal

if TYPE_CHECKING:
    from git_manager import GitManager

logger = logging.getLogger(__name__)


class CommitLoadThread(QThread):
    """在后台加载提交历史并计算泳道布局"""

    finished = pyqtSignal(list)  # list[CommitNode]，已带 lane / lines
    error = pyqtSignal(str)  # 错误信号

    def __init__(
        self,
        git_manager: "GitManager",
        limit: int,
        local_only: bool = False,
        branch_name: Optional[str] = None,
        parent=None,
    ):
        super().__init__(parent)
        self.git_manager = git_manager
        self.limit = limit
        self.local_only = local_only
        self.branch_name = branch_name

    def run(self):
        try:
            commits = self.git_manager.get_commits(self.limit, local_only=self.local_only, branch_name=self.branch_name)
        except Exception as e:
            logger.exception("加载提交历史失败")
            self.error.emit(str(e))
            return
        self.finished.emit(commits)


class FetchThread(QThread):
    finished = pyqtSignal(bool, str)  # (success, error_message)

    def __init__(self, git_manager: "GitManager", remote_name: str = "origin", parent=None):
        super().__init__(parent)
        self.git_manager = git_manager
        self.remote_name = remote_name

    def run(self):
        try:
            self.git_manager.fetch(self.remote_name)
            self.finished.emit(True, "")
        except Exception as e:
            self.finished.emit(False, str(e))


class PullThread(QThread):
    """用于在后台执行 pull 操作的线程"""

    finished = pyqtSignal(bool, str)  # (success, error_message)

    def __init__(self, git_manager: "GitManager", remote_name: str = "origin", parent=None):
        super().__init__(parent)
        self.git_manager = git_manager
        self.remote_name = remote_name

    def run(self):
        """执行 pull 操作"""
        try:
            self.git_manager.pull(self.remote_name)
            self.finished.emit(True, "")
        except Exception as e:
            self.finished.emit(False, str(e))
