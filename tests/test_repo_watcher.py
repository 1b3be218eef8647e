import os
import shutil
import sys
import tempfile
import unittest

from PyQt6.QtCore import QCoreApplication
from watchdog.events import DirModifiedEvent, FileCreatedEvent, FileModifiedEvent, FileMovedEvent

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))
from repo_watcher import RepoChangeHandler, RepoWatcher


class TestRepoChangeHandler(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.app = QCoreApplication.instance() or QCoreApplication([])

    def setUp(self):
        self.handler = RepoChangeHandler()
        self.events = []
        self.handler.repo_changed.connect(lambda event_type, path: self.events.append((event_type, path)))

    def test_working_tree_change(self):
        self.handler.dispatch(FileModifiedEvent(os.path.join("repo", "src", "a.py")))
        self.assertEqual(self.events, [("modified", os.path.join("repo", "src", "a.py"))])

    def test_ref_change(self):
        path = os.path.join("repo", ".git", "refs", "heads", "main")
        self.handler.dispatch(FileCreatedEvent(path))
        self.assertEqual(self.events, [("created", path)])

    def test_git_internals_ignored(self):
        self.handler.dispatch(FileModifiedEvent(os.path.join("repo", ".git", "objects", "ab", "cdef")))
        self.handler.dispatch(DirModifiedEvent(os.path.join("repo", ".git", "logs", "refs")))
        self.assertEqual(self.events, [])

    def test_lock_files_ignored(self):
        self.handler.dispatch(FileModifiedEvent(os.path.join("repo", ".git", "index.lock")))
        self.handler.dispatch(FileCreatedEvent(os.path.join("repo", ".git", "refs", "heads", "main.lock")))
        self.assertEqual(self.events, [])

    def test_lock_renamed_into_place(self):
        index = os.path.join("repo", ".git", "index")
        self.handler.dispatch(FileMovedEvent(index + ".lock", index))
        self.assertEqual(self.events, [("moved", index)])

    def test_is_change_of_interest(self):
        self.assertFalse(RepoChangeHandler.is_change_of_interest("/repo/.git/index.lock"))
        self.assertFalse(RepoChangeHandler.is_change_of_interest("/repo/.git/HEAD.lock"))
        self.assertTrue(RepoChangeHandler.is_change_of_interest("/repo/.git/refs/tags/v1.0"))
        self.assertTrue(RepoChangeHandler.is_change_of_interest("/repo/.git/HEAD"))
        self.assertTrue(RepoChangeHandler.is_change_of_interest("/repo/.git/index"))
        self.assertTrue(RepoChangeHandler.is_change_of_interest("/repo/.github/workflows/ci.yml"))
        self.assertFalse(RepoChangeHandler.is_change_of_interest("/repo/.git/COMMIT_EDITMSG"))


class TestRepoWatcher(unittest.TestCase):
    def test_start_and_stop(self):
        folder = tempfile.mkdtemp()
        watcher = RepoWatcher()
        try:
            handler = watcher.start(folder, lambda event_type, path: None)
            self.assertIsInstance(handler, RepoChangeHandler)
            self.assertTrue(watcher.is_watching())
        finally:
            watcher.stop()
            shutil.rmtree(folder)
        self.assertFalse(watcher.is_watching())
        self.assertIsNone(watcher.handler)


if __name__ == "__main__":
    unittest.main()
