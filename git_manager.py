import logging
import os
import re
import tempfile
from typing import List, Optional

import git
import git.exc
import pathspec
from git import GitCommandError

from git_graph_data import CommitNode
from git_graph_layout import calculate_commit_lanes

logger = logging.getLogger(__name__)

HUNK_HEADER_RE = re.compile(r"^(@@ -(\d+)(?:,\d+)? \+(\d+)(?:,\d+)? @@)")
EMPTY_TREE_SHA = "4b825dc642cb6eb9a060e54bf8d69288fbee4904"

# git status --porcelain 状态字符，按优先级排列
_STATUS_PRIORITY = (("A?", "added"), ("M", "modified"), ("D", "deleted"), ("R", "renamed"))


class GitOperationError(Exception):
    """Git 操作失败，message 中包含 git 的 stderr（如果有）"""


def _error_message(action: str, e: Exception) -> str:
    error_message = f"{action} failed: {e!s}"
    if isinstance(e, GitCommandError) and e.stderr:
        error_message += f"\nDetails: {e.stderr.strip()}"
    return error_message


def _format_status(index_status: str, worktree_status: str) -> str:
    codes = index_status + worktree_status
    for chars, name in _STATUS_PRIORITY:
        if any(c in codes for c in chars):
            return name
    return "unknown"


class GitManager:
    def __init__(self, repo_path: str):
        self.repo_path = repo_path
        self.repo: Optional[git.Repo] = None
        self.ignore_spec: Optional[pathspec.PathSpec] = None

    @staticmethod
    def is_git_repository(path: str) -> bool:
        return os.path.exists(os.path.join(path, ".git"))

    @classmethod
    def clone_repository(cls, url: str, path: str) -> "GitManager":
        """克隆仓库并返回已初始化的 GitManager"""
        try:
            git.Repo.clone_from(url, path)
        except GitCommandError as e:
            raise GitOperationError(_error_message("Clone", e)) from e
        logger.info("Cloned %s into %s", url, path)
        manager = cls(path)
        manager.initialize()
        return manager

    def initialize(self) -> bool:
        """初始化 Git 仓库"""
        try:
            self.repo = git.Repo(self.repo_path)
            self._load_gitignore_patterns()
            return True
        except (git.InvalidGitRepositoryError, git.NoSuchPathError):
            logger.warning("Not a git repository: %s", self.repo_path)
            return False

    def _require_repo(self) -> git.Repo:
        if not self.repo:
            raise GitOperationError("Repository not initialized.")
        return self.repo

    def _run(self, action: str, *args, **kwargs) -> str:
        """执行 git 命令，失败时抛出 GitOperationError"""
        repo = self._require_repo()
        try:
            return repo.git.execute(["git", *args], **kwargs)
        except GitCommandError as e:
            logger.error("git %s failed: %s", " ".join(args), e)
            raise GitOperationError(_error_message(action, e)) from e

    # --- 分支 / 远程 / 标签 ---

    def get_branches(self) -> List[dict]:
        """获取所有本地分支，游离 HEAD 作为第一项"""
        repo = self._require_repo()
        branches = []
        is_detached = repo.head.is_detached
        head_name = None if is_detached else repo.active_branch.name

        if is_detached:
            branches.append({"name": "HEAD (detached)", "is_head": True})

        for head in repo.heads:
            branches.append({"name": head.name, "is_head": head.name == head_name})
        return branches

    def _remote_refs(self) -> dict:
        repo = self._require_repo()
        refs = {}
        for remote in repo.remotes:
            for ref in remote.refs:
                if ref.remote_head != "HEAD":
                    refs[ref.name] = ref  # e.g. 'origin/main'
        return refs

    def get_branch_head(self, branch_name: str) -> str:
        """获取分支指向的提交，依次查找本地分支和远程分支"""
        repo = self._require_repo()
        for head in repo.heads:
            if head.name == branch_name:
                return head.commit.hexsha

        remote_ref = self._remote_refs().get(branch_name)
        if remote_ref is not None:
            return remote_ref.commit.hexsha

        raise GitOperationError(f"Branch '{branch_name}' not found")

    def get_remotes(self) -> List[dict]:
        """获取所有远程仓库"""
        repo = self._require_repo()
        remotes = []
        for remote in repo.remotes:
            try:
                url = next(iter(remote.urls), None)
            except GitCommandError:
                url = None
            if url:
                remotes.append({"name": remote.name, "url": url})
        return remotes

    def get_remote_branches(self, remote_name: str) -> List[str]:
        """获取指定远程的分支名（不含远程前缀）"""
        prefix = f"{remote_name}/"
        return [name[len(prefix) :] for name in self._remote_refs() if name.startswith(prefix)]

    def get_tags(self) -> List[str]:
        repo = self._require_repo()
        return sorted(tag.name for tag in repo.tags)

    def get_tag_commit(self, tag_name: str) -> str:
        repo = self._require_repo()
        for tag in repo.tags:
            if tag.name == tag_name:
                try:
                    return tag.commit.hexsha
                except ValueError as e:
                    raise GitOperationError(f"Tag '{tag_name}' does not point to a commit") from e
        raise GitOperationError(f"Tag '{tag_name}' not found")

    def get_submodules(self) -> List[dict]:
        repo = self._require_repo()
        return [{"name": sm.name, "path": sm.path, "url": sm.url} for sm in repo.submodules if sm.url]

    # --- 工作区状态 / 暂存 ---

    def get_status(self) -> List[dict]:
        """获取所有文件状态，已暂存和未暂存的变更各占一项"""
        output = self._run("Status", "status", "--porcelain=v1", "-z", "--untracked-files=all")
        files = []
        entries = output.split("\0")
        i = 0
        while i < len(entries):
            entry = entries[i]
            i += 1
            if len(entry) < 4:
                continue
            index_status, worktree_status, path = entry[0], entry[1], entry[3:]
            if index_status in "RC":
                i += 1  # 跳过重命名前的路径

            if index_status == "?":
                files.append({"path": path, "status": "added", "staged": False})
                continue

            status = _format_status(index_status, worktree_status)
            if index_status in "AMDR":
                files.append({"path": path, "status": status, "staged": True})
            if worktree_status in "AMDR":
                files.append({"path": path, "status": status, "staged": False})
        return files

    def get_diff(self, file_path: str, staged: bool) -> str:
        """获取单个文件的 diff；未跟踪文件生成全部新增的 hunk"""
        repo = self._require_repo()
        if not staged and file_path in repo.untracked_files:
            full_path = os.path.join(repo.working_tree_dir, file_path)
            try:
                with open(full_path, "r", encoding="utf-8") as f:
                    lines = f.read().splitlines()
            except (OSError, UnicodeDecodeError):
                logger.warning("Cannot read untracked file for diff: %s", full_path)
            else:
                diff_text = f"@@ -0,0 +1,{len(lines)} @@\n"
                return diff_text + "".join(f"+{line}\n" for line in lines)

        args = ["diff", "--cached", "--", file_path] if staged else ["diff", "--", file_path]
        output = self._run("Diff", *args)
        return output + "\n" if output else ""

    def stage_file(self, file_path: str):
        self._run("Stage", "add", "--", file_path)

    def unstage_file(self, file_path: str):
        self._run("Unstage", "reset", "HEAD", "--", file_path)

    def discard_file(self, file_path: str):
        self._run("Discard", "checkout", "--", file_path)

    def _apply_hunk(self, action: str, full_diff: str, hunk_header: str, hunk_lines: str, *flags: str):
        """用 diff 头（前四行）+ hunk 拼出补丁并 git apply"""
        diff_header = "\n".join(full_diff.splitlines()[:4])
        body = hunk_lines.rstrip("\n")
        patch = f"{diff_header}\n{hunk_header}\n{body}\n"
        logger.debug("%s patch:\n%s", action, patch)

        fd, patch_path = tempfile.mkstemp(suffix=".patch")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(patch)
            self._run(action, "apply", "--unidiff-zero", *flags, "--ignore-whitespace", patch_path)
        finally:
            os.remove(patch_path)

    def stage_hunk(self, file_path: str, full_diff: str, hunk_header: str, hunk_lines: str):
        self._apply_hunk("Stage hunk", full_diff, hunk_header, hunk_lines, "--cached")

    def unstage_hunk(self, file_path: str, full_diff: str, hunk_header: str, hunk_lines: str):
        self._apply_hunk("Unstage hunk", full_diff, hunk_header, hunk_lines, "--cached", "--reverse")

    def discard_hunk(self, file_path: str, full_diff: str, hunk_header: str, hunk_lines: str):
        self._apply_hunk("Discard hunk", full_diff, hunk_header, hunk_lines, "--reverse")

    # --- .gitignore ---

    def _load_gitignore_patterns(self):
        """加载.gitignore 文件中的忽略规则"""
        if not self.repo:
            return

        gitignore_path = os.path.join(self.repo_path, ".gitignore")
        if not os.path.exists(gitignore_path):
            self.ignore_spec = None
            return

        with open(gitignore_path, "r", encoding="utf-8") as f:
            patterns = f.readlines()

        self.ignore_spec = pathspec.PathSpec.from_lines("gitwildmatch", patterns)

    def is_ignored(self, path: str) -> bool:
        """检查路径是否被.gitignore 忽略（绝对路径或相对仓库根目录的路径）"""
        if not self.ignore_spec:
            return False

        if not os.path.isabs(path):
            path = os.path.join(self.repo_path, path)
        try:
            rel_path = os.path.relpath(path, self.repo_path)
            # 统一使用正斜杠
            rel_path = rel_path.replace(os.sep, "/")
            return self.ignore_spec.match_file(rel_path)
        except ValueError:
            return False

    def ignore_file(self, file_path: str):
        """把文件加入.gitignore，已被忽略时不重复添加"""
        self._require_repo()
        if self.is_ignored(file_path):
            logger.info("%s is already ignored", file_path)
            return

        gitignore_path = os.path.join(self.repo_path, ".gitignore")
        try:
            content = ""
            if os.path.exists(gitignore_path):
                with open(gitignore_path, "r", encoding="utf-8") as f:
                    content = f.read()
            if content and not content.endswith("\n"):
                content += "\n"
            content += file_path + "\n"
            with open(gitignore_path, "w", encoding="utf-8") as f:
                f.write(content)
        except OSError as e:
            raise GitOperationError(f"Failed to update .gitignore: {e!s}") from e

        self._load_gitignore_patterns()

    # --- 分支切换 / 远程同步 ---

    def checkout_branch(self, branch_name: str):
        self._run("Checkout", "checkout", branch_name)
        logger.info("Checked out %s", branch_name)

    def _remote(self, remote_name: str):
        repo = self._require_repo()
        try:
            return repo.remote(remote_name)
        except ValueError as e:
            raise GitOperationError(f"Remote '{remote_name}' not found") from e

    def fetch(self, remote_name: str = "origin"):
        """获取远程仓库"""
        remote = self._remote(remote_name)
        try:
            remote.fetch()
        except GitCommandError as e:
            raise GitOperationError(_error_message("Fetch", e)) from e

    def pull(self, remote_name: str = "origin"):
        """拉取远程仓库"""
        remote = self._remote(remote_name)
        try:
            remote.pull()
        except GitCommandError as e:
            raise GitOperationError(_error_message("Pull", e)) from e

    # --- 提交历史 ---

    def _resolve_start_points(self, local_only: bool, branch_name: Optional[str]) -> List[str]:
        repo = self._require_repo()
        if branch_name:
            try:
                return [self.get_branch_head(branch_name)]
            except GitOperationError:
                logger.warning("Branch %s not found, no commits to show", branch_name)
                return []

        start_points = [head.commit.hexsha for head in repo.heads]
        if not local_only:
            start_points.extend(ref.commit.hexsha for ref in self._remote_refs().values())
        # 去重并保持顺序
        return list(dict.fromkeys(start_points))

    def _decorations(self) -> tuple[dict, dict]:
        repo = self._require_repo()
        branch_map: dict[str, list[str]] = {}
        tag_map: dict[str, list[str]] = {}

        for head in repo.heads:
            branch_map.setdefault(head.commit.hexsha, []).append(head.name)
        for name, ref in self._remote_refs().items():
            branch_map.setdefault(ref.commit.hexsha, []).append(name)
        for tag in repo.tags:
            try:
                tag_map.setdefault(tag.commit.hexsha, []).append(tag.name)
            except ValueError:
                # 指向非提交对象的标签
                logger.debug("Skipping tag %s that does not point to a commit", tag.name)
        return branch_map, tag_map

    def get_commits(self, limit: int, local_only: bool = False, branch_name: Optional[str] = None) -> List[CommitNode]:
        """获取提交历史（按提交时间从新到旧）并计算泳道布局

        参数：
            limit: 返回的最大提交数量
            local_only: 只遍历本地分支
            branch_name: 只遍历该分支（本地或远程）
        """
        repo = self._require_repo()
        start_points = self._resolve_start_points(local_only, branch_name)
        if not start_points or limit <= 0:
            return []

        branch_map, tag_map = self._decorations()
        commits = []
        try:
            for commit in repo.iter_commits(start_points, max_count=limit, date_order=True):
                node = CommitNode(
                    sha=commit.hexsha,
                    message=commit.message,
                    author_name=commit.author.name or "",
                    author_email=commit.author.email or "",
                    timestamp=str(commit.committed_date),
                    parents=[parent.hexsha for parent in commit.parents],
                )
                node.branches = branch_map.get(commit.hexsha, [])
                node.tags = tag_map.get(commit.hexsha, [])
                commits.append(node)
        except GitCommandError as e:
            raise GitOperationError(_error_message("Log", e)) from e

        logger.info("Loaded %d commits from %s", len(commits), self.repo_path)
        return calculate_commit_lanes(commits)

    def get_commit_diff(self, commit_id: str) -> List[dict]:
        """获取提交相对于第一个父提交的变更文件及 diff 行"""
        repo = self._require_repo()
        try:
            commit = repo.commit(commit_id)
            if commit.parents:
                diffs = commit.parents[0].diff(commit, create_patch=True)
            else:
                empty_tree = git.Tree(repo, bytes.fromhex(EMPTY_TREE_SHA))
                diffs = empty_tree.diff(commit, create_patch=True)
        except (GitCommandError, ValueError, git.exc.BadName, git.exc.BadObject) as e:
            raise GitOperationError(f"Invalid commit ID: {commit_id}") from e

        files = []
        for diff in diffs:
            if diff.new_file:
                status = "added"
            elif diff.deleted_file:
                status = "deleted"
            elif diff.renamed_file:
                status = "renamed"
            elif diff.copied_file:
                status = "copied"
            else:
                status = "modified"

            old_path = diff.a_path if diff.a_path and diff.b_path and diff.a_path != diff.b_path else None
            patch = diff.diff.decode("utf-8", errors="replace") if isinstance(diff.diff, bytes) else diff.diff or ""
            lines, additions, deletions = _parse_patch_lines(patch)
            files.append(
                {
                    "path": diff.b_path or diff.a_path,
                    "old_path": old_path,
                    "status": status,
                    "additions": additions,
                    "deletions": deletions,
                    "lines": lines,
                }
            )
        return files


def _parse_patch_lines(patch: str) -> tuple[list[dict], int, int]:
    """把 hunk 文本解析为带行号的行列表"""
    lines = []
    additions = deletions = 0
    old_lineno = new_lineno = 0
    in_hunk = False

    for raw_line in patch.splitlines():
        match = HUNK_HEADER_RE.match(raw_line)
        if match:
            in_hunk = True
            old_lineno, new_lineno = int(match.group(2)), int(match.group(3))
            lines.append({"old_lineno": None, "new_lineno": None, "origin": "@", "content": match.group(1)})
            continue
        if not in_hunk or not raw_line or raw_line.startswith("\\"):
            continue

        origin, content = raw_line[0], raw_line[1:]
        if origin == "+":
            additions += 1
            lines.append({"old_lineno": None, "new_lineno": new_lineno, "origin": origin, "content": content})
            new_lineno += 1
        elif origin == "-":
            deletions += 1
            lines.append({"old_lineno": old_lineno, "new_lineno": None, "origin": origin, "content": content})
            old_lineno += 1
        elif origin == " ":
            lines.append({"old_lineno": old_lineno, "new_lineno": new_lineno, "origin": origin, "content": content})
            old_lineno += 1
            new_lineno += 1
    return lines, additions, deletions
