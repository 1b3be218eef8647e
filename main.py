import argparse
import json
import logging
import os
import sys

from git_manager import GitManager, GitOperationError
from settings import get_settings

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(filename)s:%(lineno)d - %(message)s"


def setup_logging():
    # 根据环境变量设置日志级别
    log_level = logging.DEBUG if os.getenv("DEBUG") == "1" else logging.INFO

    # 日志输出到 stderr，stdout 只留给 JSON
    logging.basicConfig(level=log_level, format=LOG_FORMAT, stream=sys.stderr)
    # add file handler
    if os.getenv("LOG_TO_FILE") == "1":
        file_handler = logging.FileHandler("gitlanes.log")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logging.getLogger().addHandler(file_handler)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Print the commit graph lanes of a repository as JSON.")
    parser.add_argument("repo", help="path of the git repository")
    parser.add_argument("--limit", type=int, default=None, help="maximum number of commits (default: from settings)")
    parser.add_argument("--local-only", action="store_true", default=None, help="only walk local branches")
    parser.add_argument("--branch", default=None, help="only walk this branch")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()

    git_manager = GitManager(args.repo)
    if not git_manager.initialize():
        print(f"Not a git repository: {args.repo}", file=sys.stderr)
        return 1

    limit = args.limit if args.limit is not None else settings.get_commit_limit()
    local_only = args.local_only if args.local_only is not None else settings.get_local_only()
    try:
        commits = git_manager.get_commits(limit, local_only=local_only, branch_name=args.branch)
    except GitOperationError as e:
        logging.error("%s", e)
        return 1

    settings.add_recent_repo(os.path.abspath(args.repo))
    json.dump([commit.to_dict() for commit in commits], sys.stdout, ensure_ascii=False, indent=2)
    sys.stdout.write("\n")
    return 0


if __name__ == "__main__":
    setup_logging()
    sys.exit(main())
