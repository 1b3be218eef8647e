import copy
import json
import logging
import os
from pathlib import Path
from typing import Optional

from PyQt6.QtGui import QColor

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS = {
    "recent_repos": [],  # 最近打开的仓库列表
    "last_repo": None,  # 上次打开的仓库
    "max_recent": 10,  # 最大记录数
    "commit_limit": 500,  # 提交历史最多加载的数量
    "local_only": False,  # 只显示本地分支的提交
    "lane_saturation": 70,  # 泳道颜色饱和度 (0-100)
    "lane_lightness": 60,  # 泳道颜色亮度 (0-100)
}


class Settings:
    def __init__(self, config_dir: Optional[str] = None):
        # 配置目录，可通过环境变量覆盖
        if config_dir is None:
            config_dir = os.getenv("GITLANES_CONFIG_DIR") or os.path.join(str(Path.home()), ".gitlanes")
        self.config_dir = config_dir
        if not os.path.exists(self.config_dir):
            os.makedirs(self.config_dir)

        # 配置文件路径
        self.config_file = os.path.join(self.config_dir, "settings.json")

        self.settings = copy.deepcopy(DEFAULT_SETTINGS)

        # 加载已有设置
        self.load_settings()

    def load_settings(self):
        """加载设置"""
        if not os.path.exists(self.config_file):
            return
        try:
            with open(self.config_file, "r", encoding="utf-8") as f:
                saved_settings = json.load(f)
        except (OSError, json.JSONDecodeError):
            logger.exception("加载设置失败：%s", self.config_file)
            return
        if isinstance(saved_settings, dict):
            self.settings.update(saved_settings)
        else:
            logger.warning("设置文件格式无效，使用默认设置：%s", self.config_file)

    def save_settings(self):
        """保存设置"""
        try:
            with open(self.config_file, "w", encoding="utf-8") as f:
                json.dump(self.settings, f, ensure_ascii=False, indent=2)
        except OSError:
            logger.exception("保存设置失败：%s", self.config_file)

    def add_recent_repo(self, repo_path):
        """添加最近打开的仓库"""
        self.settings["last_repo"] = repo_path

        recent = self.settings["recent_repos"]

        # 如果已经在列表中，先移除
        if repo_path in recent:
            recent.remove(repo_path)

        # 添加到列表开头
        recent.insert(0, repo_path)

        # 保持列表在最大长度以内
        self.settings["recent_repos"] = recent[: self.settings["max_recent"]]

        self.save_settings()

    def get_recent_repos(self):
        return self.settings["recent_repos"]

    def get_last_repo(self):
        return self.settings["last_repo"]

    def get_commit_limit(self) -> int:
        return int(self.settings.get("commit_limit", DEFAULT_SETTINGS["commit_limit"]))

    def set_commit_limit(self, limit: int):
        if limit <= 0:
            raise ValueError(f"commit_limit must be positive, got {limit}")
        self.settings["commit_limit"] = limit
        self.save_settings()

    def get_local_only(self) -> bool:
        return bool(self.settings.get("local_only", False))

    def set_local_only(self, local_only: bool):
        self.settings["local_only"] = local_only
        self.save_settings()

    def lane_color(self, color: int) -> QColor:
        """泳道颜色，使用当前设置的饱和度和亮度"""
        return lane_color(color, self.settings["lane_saturation"], self.settings["lane_lightness"])


def lane_color(color: int, saturation: int = 70, lightness: int = 60) -> QColor:
    """Maps a lane color index to a hue 60 degrees apart from its neighbours."""
    return QColor.fromHslF(((color * 60) % 360) / 360.0, saturation / 100.0, lightness / 100.0)


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """全局 settings 实例，首次使用时创建"""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
