# git_graph_data.py

from dataclasses import dataclass
from typing import Optional


@dataclass
class GraphLine:
    """One connector piece of a commit row.

    upper=True connects the previous row to this commit's row, upper=False
    connects this row onward to the next one (toward the parents).
    """

    upper: bool
    from_lane: int
    to_lane: int
    color: int

    def to_dict(self) -> dict:
        return {"upper": self.upper, "from": self.from_lane, "to": self.to_lane, "color": self.color}


@dataclass
class LaneSlot:
    sha: Optional[str]  # commit this lane draws next; None until the first parent is linked
    color: int


class CommitNode:
    def __init__(
        self,
        sha: str,
        message: str,
        author_name: str,
        author_email: str,
        timestamp: str,
        parents: Optional[list[str]] = None,
    ):
        self.sha: str = sha
        self.parents: list[str] = list(parents) if parents else []
        self.message: str = message
        self.author_name: str = author_name
        self.author_email: str = author_email
        self.timestamp: str = timestamp  # seconds since epoch
        self.branches: list[str] = []  # e.g. ['main', 'origin/main']
        self.tags: list[str] = []  # e.g. ['v1.0']

        # Layout results, filled by git_graph_layout.calculate_commit_lanes
        self.lane: int = 0
        self.lines: list[GraphLine] = []

    def to_dict(self) -> dict:
        return {
            "id": self.sha,
            "message": self.message,
            "author": self.author_name,
            "email": self.author_email,
            "timestamp": self.timestamp,
            "parents": list(self.parents),
            "branches": list(self.branches) or None,
            "tags": list(self.tags) or None,
            "lane": self.lane,
            "lines": [line.to_dict() for line in self.lines],
        }

    def __repr__(self) -> str:
        return (
            f"CommitNode(sha='{self.sha[:7]}', "
            f"parents={[p[:7] for p in self.parents]}, "
            f"branches={self.branches}, "
            f"tags={self.tags}, "
            f"message='{self.message[:20]}...', "
            f"lane={self.lane}, "
            f"lines={len(self.lines)})"
        )
