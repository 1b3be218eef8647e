# git_graph_layout.py

import heapq
import logging
from typing import Iterator, NamedTuple, Optional

from git_graph_data import CommitNode, GraphLine, LaneSlot

logger = logging.getLogger(__name__)


def default_lane_for_unplaced_commit() -> int:
    """Lane used for a commit with no parents that no lane was waiting for.

    Lane 0 may already be occupied by an unrelated branch, so the node can be
    drawn on top of it. Kept for compatibility with existing history views.
    """
    return 0


class LaneTable:
    """The lane slots of one graph row.

    Slots are addressed by their rendered lane index. Emptied slots stay in
    place as holes and are remembered in a min-heap, so allocate() always hands
    out the lowest free index before the table grows.
    """

    def __init__(self):
        self.slots: list[Optional[LaneSlot]] = []
        self._free: list[int] = []

    def __len__(self) -> int:
        return len(self.slots)

    def __iter__(self) -> Iterator[tuple[int, Optional[LaneSlot]]]:
        return iter(enumerate(self.slots))

    def __getitem__(self, index: int) -> Optional[LaneSlot]:
        return self.slots[index]

    def append(self, slot: Optional[LaneSlot]) -> int:
        """Adds a slot (or a hole) at the end and returns its index."""
        index = len(self.slots)
        self.slots.append(slot)
        if slot is None:
            heapq.heappush(self._free, index)
        return index

    def allocate(self, slot: LaneSlot) -> int:
        """Puts the slot into the lowest hole, or appends it if there is none."""
        if self._free:
            index = heapq.heappop(self._free)
            self.slots[index] = slot
            return index
        return self.append(slot)

    def clear(self, index: int):
        if self.slots[index] is not None:
            self.slots[index] = None
            heapq.heappush(self._free, index)

    def link(self, index: int, sha: str):
        self.slots[index].sha = sha

    def find(self, sha: str) -> Optional[int]:
        """Index of the first lane waiting for sha."""
        for index, slot in enumerate(self.slots):
            if slot is not None and slot.sha == sha:
                return index
        return None

    def occupied(self) -> list[tuple[int, LaneSlot]]:
        return [(index, slot) for index, slot in enumerate(self.slots) if slot is not None]

    def free_lanes(self) -> list[int]:
        return sorted(self._free)


class LineEmitter:
    """Collects the connector segments of a single commit row.

    The color of every segment is decided by the caller at the moment it is
    emitted and never recomputed from lane state afterwards.
    """

    def __init__(self):
        self.lines: list[GraphLine] = []

    def upper(self, from_lane: int, to_lane: int, color: int):
        self.lines.append(GraphLine(True, from_lane, to_lane, color))

    def lower(self, from_lane: int, to_lane: int, color: int):
        self.lines.append(GraphLine(False, from_lane, to_lane, color))


class CommitLayout(NamedTuple):
    lane: int
    lines: list[GraphLine]
    lanes: LaneTable  # table for the next commit
    next_color: int


def process_commit(commit: CommitNode, lanes: LaneTable, next_color: int) -> CommitLayout:
    """
    Places one commit against the lanes of the previous row.

    Returns the commit's lane, its connector segments, the lane table for the
    next row and the updated color counter. `lanes` is left untouched; the next
    table is built from scratch with the same indices.
    """
    next_lanes = LaneTable()
    emitter = LineEmitter()
    has_parents = bool(commit.parents)
    current_lane: Optional[int] = None

    # 1. Walk the previous row: land on the first lane waiting for us,
    #    converge every other waiting lane into it, pass the rest through.
    for index, slot in lanes:
        if slot is None:
            next_lanes.append(None)
        elif slot.sha == commit.sha:
            if current_lane is None:
                current_lane = next_lanes.append(LaneSlot(None, slot.color))
                emitter.upper(index, current_lane, slot.color)
                if has_parents:
                    emitter.lower(current_lane, current_lane, slot.color)
            else:
                # The converging lane keeps its own color and ends here.
                emitter.upper(index, current_lane, slot.color)
                next_lanes.append(None)
        else:
            passed = next_lanes.append(LaneSlot(slot.sha, slot.color))
            emitter.upper(index, passed, slot.color)
            emitter.lower(passed, passed, slot.color)

    # 2. Nobody was waiting: a branch tip. New lanes for tips always go at the end.
    if current_lane is None and has_parents:
        current_lane = next_lanes.append(LaneSlot(None, next_color))
        emitter.lower(current_lane, current_lane, next_color)
        next_color += 1

    # 3.
    lane = current_lane if current_lane is not None else default_lane_for_unplaced_commit()

    # 4. The lane continues with the first parent, or ends at a root commit.
    if current_lane is not None:
        if has_parents:
            next_lanes.link(current_lane, commit.parents[0])
        else:
            next_lanes.clear(current_lane)

    # 5. Merge parents join an existing lane in that lane's color, or get a new one.
    for parent_sha in commit.parents[1:]:
        parent_lane = next_lanes.find(parent_sha)
        if parent_lane is not None:
            emitter.lower(lane, parent_lane, next_lanes[parent_lane].color)
        else:
            parent_lane = next_lanes.allocate(LaneSlot(parent_sha, next_color))
            emitter.lower(lane, parent_lane, next_color)
            next_color += 1

    return CommitLayout(lane, emitter.lines, next_lanes, next_color)


def calculate_commit_lanes(commits: list[CommitNode]) -> list[CommitNode]:
    """
    Assigns `lane` and `lines` to every CommitNode in a single pass.

    The input is expected newest first (as returned by the commit walk). Parents
    outside the list never resolve; their lanes simply keep waiting until the
    end of the pass. Returns the same list for convenience.
    """
    lanes = LaneTable()
    next_color = 0
    max_width = 0

    for commit in commits:
        layout = process_commit(commit, lanes, next_color)
        commit.lane = layout.lane
        commit.lines = layout.lines
        lanes = layout.lanes
        next_color = layout.next_color
        max_width = max(max_width, len(lanes), commit.lane + 1)

    if commits:
        logger.debug(
            "Lane layout calculated for %d commits: width=%d, colors=%d, unresolved=%d",
            len(commits),
            max_width,
            next_color,
            len(lanes.occupied()),
        )
    return commits
