"""Static reference data: the task catalog and the avatar palette."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Task:
    """A recognized task and the points it is worth per unit."""

    id: str
    name: str
    points: int


DEFAULT_TASKS: tuple[Task, ...] = (
    Task(id="1", name="Found a new lead", points=1),
    Task(id="2", name="Made a new post", points=11),
    Task(id="3", name="Sent media used in a post", points=10),
    Task(id="4", name="Wrote caption used in a post", points=5),
    Task(id="5", name="Gave someone a business card", points=3),
    Task(id="6", name="Made a site mockup", points=10),
    Task(id="7", name="Published a site", points=35),
)

# Avatar fill colors, assigned in this order.
MEMBER_COLORS: tuple[str, ...] = (
    "#C41E3A",  # crimson
    "#4ECDC4",  # teal
    "#FFE66D",  # yellow
    "#7C3AED",  # violet
    "#22C55E",  # green
    "#0EA5E9",  # sky
    "#F59E0B",  # amber
    "#FF6B6B",  # coral
    "#8B1538",  # dark crimson
    "#E85D75",  # light crimson
)

FACE_VARIANTS: tuple[str, ...] = (
    "normal",
    "wide",
    "happy",
    "winkLeft",
    "winkRight",
    "sleepy",
    "surprised",
    "cool",
    "sad",
    "love",
)
FACE_VARIANT_COUNT = len(FACE_VARIANTS)

UNKNOWN_MEMBER_NAME = "Unknown"
UNKNOWN_TASK_NAME = "Unknown Task"


def get_default_tasks() -> list[Task]:
    """Return a mutable list of the default task catalog."""

    return list(DEFAULT_TASKS)


def tasks_by_id(tasks) -> dict[str, Task]:
    return {task.id: task for task in tasks}
