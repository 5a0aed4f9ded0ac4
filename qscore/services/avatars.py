"""Color and face allocation for newly registered members."""

from __future__ import annotations

import random
from typing import Iterable, Optional, Sequence

from qscore.services.catalog import FACE_VARIANT_COUNT, MEMBER_COLORS
from qscore.services.types import TeamMember


class AvatarAllocator:
    """Hands out the lowest unused color and face.

    Keeps next-free cursors instead of rescanning every member per
    registration. Once every color is taken the color wraps by member
    count; once every face is taken the face is picked at random.
    """

    def __init__(
        self,
        *,
        colors: Sequence[str] = MEMBER_COLORS,
        face_count: int = FACE_VARIANT_COUNT,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._colors = tuple(colors)
        self._face_count = face_count
        self._rng = rng or random.Random()
        self._used_colors: set[str] = set()
        self._used_faces: set[int] = set()
        self._next_color = 0
        self._next_face = 0
        self._count = 0

    @classmethod
    def from_members(cls, members: Iterable[TeamMember], **kwargs) -> "AvatarAllocator":
        allocator = cls(**kwargs)
        for member in members:
            allocator.mark_used(member.color, member.face)
        return allocator

    @property
    def count(self) -> int:
        return self._count

    def mark_used(self, color: Optional[str], face: Optional[int]) -> None:
        self._count += 1
        self._claim(color, face)

    def reassign(
        self,
        old_color: Optional[str],
        old_face: Optional[int],
        new_color: Optional[str],
        new_face: Optional[int],
    ) -> None:
        """Move one member's claim after a profile change."""
        if old_color is not None and old_color != new_color:
            self._used_colors.discard(old_color)
            if old_color in self._colors:
                self._next_color = min(self._next_color, self._colors.index(old_color))
        if old_face is not None and old_face != new_face:
            self._used_faces.discard(old_face)
            self._next_face = min(self._next_face, old_face)
        self._claim(new_color, new_face)

    def allocate(self) -> tuple[str, int]:
        color = self._free_color()
        face = self._free_face()
        self.mark_used(color, face)
        return color, face

    def _claim(self, color: Optional[str], face: Optional[int]) -> None:
        if color is not None:
            self._used_colors.add(color)
        if face is not None:
            self._used_faces.add(face)

    def _free_color(self) -> str:
        while self._next_color < len(self._colors) and self._colors[self._next_color] in self._used_colors:
            self._next_color += 1
        if self._next_color < len(self._colors):
            return self._colors[self._next_color]
        return self._colors[self._count % len(self._colors)]

    def _free_face(self) -> int:
        while self._next_face < self._face_count and self._next_face in self._used_faces:
            self._next_face += 1
        if self._next_face < self._face_count:
            return self._next_face
        return self._rng.randrange(self._face_count)
