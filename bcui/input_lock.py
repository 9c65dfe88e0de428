from __future__ import annotations

import logging
from dataclasses import dataclass

from bcui.host.base import InputPermissionCategory, Player

logger = logging.getLogger(__name__)

LOCKED_CATEGORIES: tuple[InputPermissionCategory, ...] = (
    InputPermissionCategory.camera,
    InputPermissionCategory.movement,
)


@dataclass(frozen=True, slots=True)
class SavedPermissions:
    camera: bool
    movement: bool


class InputLockRegistry:
    """Per-player camera/movement locks while a UI is open.

    Locking twice is a no-op; unlocking restores what was enabled before the
    first lock.
    """

    def __init__(self) -> None:
        self._saved: dict[str, SavedPermissions] = {}

    def is_locked(self, player: Player) -> bool:
        return player.id in self._saved

    def lock(self, player: Player) -> bool:
        if player.id in self._saved:
            return False

        perms = player.input_permissions
        self._saved[player.id] = SavedPermissions(
            camera=perms.is_enabled(InputPermissionCategory.camera),
            movement=perms.is_enabled(InputPermissionCategory.movement),
        )
        for category in LOCKED_CATEGORIES:
            perms.set_enabled(category, False)
        logger.debug("Locked input for %s", player.id)
        return True

    def unlock(self, player: Player) -> bool:
        saved = self._saved.pop(player.id, None)
        if saved is None:
            return False

        perms = player.input_permissions
        perms.set_enabled(InputPermissionCategory.camera, saved.camera)
        perms.set_enabled(InputPermissionCategory.movement, saved.movement)
        logger.debug("Restored input for %s", player.id)
        return True
