from __future__ import annotations

from bcui.host.base import InputPermissionCategory
from bcui.host.memory import InMemoryPlayer
from bcui.input_lock import InputLockRegistry


def test_lock_disables_camera_and_movement_and_unlock_restores(player) -> None:
    locks = InputLockRegistry()
    perms = player.input_permissions

    assert locks.lock(player) is True
    assert perms.is_enabled(InputPermissionCategory.camera) is False
    assert perms.is_enabled(InputPermissionCategory.movement) is False

    assert locks.unlock(player) is True
    assert perms.is_enabled(InputPermissionCategory.camera) is True
    assert perms.is_enabled(InputPermissionCategory.movement) is True


def test_second_lock_keeps_the_first_snapshot(player) -> None:
    locks = InputLockRegistry()
    perms = player.input_permissions
    perms.set_enabled(InputPermissionCategory.camera, False)

    locks.lock(player)
    assert locks.lock(player) is False
    locks.unlock(player)

    assert perms.is_enabled(InputPermissionCategory.camera) is False
    assert perms.is_enabled(InputPermissionCategory.movement) is True


def test_unlock_without_lock_is_a_no_op(player) -> None:
    locks = InputLockRegistry()

    assert locks.unlock(player) is False
    assert player.input_permissions.is_enabled(InputPermissionCategory.camera) is True


def test_locks_are_per_player() -> None:
    locks = InputLockRegistry()
    alex, sam = InMemoryPlayer("alex"), InMemoryPlayer("sam")

    locks.lock(alex)

    assert locks.is_locked(alex)
    assert not locks.is_locked(sam)
    assert sam.input_permissions.is_enabled(InputPermissionCategory.movement) is True
