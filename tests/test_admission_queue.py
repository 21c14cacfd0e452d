"""Tests for per-user admission control."""

from __future__ import annotations

from orchestrator import AdmissionQueue


def test_reserve_until_capacity() -> None:
    queue = AdmissionQueue(max_size=3)

    assert queue.try_reserve("u1", "a") is True
    assert queue.try_reserve("u1", "b") is True
    assert queue.try_reserve("u1", "c") is True
    assert queue.try_reserve("u1", "d") is False
    assert queue.size("u1") == 3


def test_refused_reservation_does_not_mutate_state() -> None:
    queue = AdmissionQueue(max_size=1)
    queue.try_reserve("u1", "a")

    assert queue.try_reserve("u1", "b") is False
    queue.release("u1", "a")

    assert queue.size("u1") == 0
    assert queue.try_reserve("u1", "b") is True


def test_users_are_independent() -> None:
    queue = AdmissionQueue(max_size=1)

    assert queue.try_reserve("u1", "a") is True
    assert queue.try_reserve("u2", "a") is True
    assert queue.size("u1") == 1
    assert queue.size("u2") == 1


def test_release_drops_empty_user_entry() -> None:
    queue = AdmissionQueue(max_size=3)
    queue.try_reserve("u1", "a")
    queue.try_reserve("u1", "b")

    queue.release("u1", "a")
    assert queue.tracked_users() == 1

    queue.release("u1", "b")
    assert queue.tracked_users() == 0
    assert queue.size("u1") == 0


def test_release_unknown_user_is_noop() -> None:
    queue = AdmissionQueue()
    queue.release("ghost", "a")

    assert queue.tracked_users() == 0
