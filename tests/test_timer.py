"""
Unit tests for lifecycle timers and schedulers
"""

import logging
import threading
import time
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from ephemeral_ssh.keys.algorithms import KeyAlgorithm
from ephemeral_ssh.keys.key_pair import SshKeyPair
from ephemeral_ssh.keys.timer import (
    LifecycleTimer,
    ManualScheduler,
    ThreadingScheduler,
    validate_ttl_ms,
)
from ephemeral_ssh.exceptions import KeyIOError, ValidationError


def write_key_files(base_path):
    Path(base_path).write_bytes(b"private")
    Path(base_path + ".pub").write_bytes(b"ssh-ed25519 AAAA")


class TestValidateTtl:
    """Test cases for time-to-live validation"""

    def test_accepts_zero_and_positive(self):
        assert validate_ttl_ms(0) == 0
        assert validate_ttl_ms(30000) == 30000

    def test_rejects_negative(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_ttl_ms(-1)
        assert exc_info.value.error_code == "NEGATIVE_TTL"

    @pytest.mark.parametrize("value", [1.5, "50", None, True])
    def test_rejects_non_integers(self, value):
        with pytest.raises(ValidationError) as exc_info:
            validate_ttl_ms(value)
        assert exc_info.value.error_code == "INVALID_TTL_TYPE"


class TestManualScheduler:
    """Test cases for the virtual clock scheduler"""

    def test_does_not_fire_before_due(self):
        scheduler = ManualScheduler()
        callback = MagicMock()
        scheduler.call_later(50, callback)

        assert scheduler.advance(49) == 0
        callback.assert_not_called()
        assert scheduler.now_ms == 49

    def test_fires_at_due_time_once(self):
        scheduler = ManualScheduler()
        callback = MagicMock()
        scheduler.call_later(50, callback)

        assert scheduler.advance(50) == 1
        assert scheduler.advance(1000) == 0
        callback.assert_called_once_with()

    def test_fires_in_due_order(self):
        scheduler = ManualScheduler()
        order = []
        scheduler.call_later(30, lambda: order.append("second"))
        scheduler.call_later(10, lambda: order.append("first"))
        scheduler.call_later(30, lambda: order.append("third"))

        scheduler.advance(100)

        assert order == ["first", "second", "third"]

    def test_clock_reads_due_time_during_callback(self):
        scheduler = ManualScheduler()
        seen = []
        scheduler.call_later(20, lambda: seen.append(scheduler.now_ms))

        scheduler.advance(100)

        assert seen == [20]
        assert scheduler.now_ms == 100

    def test_cancelled_call_does_not_fire(self):
        scheduler = ManualScheduler()
        callback = MagicMock()
        call = scheduler.call_later(10, callback)
        call.cancel()

        assert scheduler.pending_count == 0
        scheduler.advance(100)
        callback.assert_not_called()

    def test_callback_may_schedule_more_work(self):
        scheduler = ManualScheduler()
        callback = MagicMock()
        scheduler.call_later(10, lambda: scheduler.call_later(10, callback))

        scheduler.advance(15)
        callback.assert_not_called()
        scheduler.advance(5)
        callback.assert_called_once()

    def test_rejects_negative_advance(self):
        with pytest.raises(ValueError):
            ManualScheduler().advance(-1)


class TestThreadingScheduler:
    """Test cases for the real clock scheduler"""

    def test_fires_after_delay(self):
        fired = threading.Event()
        started = time.monotonic()
        ThreadingScheduler().call_later(50, fired.set)

        assert fired.wait(5)
        assert time.monotonic() - started >= 0.04

    def test_cancel(self):
        fired = threading.Event()
        call = ThreadingScheduler().call_later(100, fired.set)
        call.cancel()

        assert not fired.wait(0.3)


class TestLifecycleTimer:
    """Test cases for LifecycleTimer"""

    def test_deletes_exactly_once_after_ttl(self):
        scheduler = ManualScheduler()
        callback = MagicMock()
        LifecycleTimer(callback, 50, scheduler).start()

        scheduler.advance(10)
        callback.assert_not_called()
        scheduler.advance(100)
        callback.assert_called_once()
        scheduler.advance(1000)
        callback.assert_called_once()

    def test_pending_and_fired_flags(self):
        scheduler = ManualScheduler()
        timer = LifecycleTimer(MagicMock(), 50, scheduler)
        assert not timer.pending

        timer.start()
        assert timer.pending
        assert not timer.fired

        scheduler.advance(50)
        assert not timer.pending
        assert timer.fired

    def test_releases_callback_after_firing(self):
        scheduler = ManualScheduler()
        timer = LifecycleTimer(MagicMock(), 5, scheduler).start()
        scheduler.advance(5)

        assert timer._callback is None

    def test_cancel(self):
        scheduler = ManualScheduler()
        callback = MagicMock()
        timer = LifecycleTimer(callback, 50, scheduler).start()

        assert timer.cancel() is True
        assert timer.cancel() is False
        scheduler.advance(100)

        callback.assert_not_called()
        assert scheduler.pending_count == 0
        assert timer._callback is None

    def test_cancel_after_firing(self):
        scheduler = ManualScheduler()
        timer = LifecycleTimer(MagicMock(), 5, scheduler).start()
        scheduler.advance(5)

        assert timer.cancel() is False

    def test_start_twice(self):
        timer = LifecycleTimer(MagicMock(), 5, ManualScheduler()).start()
        with pytest.raises(RuntimeError):
            timer.start()

    def test_invalid_ttl(self):
        with pytest.raises(ValidationError):
            LifecycleTimer(MagicMock(), -5, ManualScheduler())

    def test_deletion_errors_are_absorbed(self, caplog):
        scheduler = ManualScheduler()
        callback = MagicMock(side_effect=KeyIOError("permission denied", "KEY_FILE_DELETION_FAILED"))
        LifecycleTimer(callback, 5, scheduler).start()

        with caplog.at_level(logging.WARNING, logger="ephemeral_ssh.keys.timer"):
            scheduler.advance(5)

        callback.assert_called_once()
        assert "Scheduled key deletion failed" in caplog.text

    def test_defaults_to_threading_scheduler(self):
        timer = LifecycleTimer(MagicMock(), 50)
        assert isinstance(timer.scheduler, ThreadingScheduler)


class TestKeyPairTimerBinding:
    """Test cases for timers armed on key pairs"""

    def test_timer_deletes_key_files(self, key_dir):
        base_path = str(Path(key_dir) / "key")
        write_key_files(base_path)
        scheduler = ManualScheduler()
        key_pair = SshKeyPair(base_path, KeyAlgorithm.ED25519)

        LifecycleTimer.arm(key_pair, 50, scheduler)
        scheduler.advance(10)
        assert not key_pair.is_deleted()

        scheduler.advance(100)
        assert key_pair.is_deleted()
        assert not Path(base_path).exists()
        assert not Path(base_path + ".pub").exists()

    def test_rearming_cancels_previous_timer(self, key_dir):
        base_path = str(Path(key_dir) / "key")
        write_key_files(base_path)
        scheduler = ManualScheduler()
        key_pair = SshKeyPair(base_path, KeyAlgorithm.ED25519)

        first = key_pair.arm_timer(50, scheduler)
        second = key_pair.arm_timer(500, scheduler)

        assert not first.pending
        assert second.pending
        assert scheduler.pending_count == 1

        scheduler.advance(100)
        assert not key_pair.is_deleted()

    def test_explicit_delete_cancels_timer(self, key_dir):
        base_path = str(Path(key_dir) / "key")
        write_key_files(base_path)
        scheduler = ManualScheduler()
        key_pair = SshKeyPair(base_path, KeyAlgorithm.ED25519)
        timer = key_pair.arm_timer(50, scheduler)

        key_pair.delete()

        assert not timer.pending
        assert scheduler.pending_count == 0

    def test_timer_after_external_removal(self, key_dir):
        base_path = str(Path(key_dir) / "key")
        write_key_files(base_path)
        scheduler = ManualScheduler()
        key_pair = SshKeyPair(base_path, KeyAlgorithm.ED25519)
        timer = key_pair.arm_timer(50, scheduler)

        Path(base_path).unlink()
        Path(base_path + ".pub").unlink()
        scheduler.advance(50)

        assert timer.fired
        assert key_pair.is_deleted()
