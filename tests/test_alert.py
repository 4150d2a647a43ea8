import time

import numpy as np
import pytest

from conftest import RecordingSink
from posture_guard.alert import (
    AlertAssetError,
    AlertService,
    load_alert_samples,
    synthesize_beep,
)
from posture_guard.common import AlertCommand
from posture_guard.config import AlertConfig


def _wait_until(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def test_request_alert_opens_device_lazily_and_plays():
    sink = RecordingSink()
    service = AlertService(sink, b"\x00" * 8)
    assert sink.events == []

    service.request_alert()
    assert sink.written.wait(2.0)
    service.shut_down()

    assert sink.events == ["open", "write", "close"]


def test_idle_then_alert_before_service_plays_exactly_once():
    sink = RecordingSink()
    service = AlertService(sink, b"\x00" * 8, autostart=False)

    service.enter_idle()
    service.request_alert()
    assert service.pending is AlertCommand.PLAY_ONCE

    service.start()
    assert sink.written.wait(2.0)
    service.shut_down()

    assert sink.events.count("write") == 1
    assert sink.events[0] == "open"


def test_alert_then_idle_before_service_never_plays():
    sink = RecordingSink()
    service = AlertService(sink, b"\x00" * 8, autostart=False)

    service.request_alert()
    service.enter_idle()
    service.start()
    service.shut_down()

    assert "write" not in sink.events


def test_enter_idle_closes_open_device():
    sink = RecordingSink()
    service = AlertService(sink, b"\x00" * 8)
    service.request_alert()
    assert sink.written.wait(2.0)

    service.enter_idle()
    assert sink.closed.wait(2.0)
    assert not sink.is_open()
    service.shut_down()

    assert sink.events == ["open", "write", "close"]


def test_repeated_idle_is_coalesced():
    sink = RecordingSink()
    service = AlertService(sink, b"\x00" * 8, autostart=False)
    service.enter_idle()
    service.enter_idle()
    assert service.pending is AlertCommand.SUSPEND
    service.start()
    service.shut_down()
    assert sink.events == []


def test_open_failure_falls_back_to_bell():
    sink = RecordingSink(fail_open=True)
    bells = []
    service = AlertService(sink, b"\x00" * 8, fallback=lambda: bells.append(1))

    service.request_alert()
    assert _wait_until(lambda: bells)
    service.shut_down()

    assert bells == [1]
    assert "write" not in sink.events


def test_write_failure_falls_back_and_releases_device():
    sink = RecordingSink(fail_write=True)
    bells = []
    service = AlertService(sink, b"\x00" * 8, fallback=lambda: bells.append(1))

    service.request_alert()
    assert _wait_until(lambda: bells)
    service.shut_down()

    assert sink.events == ["open", "write", "close"]


def test_shut_down_joins_and_is_safe_to_repeat():
    sink = RecordingSink()
    service = AlertService(sink, b"")
    service.shut_down()
    service.shut_down()
    assert service._thread is None

    # Commands after termination are ignored
    service.request_alert()
    assert service.pending is AlertCommand.TERMINATE


def test_context_manager_shuts_down():
    sink = RecordingSink()
    with AlertService(sink, b"\x00" * 4, autostart=False) as service:
        service.request_alert()
        assert sink.written.wait(2.0)
    assert service._thread is None
    assert sink.events[-1] == "close"


def test_load_alert_samples_strips_header(tmp_path):
    clip = tmp_path / "beep.wav"
    clip.write_bytes(b"H" * 44 + b"\x01\x02\x03\x04")
    assert load_alert_samples(clip) == b"\x01\x02\x03\x04"


def test_load_alert_samples_rejects_short_file(tmp_path):
    clip = tmp_path / "short.wav"
    clip.write_bytes(b"RIFF")
    with pytest.raises(AlertAssetError):
        load_alert_samples(clip)


def test_synthesized_beep_matches_sink_format():
    cfg = AlertConfig(sample_rate=8000, channels=2, beep_duration_s=0.1)
    data = synthesize_beep(cfg)

    assert len(data) == 800 * 2 * 2
    samples = np.frombuffer(data, dtype=np.int16).reshape(-1, 2)
    assert np.array_equal(samples[:, 0], samples[:, 1])
    assert samples[0, 0] == 0
    assert np.abs(samples).max() > 0
