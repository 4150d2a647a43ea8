import os

from posture_guard.live_tuning import RuntimeParamWatcher


def test_missing_file_is_not_an_error(tmp_path):
    watcher = RuntimeParamWatcher(tmp_path / "absent.json")
    assert watcher.params == {}
    assert watcher.maybe_reload() is False
    assert watcher.get("drift_threshold_fraction", 0.1) == 0.1


def test_reload_on_change(tmp_path):
    path = tmp_path / "params.json"
    path.write_text('{"drift_threshold_fraction": 0.2}')
    watcher = RuntimeParamWatcher(path)
    assert watcher.get("drift_threshold_fraction") == 0.2
    assert watcher.maybe_reload() is False

    path.write_text('{"drift_threshold_fraction": 0.15, "sleep_duration_s": 300}')
    assert watcher.maybe_reload() is True
    assert watcher.get("sleep_duration_s") == 300


def test_bad_json_keeps_old_params(tmp_path):
    path = tmp_path / "params.json"
    path.write_text('{"check_duration_s": 5}')
    watcher = RuntimeParamWatcher(path)

    path.write_text("{not json")
    assert watcher.maybe_reload() is True
    assert watcher.get("check_duration_s") == 5
    # Same broken file is not re-parsed every tick
    assert watcher.maybe_reload() is False


def test_mtime_change_alone_triggers_reload(tmp_path):
    path = tmp_path / "params.json"
    path.write_text('{"a": 1}')
    watcher = RuntimeParamWatcher(path)
    path.write_text('{"a": 2}')
    stat = path.stat()
    os.utime(path, (stat.st_atime, stat.st_mtime + 5))
    assert watcher.maybe_reload() is True
    assert watcher.get("a") == 2


def test_undecodable_file_keeps_old_params(tmp_path):
    path = tmp_path / "params.json"
    path.write_text('{"check_duration_s": 5}')
    watcher = RuntimeParamWatcher(path)

    path.write_bytes(b'{"check_duration_s": "\xff\xfe"}')
    assert watcher.maybe_reload() is True
    assert watcher.get("check_duration_s") == 5
    assert watcher.maybe_reload() is False


def test_undecodable_file_at_startup(tmp_path):
    path = tmp_path / "params.json"
    path.write_bytes(b"\xff\xfe\x00")
    watcher = RuntimeParamWatcher(path)
    assert watcher.params == {}
