import pytest

from falconagent.collect import kernel


@pytest.fixture
def proc_sys(tmp_path, monkeypatch):
    (tmp_path / "fs").mkdir()
    (tmp_path / "kernel").mkdir()
    (tmp_path / "fs" / "file-max").write_text("100\n")
    (tmp_path / "kernel" / "pid_max").write_text("32768\n")
    (tmp_path / "fs" / "file-nr").write_text("40\t0\t100\n")
    monkeypatch.setattr(kernel, "_PROC_SYS", tmp_path)
    return tmp_path


def test_readers(proc_sys):
    assert kernel.kernel_max_files() == 100
    assert kernel.kernel_max_proc() == 32768
    assert kernel.kernel_allocate_files() == 40


def test_metrics(proc_sys):
    metrics = {m.metric: m.value for m in kernel.kernel_metrics()}
    assert list(metrics) == [
        "kernel.maxfiles",
        "kernel.maxproc",
        "kernel.files.allocated",
        "kernel.files.left",
    ]
    assert metrics["kernel.files.left"] == metrics["kernel.maxfiles"] - metrics["kernel.files.allocated"]


def test_metrics_stop_at_first_failure(proc_sys):
    (proc_sys / "kernel" / "pid_max").unlink()
    metrics = kernel.kernel_metrics()
    assert [m.metric for m in metrics] == ["kernel.maxfiles"]


def test_missing_file_raises(proc_sys):
    (proc_sys / "fs" / "file-max").unlink()
    with pytest.raises(OSError):
        kernel.kernel_max_files()


def test_empty_file_raises(proc_sys):
    (proc_sys / "fs" / "file-nr").write_text("")
    with pytest.raises(ValueError):
        kernel.kernel_allocate_files()