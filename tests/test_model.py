import os
import threading

import pytest

from gitswitch.model import ProfileModel


@pytest.fixture
def model(repo):
    m = ProfileModel(repo)
    yield m
    m.shutdown()


def test_refresh_publishes_snapshot_and_loading_state(model, settings, shell):
    shell.git_config["user.name"] = "Global Person"
    seen = []
    model.subscribe(lambda m: seen.append(m.is_loading))

    model.refresh().result(timeout=5)

    assert seen == [True, False]
    assert model.is_loading is False
    assert model.identity.name == "Global Person"


def test_on_done_receives_operation_result(model, settings):
    results = []
    work = os.path.join(settings.home, "work")

    future = model.create_profile("Work", "w@x.com", work, on_done=results.append)
    result = future.result(timeout=5)

    assert results == [result]
    assert result.ok
    assert [p.name for p in model.profiles] == ["Work"]


def test_operations_run_one_after_another(model, settings, read_global):
    futures = [
        model.create_profile(f"P{i}", f"p{i}@x.com", os.path.join(settings.home, f"p{i}"))
        for i in range(5)
    ]
    for f in futures:
        assert f.result(timeout=5).ok

    assert read_global().count("[includeIf") == 5
    assert [p.name for p in model.profiles] == [f"P{i}" for i in range(5)]


def test_results_go_through_the_scheduler(repo):
    scheduled = []

    def schedule(callback):
        scheduled.append(threading.current_thread().name)
        callback()

    model = ProfileModel(repo, schedule=schedule)
    try:
        model.set_global_identity("A B", "ab@x.com").result(timeout=5)
    finally:
        model.shutdown()

    assert len(scheduled) == 1
    assert scheduled[0].startswith("git-switch")
    assert model.identity.initials == "AB"


def test_failed_task_still_clears_loading(model, monkeypatch):
    def boom():
        raise RuntimeError("boom")

    monkeypatch.setattr(model.repository, "refresh_all", boom)

    with pytest.raises(RuntimeError):
        model.refresh().result(timeout=5)

    assert model.is_loading is False


def test_copy_is_synchronous(model, settings, clipboard):
    model.create_profile("Work", "w@x.com", os.path.join(settings.home, "work")).result(timeout=5)

    result = model.copy_key_material(model.profiles[0])

    assert result.ok
    assert clipboard.copied[0].startswith("ssh-ed25519 ")
