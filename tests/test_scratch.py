import pytest

from stitcher.engine.scratch import ScratchSpace


def test_paths_embed_role_and_job_id(tmp_path):
    scratch = ScratchSpace(tmp_path, "job1")
    assert scratch.path("v1").name == "v1_job1.mp4"
    assert scratch.path("narration", ".m4a").name == "narration_job1.m4a"
    assert scratch.path("v1") is scratch.path("v1")


def test_unknown_role_rejected(tmp_path):
    with pytest.raises(ValueError):
        ScratchSpace(tmp_path, "job1").path("other")


def test_two_jobs_never_share_paths(tmp_path):
    a = ScratchSpace(tmp_path, "aaaa")
    b = ScratchSpace(tmp_path, "bbbb")
    roles = ["v1", "v2", "v3", "narration", "base", "final"]
    assert not {a.path(r) for r in roles} & {b.path(r) for r in roles}


def test_cleanup_is_idempotent(tmp_path):
    scratch = ScratchSpace(tmp_path, "job1")
    for role in ("v1", "v2", "base"):
        scratch.path(role).write_bytes(b"x")
    scratch.path("list", ".txt")  # handed out, never written

    scratch.cleanup()
    assert list(tmp_path.iterdir()) == []
    scratch.cleanup()
    assert list(tmp_path.iterdir()) == []


def test_cleanup_keeps_requested_roles(tmp_path):
    scratch = ScratchSpace(tmp_path, "job1")
    scratch.path("base").write_bytes(b"x")
    scratch.path("final").write_bytes(b"y")
    scratch.cleanup(keep=("final",))
    assert [p.name for p in tmp_path.iterdir()] == ["final_job1.mp4"]


def test_release_only_touches_named_roles(tmp_path):
    scratch = ScratchSpace(tmp_path, "job1")
    scratch.path("v1").write_bytes(b"x")
    scratch.path("narration", ".mp3").write_bytes(b"y")
    scratch.release("v1", "v2")
    assert not scratch.path("v1").exists()
    assert scratch.path("narration").exists()
