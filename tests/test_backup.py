import errno
import os

import pytest

from davinci_cleaner.backup import backup_assets, delete_assets, move_file, undo_backup
from davinci_cleaner.config import BACKUP_DIR_NAME, MANIFEST_NAME
from davinci_cleaner.manifest import BackupManifest


@pytest.fixture
def workdir(tmp_path):
    assets = tmp_path / "static" / "img"
    assets.mkdir(parents=True)
    for name in ("a.png", "b.png", "c.png"):
        (assets / name).write_bytes(b"bytes of " + name.encode())
    return tmp_path


def _backup_root(workdir):
    return str(workdir / BACKUP_DIR_NAME)


def test_backup_then_undo_round_trip(workdir):
    backup_root = _backup_root(workdir)
    unused = workdir / "static" / "img" / "c.png"
    original_bytes = unused.read_bytes()
    manifest = BackupManifest(os.path.join(backup_root, MANIFEST_NAME))

    result = backup_assets({str(unused)}, str(workdir), backup_root, manifest)

    assert len(result.succeeded) == 1
    assert result.failed == []
    assert not unused.exists()
    backed_up = workdir / BACKUP_DIR_NAME / "static" / "img" / "c.png"
    assert backed_up.read_bytes() == original_bytes
    assert (workdir / "static" / "img" / "a.png").exists()

    undo = undo_backup(backup_root, str(workdir), manifest)

    assert [outcome.destination for outcome in undo.recovered] == [str(unused)]
    assert undo.failed == []
    assert undo.backup_root_removed
    assert unused.read_bytes() == original_bytes
    assert not os.path.exists(backup_root)


def test_undo_without_manifest_uses_relative_layout(workdir):
    backup_root = _backup_root(workdir)
    unused = workdir / "static" / "img" / "b.png"
    backup_assets({str(unused)}, str(workdir), backup_root)

    undo = undo_backup(backup_root, str(workdir))

    assert len(undo.recovered) == 1
    assert unused.exists()
    assert not os.path.exists(backup_root)


def test_partial_failure_keeps_processing(workdir):
    backup_root = _backup_root(workdir)
    img = workdir / "static" / "img"
    blocked = workdir / BACKUP_DIR_NAME / "static" / "img" / "b.png"
    blocked.parent.mkdir(parents=True)
    blocked.write_bytes(b"already here")

    result = backup_assets(
        {str(img / "a.png"), str(img / "b.png"), str(img / "c.png")},
        str(workdir),
        backup_root,
    )

    assert len(result.failed) == 1
    assert result.failed[0].source == str(img / "b.png")
    assert len(result.succeeded) == 2
    assert (img / "b.png").exists()
    assert not (img / "a.png").exists()
    assert not (img / "c.png").exists()
    assert blocked.read_bytes() == b"already here"


def test_undo_keeps_backup_root_when_a_restore_fails(workdir):
    backup_root = _backup_root(workdir)
    img = workdir / "static" / "img"
    backup_assets({str(img / "a.png"), str(img / "c.png")}, str(workdir), backup_root)
    (img / "a.png").write_bytes(b"recreated")

    undo = undo_backup(backup_root, str(workdir))

    assert len(undo.recovered) == 1
    assert len(undo.failed) == 1
    assert not undo.backup_root_removed
    assert (workdir / BACKUP_DIR_NAME / "static" / "img" / "a.png").exists()
    assert (img / "a.png").read_bytes() == b"recreated"

    (img / "a.png").unlink()
    retry = undo_backup(backup_root, str(workdir))

    assert len(retry.recovered) == 1
    assert retry.backup_root_removed
    assert (img / "a.png").read_bytes() == b"bytes of a.png"


def test_undo_without_backup_root_is_empty(tmp_path):
    undo = undo_backup(str(tmp_path / BACKUP_DIR_NAME), str(tmp_path))
    assert undo.recovered == []
    assert undo.failed == []
    assert not undo.backup_root_removed


def test_asset_outside_working_dir_is_restored_from_manifest(tmp_path):
    work = tmp_path / "work"
    work.mkdir()
    outside = tmp_path / "shared" / "logo.png"
    outside.parent.mkdir()
    outside.write_bytes(b"logo")
    backup_root = str(work / BACKUP_DIR_NAME)
    manifest = BackupManifest(os.path.join(backup_root, MANIFEST_NAME))

    result = backup_assets({str(outside)}, str(work), backup_root, manifest)

    assert len(result.succeeded) == 1
    assert result.succeeded[0].destination.startswith(backup_root)
    assert not outside.exists()

    undo = undo_backup(backup_root, str(work), manifest)

    assert undo.backup_root_removed
    assert outside.read_bytes() == b"logo"


def test_cross_device_rename_falls_back_to_copy(tmp_path, monkeypatch):
    source = tmp_path / "a.png"
    source.write_bytes(b"payload")
    destination = tmp_path / "backup" / "a.png"
    destination.parent.mkdir()

    def cross_device(src, dst):
        raise OSError(errno.EXDEV, "Invalid cross-device link", src)

    monkeypatch.setattr(os, "rename", cross_device)
    move_file(str(source), str(destination))

    assert destination.read_bytes() == b"payload"
    assert not source.exists()
    assert os.listdir(destination.parent) == ["a.png"]


def test_move_refuses_to_overwrite(tmp_path):
    source = tmp_path / "a.png"
    source.write_bytes(b"new")
    destination = tmp_path / "b.png"
    destination.write_bytes(b"old")

    with pytest.raises(FileExistsError):
        move_file(str(source), str(destination))
    assert source.exists()
    assert destination.read_bytes() == b"old"


def test_delete_assets_reports_failures(workdir):
    img = workdir / "static" / "img"
    missing = str(img / "gone.png")

    result = delete_assets({str(img / "a.png"), missing})

    assert [outcome.source for outcome in result.failed] == [missing]
    assert len(result.succeeded) == 1
    assert not (img / "a.png").exists()


def test_refused_backup_is_not_recorded_in_manifest(tmp_path):
    work = tmp_path / "work"
    first = work / "other" / "x.png"
    first.parent.mkdir(parents=True)
    first.write_bytes(b"first")
    second = work / "dup" / "other" / "x.png"
    second.parent.mkdir(parents=True)
    second.write_bytes(b"second")
    backup_root = str(work / BACKUP_DIR_NAME)
    manifest = BackupManifest(os.path.join(backup_root, MANIFEST_NAME))

    backup_assets({str(first)}, str(work), backup_root, manifest)
    refused = backup_assets({str(second)}, str(work / "dup"), backup_root, manifest)

    assert [outcome.source for outcome in refused.failed] == [str(second)]
    assert second.read_bytes() == b"second"
    assert list(manifest.load().values()) == [str(first)]

    undo = undo_backup(backup_root, str(work), manifest)

    assert undo.failed == []
    assert first.read_bytes() == b"first"


def test_backup_skips_item_when_parent_cannot_be_created(workdir):
    backup_root = _backup_root(workdir)
    (workdir / BACKUP_DIR_NAME).mkdir()
    (workdir / BACKUP_DIR_NAME / "static").write_bytes(b"not a folder")
    asset = workdir / "static" / "img" / "a.png"
    manifest = BackupManifest(os.path.join(backup_root, MANIFEST_NAME))

    result = backup_assets({str(asset)}, str(workdir), backup_root, manifest)

    assert [outcome.source for outcome in result.failed] == [str(asset)]
    assert result.succeeded == []
    assert asset.read_bytes() == b"bytes of a.png"
    assert manifest.load() == {}


def test_undo_reports_backup_root_kept_when_removal_fails(workdir, monkeypatch, caplog):
    import davinci_cleaner.backup as backup

    backup_root = _backup_root(workdir)
    asset = workdir / "static" / "img" / "a.png"
    backup_assets({str(asset)}, str(workdir), backup_root)

    def refuse(path, *args, **kwargs):
        raise OSError(errno.EACCES, "Permission denied", path)

    monkeypatch.setattr(backup.shutil, "rmtree", refuse)
    with caplog.at_level("ERROR", logger="davinci_cleaner"):
        undo = undo_backup(backup_root, str(workdir))

    assert len(undo.recovered) == 1
    assert not undo.backup_root_removed
    assert asset.exists()
    assert os.path.isdir(backup_root)
    assert "Failed to remove" in caplog.text


def test_undo_ignores_leftover_partial_copies(workdir):
    backup_root = _backup_root(workdir)
    asset = workdir / "static" / "img" / "a.png"
    backup_assets({str(asset)}, str(workdir), backup_root)
    leftover = workdir / BACKUP_DIR_NAME / "static" / "img" / ".b.png.k2j4.partial"
    leftover.write_bytes(b"half")

    undo = undo_backup(backup_root, str(workdir))

    assert [outcome.destination for outcome in undo.recovered] == [str(asset)]
    assert not (workdir / "static" / "img" / ".b.png.k2j4.partial").exists()
    assert undo.backup_root_removed


def test_cross_device_copy_keeps_source_when_it_cannot_be_removed(tmp_path, monkeypatch, caplog):
    source = tmp_path / "a.png"
    source.write_bytes(b"payload")
    destination = tmp_path / "backup" / "a.png"
    destination.parent.mkdir()
    real_unlink = os.unlink

    def cross_device(src, dst):
        raise OSError(errno.EXDEV, "Invalid cross-device link", src)

    def guarded_unlink(path, *args, **kwargs):
        if os.fspath(path) == str(source):
            raise PermissionError(errno.EACCES, "Permission denied", path)
        return real_unlink(path, *args, **kwargs)

    monkeypatch.setattr(os, "rename", cross_device)
    monkeypatch.setattr(os, "unlink", guarded_unlink)
    with caplog.at_level("WARNING", logger="davinci_cleaner"):
        with pytest.raises(PermissionError):
            move_file(str(source), str(destination))

    assert source.read_bytes() == b"payload"
    assert destination.read_bytes() == b"payload"
    assert "exists in both places" in caplog.text
