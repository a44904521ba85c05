"""Tests for services/lifecycle.py - the pack/unpack lifecycle.

diskutil operations, the Trash move, the settle delay and compression are
mocked onto one manager so call order can be asserted end to end.
"""

from unittest.mock import Mock, call

import pytest
from loguru import logger

from afpack.domain.models import (
    AttachOptions,
    CreateBlankOptions,
    CreateFromOptions,
    FileSystem,
    Format,
    ResizeOptions,
    RunOptions,
)
from afpack.services import lifecycle
from afpack.storage.compression import CompressionKind
from afpack.storage.exceptions import CommandFailedError, InvalidSizeError


@pytest.fixture
def steps(mocker):
    """Patch every side-effecting collaborator onto a single manager mock."""
    manager = Mock()
    manager.move_to_trash.return_value = None
    for name in ("create_blank", "create_from", "resize", "attach", "detach"):
        mocker.patch(f"afpack.storage.diskimage.{name}", getattr(manager, name))
    mocker.patch("afpack.services.system.move_to_trash", manager.move_to_trash)
    mocker.patch("afpack.services.lifecycle.time.sleep", manager.sleep)
    mocker.patch("afpack.storage.compression.apply_compression", manager.apply_compression)
    mocker.patch("afpack.storage.compression.compress_path", manager.compress_path)
    return manager


class TestImagePathFor:
    """Tests for image_path_for()."""

    @pytest.mark.parametrize(
        "afdir, expected",
        [
            ("deps", "deps.asif"),
            ("deps/", "deps.asif"),
            ("/work/app/node_modules", "/work/app/node_modules.asif"),
            (".build", ".build.asif"),
        ],
    )
    def test_appends_extension(self, afdir, expected):
        assert lifecycle.image_path_for(afdir) == expected


class TestPack:
    """End-to-end lifecycle ordering."""

    def test_missing_directory_creates_blank_image(self, steps, in_tmp):
        image = lifecycle.pack("deps", maxsize="2GB", compress="none", run=RunOptions())

        assert image == "deps.asif"
        assert steps.mock_calls == [
            call.create_blank(
                "deps.asif",
                CreateBlankOptions(size="2GB", fs=FileSystem.APFS, format=Format.ASIF),
            ),
            call.move_to_trash("deps"),
            call.attach("deps.asif", AttachOptions(mount_point="deps")),
            call.compress_path("deps.asif", CompressionKind.LZFSE, compressor=None),
        ]

    def test_existing_directory_is_converted_compressed_and_resized(self, steps, in_tmp):
        (in_tmp / "deps").mkdir()
        (in_tmp / "deps" / "index.js").write_text("module.exports = 1;\n")

        lifecycle.pack("deps", maxsize="5GB", compress="lzfse", run=RunOptions())

        assert steps.mock_calls == [
            call.create_from("deps", "deps.asif", CreateFromOptions(format=Format.ASIF)),
            call.apply_compression(CompressionKind.LZFSE, "deps", compressor=None),
            call.sleep(3),
            call.resize("deps.asif", ResizeOptions("5GB")),
            call.move_to_trash("deps"),
            call.attach("deps.asif", AttachOptions(mount_point="deps")),
            call.compress_path("deps.asif", CompressionKind.LZFSE, compressor=None),
        ]

    def test_no_compression_still_waits_and_resizes(self, steps, in_tmp):
        (in_tmp / "deps").mkdir()

        lifecycle.pack("deps", maxsize="5GB", compress="none")

        steps.apply_compression.assert_not_called()
        steps.sleep.assert_called_once_with(3)
        steps.resize.assert_called_once_with("deps.asif", ResizeOptions("5GB"))
        # The final pass over the image ignores --compress
        steps.compress_path.assert_called_once_with(
            "deps.asif", CompressionKind.LZFSE, compressor=None
        )

    def test_unknown_compression_is_still_applied(self, steps, in_tmp):
        (in_tmp / "deps").mkdir()

        lifecycle.pack("deps", maxsize="5GB", compress="brotli")

        steps.apply_compression.assert_called_once_with(
            CompressionKind.LZFSE, "deps", compressor=None
        )

    def test_unknown_compression_warns_once(self, mocker, in_tmp, log_messages):
        (in_tmp / "deps").mkdir()
        for name in ("create_from", "resize", "attach"):
            mocker.patch(f"afpack.storage.diskimage.{name}")
        mocker.patch("afpack.services.system.move_to_trash", return_value=None)
        mocker.patch("afpack.services.lifecycle.time.sleep")
        compress_path = mocker.patch("afpack.storage.compression.compress_path")

        lifecycle.pack("deps", maxsize="5GB", compress="brotli")

        warnings = [m for m in log_messages if m.startswith("Unknown compression type")]
        assert warnings == ["Unknown compression type 'brotli', using lzfse"]
        compress_path.assert_any_call(
            "deps", CompressionKind.LZFSE, compressor=None, progress=None
        )

    def test_existing_image_is_only_attached(self, steps, in_tmp):
        (in_tmp / "deps.asif").write_bytes(b"")

        lifecycle.pack("deps", maxsize="5GB", compress="lzfse")

        assert steps.mock_calls == [
            call.attach("deps.asif", AttachOptions(mount_point="deps")),
            call.compress_path("deps.asif", CompressionKind.LZFSE, compressor=None),
        ]

    def test_flags_are_threaded_into_every_step(self, steps, in_tmp):
        (in_tmp / "deps").mkdir()
        run = RunOptions(dry_run=False, verbose=True)

        lifecycle.pack("deps", maxsize="5GB", run=run)

        assert steps.create_from.call_args[0][2].verbose is True
        assert steps.resize.call_args[0][1].verbose is True
        assert steps.attach.call_args[0][1] == AttachOptions(mount_point="deps", verbose=True)

    def test_create_failure_aborts_before_removal(self, steps, in_tmp):
        (in_tmp / "deps").mkdir()
        steps.create_from.side_effect = CommandFailedError("no space left")

        with pytest.raises(CommandFailedError):
            lifecycle.pack("deps", maxsize="5GB")

        steps.resize.assert_not_called()
        steps.move_to_trash.assert_not_called()
        steps.attach.assert_not_called()
        assert (in_tmp / "deps").is_dir()

    def test_resize_failure_aborts(self, steps, in_tmp):
        (in_tmp / "deps").mkdir()
        steps.resize.side_effect = InvalidSizeError("lots")

        with pytest.raises(InvalidSizeError):
            lifecycle.pack("deps", maxsize="lots")

        steps.move_to_trash.assert_not_called()
        steps.attach.assert_not_called()

    def test_attach_failure_after_removal_propagates(self, steps, in_tmp):
        (in_tmp / "deps").mkdir()
        steps.attach.side_effect = CommandFailedError("attach failed")

        with pytest.raises(CommandFailedError):
            lifecycle.pack("deps", maxsize="5GB")

        steps.move_to_trash.assert_called_once_with("deps")
        steps.compress_path.assert_not_called()


class TestProgressReporting:
    """Step progress reaches the console only with --verbose."""

    @pytest.fixture
    def levels(self):
        records = {}
        handler_id = logger.add(
            lambda message: records.setdefault(
                message.record["message"], message.record["level"].name
            ),
            level="DEBUG",
        )
        yield records
        logger.remove(handler_id)

    @pytest.mark.parametrize("verbose, level", [(False, "DEBUG"), (True, "INFO")])
    def test_step_messages_follow_verbose(self, steps, in_tmp, levels, verbose, level):
        (in_tmp / "deps").mkdir()

        lifecycle.pack("deps", maxsize="5GB", run=RunOptions(verbose=verbose))

        assert levels["Creating image deps.asif from deps"] == level
        assert levels["Resizing deps.asif to 5GB"] == level
        assert levels["Attached deps.asif -> deps"] == level

    def test_dry_run_echo_is_always_shown(self, mocker, in_tmp, levels):
        mocker.patch("afpack.services.lifecycle.time.sleep")

        lifecycle.pack("deps", maxsize="2GB", run=RunOptions(dry_run=True))

        assert levels["[DRY RUN] removing deps"] == "INFO"


class TestDryRun:
    """A dry run spawns nothing and leaves the filesystem untouched."""

    def test_dry_run_touches_nothing(self, mocker, in_tmp, log_messages):
        (in_tmp / "deps").mkdir()
        (in_tmp / "deps" / "lib.js").write_text("x")
        run_mock = mocker.patch("afpack.storage.diskimage.subprocess.run")
        trash_mock = mocker.patch("afpack.services.system.move_to_trash")
        sleep_mock = mocker.patch("afpack.services.lifecycle.time.sleep")
        compress_mock = mocker.patch("afpack.storage.compression.FileCompressor")

        lifecycle.pack("deps", maxsize="5GB", compress="lzfse", run=RunOptions(dry_run=True))

        run_mock.assert_not_called()
        trash_mock.assert_not_called()
        compress_mock.assert_not_called()
        sleep_mock.assert_called_once_with(3)
        assert (in_tmp / "deps" / "lib.js").exists()
        assert not (in_tmp / "deps.asif").exists()
        assert "[DRY RUN] removing deps" in log_messages
        assert (
            "[DRY RUN] Would execute: diskutil image create from --format ASIF deps deps.asif"
            in log_messages
        )
        assert (
            "[DRY RUN] Would execute: diskutil image attach --mountPoint deps deps.asif"
            in log_messages
        )

    def test_dry_run_blank_image_does_not_create_mount_point(self, mocker, in_tmp):
        run_mock = mocker.patch("afpack.storage.diskimage.subprocess.run")

        lifecycle.pack("deps", maxsize="2GB", run=RunOptions(dry_run=True))

        run_mock.assert_not_called()
        assert not (in_tmp / "deps").exists()

    def test_dry_run_still_validates_size(self, mocker, in_tmp):
        mocker.patch("afpack.storage.diskimage.subprocess.run")

        with pytest.raises(InvalidSizeError):
            lifecycle.pack("deps", maxsize="plenty", run=RunOptions(dry_run=True))


class TestStepFunctions:
    """Tests for the individual lifecycle steps."""

    def test_prepare_image_reports_creation(self, steps, in_tmp):
        assert lifecycle.prepare_image("deps", "deps.asif", "2GB", "none", RunOptions()) is True

    def test_prepare_image_reuses_existing_image(self, steps, in_tmp):
        (in_tmp / "deps.asif").write_bytes(b"")

        assert lifecycle.prepare_image("deps", "deps.asif", "2GB", "none", RunOptions()) is False
        steps.create_blank.assert_not_called()

    def test_remove_source_dir_moves_to_trash(self, steps, in_tmp):
        steps.move_to_trash.return_value = in_tmp / ".Trash" / "deps"

        trashed = lifecycle.remove_source_dir("deps", RunOptions())

        assert trashed == in_tmp / ".Trash" / "deps"

    def test_compress_image_skipped_on_dry_run(self, steps):
        lifecycle.compress_image("deps.asif", RunOptions(dry_run=True))

        steps.compress_path.assert_not_called()

    def test_unpack_detaches_mount_point(self, steps):
        steps.detach.return_value = "Volume deps unmounted\n"

        result = lifecycle.unpack("deps", RunOptions(verbose=True))

        assert result == "Volume deps unmounted\n"
        steps.detach.assert_called_once_with("deps", dry_run=False, verbose=True)
