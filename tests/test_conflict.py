"""
冲突解决测试
"""

import os

from modqueue.conflict import Resolution, resolve_overwrite
from modqueue.exceptions import NoAvailableDestinationError


class TestResolveOverwrite:
    def test_free_path_is_returned_unchanged(self, tmp_path):
        dest = str(tmp_path / "mod.zip")

        resolution = resolve_overwrite(dest)

        assert resolution.ok
        assert resolution.path == dest

    def test_skips_existing_suffixes(self, tmp_path):
        (tmp_path / "mod.zip").write_bytes(b"x")
        (tmp_path / "mod (2).zip").write_bytes(b"x")

        resolution = resolve_overwrite(str(tmp_path / "mod.zip"))

        assert resolution.path == str(tmp_path / "mod (3).zip")

    def test_first_suffix_is_two(self, tmp_path):
        (tmp_path / "Cool Mod.esp").write_bytes(b"x")

        resolution = resolve_overwrite(str(tmp_path / "Cool Mod.esp"))

        assert os.path.basename(resolution.path) == "Cool Mod (2).esp"

    def test_path_without_extension(self, tmp_path):
        (tmp_path / "readme").write_text("x")

        resolution = resolve_overwrite(str(tmp_path / "readme"))

        assert resolution.path == str(tmp_path / "readme (2)")

    def test_does_not_create_files(self, tmp_path):
        (tmp_path / "mod.zip").write_bytes(b"x")

        resolve_overwrite(str(tmp_path / "mod.zip"))

        assert sorted(os.listdir(tmp_path)) == ["mod.zip"]

    def test_exhausted_range_reports_error(self, tmp_path):
        (tmp_path / "mod.zip").write_bytes(b"x")
        (tmp_path / "mod (2).zip").write_bytes(b"x")
        (tmp_path / "mod (3).zip").write_bytes(b"x")

        resolution = resolve_overwrite(str(tmp_path / "mod.zip"), max_index=3)

        assert not resolution.ok
        assert resolution.path is None
        assert isinstance(resolution.error, NoAvailableDestinationError)
        assert resolution.error.code == "E401"


class TestResolution:
    def test_ok_requires_path(self):
        assert not Resolution().ok
        assert Resolution(path="a").ok
