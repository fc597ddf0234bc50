import os
import shutil
import sys
import tempfile
import unittest
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from hotplug.fs import FileSystem, LocalFileSystem


class TestLocalFileSystem(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.temp_dir = Path(tempfile.mkdtemp(prefix="hotplug-fs-"))
        self.addCleanup(shutil.rmtree, self.temp_dir, ignore_errors=True)
        self.fs = LocalFileSystem()

    async def test_list_directory_sorted(self):
        for name in ("b.json", "a.py", "c"):
            (self.temp_dir / name).write_text("")

        self.assertEqual(await self.fs.list_directory(str(self.temp_dir)), ["a.py", "b.json", "c"])

    async def test_list_missing_directory_raises(self):
        with self.assertRaises(FileNotFoundError):
            await self.fs.list_directory(str(self.temp_dir / "missing"))

    async def test_is_directory(self):
        (self.temp_dir / "sub").mkdir()
        (self.temp_dir / "file.txt").write_text("x")

        self.assertTrue(await self.fs.is_directory(str(self.temp_dir / "sub")))
        self.assertFalse(await self.fs.is_directory(str(self.temp_dir / "file.txt")))
        self.assertFalse(await self.fs.is_directory(str(self.temp_dir / "missing")))

    async def test_path_exists(self):
        (self.temp_dir / "file.txt").write_text("x")

        self.assertTrue(await self.fs.path_exists(str(self.temp_dir / "file.txt")))
        self.assertFalse(await self.fs.path_exists(str(self.temp_dir / "missing")))

    @unittest.skipUnless(hasattr(os, "symlink"), "symlinks unavailable")
    async def test_dangling_symlink_exists(self):
        link = self.temp_dir / "dangling"
        try:
            os.symlink(self.temp_dir / "nowhere", link)
        except OSError:
            self.skipTest("cannot create symlinks here")

        self.assertTrue(await self.fs.path_exists(str(link)))

    async def test_read_file(self):
        (self.temp_dir / "data.bin").write_bytes(b"\x00\x01payload")

        self.assertEqual(await self.fs.read_file(str(self.temp_dir / "data.bin")), b"\x00\x01payload")


class TestFileSystemInterface(unittest.TestCase):
    def test_base_class_is_abstract(self):
        with self.assertRaises(TypeError):
            FileSystem()  # type: ignore[abstract]

    def test_partial_implementation_is_abstract(self):
        class ListOnly(FileSystem):
            async def list_directory(self, path):
                return []

        with self.assertRaises(TypeError):
            ListOnly()  # type: ignore[abstract]


if __name__ == "__main__":
    unittest.main()
