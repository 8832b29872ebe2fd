"""
ImageDeduplicator 单元测试
"""
import hashlib
import unittest
import tempfile
import shutil
from datetime import datetime
from pathlib import Path

from PIL import Image
from core.deduplicator import ImageDeduplicator, hash_bytes, hash_file
from core.index import ImageIndex
from core.models import CacheEntry


def _create_temp_image(path, size=(10, 10), color="red"):
    img = Image.new("RGB", size, color=color)
    img.save(path, "PNG")


class TestHashing(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.mkdtemp()
        self.tmp_path = Path(self.tmp)

    def tearDown(self):
        shutil.rmtree(self.tmp, ignore_errors=True)

    def test_hash_bytes_is_sha256(self):
        self.assertEqual(hash_bytes(b"abc"), hashlib.sha256(b"abc").hexdigest())

    def test_hash_file_matches_hash_bytes(self):
        p = self.tmp_path / "a.png"
        _create_temp_image(p)
        self.assertEqual(hash_file(p), hash_bytes(p.read_bytes()))
        self.assertEqual(len(hash_file(p)), 64)

    def test_different_content_different_hash(self):
        a, b = self.tmp_path / "a.png", self.tmp_path / "b.png"
        _create_temp_image(a, color="red")
        _create_temp_image(b, color="blue")
        self.assertNotEqual(hash_file(a), hash_file(b))


class TestImageDeduplicator(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.mkdtemp()
        self.tmp_path = Path(self.tmp)
        self.index = ImageIndex(self.tmp_path / "index.json", self.tmp_path)

    def tearDown(self):
        shutil.rmtree(self.tmp, ignore_errors=True)

    def _store(self, path: Path) -> str:
        digest = hash_file(path)
        self.index.add(CacheEntry(
            content_hash=digest,
            file_path=str(path),
            file_size=path.stat().st_size,
            date_added=datetime.now(),
        ))
        return digest

    def test_unknown_hash_is_not_duplicate(self):
        d = ImageDeduplicator(self.index)
        self.assertFalse(d.is_duplicate_hash("c" * 64))

    def test_indexed_hash_is_duplicate(self):
        p = self.tmp_path / "a.png"
        _create_temp_image(p)
        digest = self._store(p)
        d = ImageDeduplicator(self.index)
        self.assertTrue(d.is_duplicate_hash(digest))

    def test_stats_updated(self):
        p = self.tmp_path / "a.png"
        _create_temp_image(p)
        digest = self._store(p)
        d = ImageDeduplicator(self.index)
        d.is_duplicate_hash(digest)
        d.is_duplicate_hash("d" * 64)
        stats = d.get_stats()
        self.assertEqual(stats["total_checked"], 2)
        self.assertEqual(stats["duplicates_found"], 1)
        self.assertEqual(stats["unique_images"], 1)
        self.assertEqual(stats["duplicate_rate"], 0.5)

    def test_get_stats_empty_duplicate_rate_zero(self):
        d = ImageDeduplicator(self.index)
        stats = d.get_stats()
        self.assertEqual(stats["duplicate_rate"], 0.0)
        self.assertEqual(stats["total_checked"], 0)
