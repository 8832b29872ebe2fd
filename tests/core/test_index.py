"""
ImageIndex 单元测试（临时目录）
"""
import json
import unittest
import tempfile
import shutil
from datetime import datetime
from pathlib import Path

from PIL import Image

from core.deduplicator import hash_file
from core.index import ImageIndex, lot_id_from_filename, _serialize, _deserialize
from core.models import CacheEntry


def _write_image(path: Path, color="red", fmt="PNG"):
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGB", (8, 8), color=color).save(path, fmt)


def _entry(digest="a" * 64, path="/tmp/1.jpg", lot_id="1"):
    return CacheEntry(
        content_hash=digest,
        file_path=path,
        file_size=10,
        date_added=datetime(2024, 1, 2, 3, 4, 5),
        lot_id=lot_id,
        source_url="https://x.com/1.jpg",
    )


class TestIndexSerializeHelpers(unittest.TestCase):
    """_serialize / _deserialize 辅助函数"""

    def test_serialized_document_is_keyed_by_digest(self):
        data = json.loads(_serialize({"a" * 64: _entry()}))
        self.assertEqual(list(data.keys()), ["a" * 64])
        self.assertEqual(data["a" * 64]["file_path"], "/tmp/1.jpg")
        self.assertNotIn("content_hash", data["a" * 64])

    def test_deserialize_restores_entries(self):
        entries = _deserialize(_serialize({"b" * 64: _entry("b" * 64)}))
        self.assertEqual(entries["b" * 64].lot_id, "1")
        self.assertEqual(entries["b" * 64].date_added, datetime(2024, 1, 2, 3, 4, 5))

    def test_deserialize_rejects_non_object(self):
        with self.assertRaises(ValueError):
            _deserialize("[1, 2]")

    def test_lot_id_from_filename(self):
        self.assertEqual(lot_id_from_filename(Path("4821.jpg")), "4821")
        self.assertEqual(lot_id_from_filename(Path("4821-3.png")), "4821")
        self.assertIsNone(lot_id_from_filename(Path("cover.jpg")))
        self.assertIsNone(lot_id_from_filename(Path("12-a.jpg")))


class TestImageIndexLoadPersist(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.mkdtemp()
        self.root = Path(self.tmp) / "out"
        self.root.mkdir()
        self.index_path = self.root / ".image_index.json"

    def tearDown(self):
        shutil.rmtree(self.tmp, ignore_errors=True)

    def test_load_missing_returns_false(self):
        """索引文件不存在时返回 False"""
        index = ImageIndex(self.index_path, self.root)
        self.assertFalse(index.load())
        self.assertEqual(len(index), 0)

    def test_persist_then_load(self):
        """写入后可重新加载"""
        index = ImageIndex(self.index_path, self.root)
        self.assertTrue(index.add(_entry()))
        index.persist()
        self.assertFalse(index.dirty)

        reloaded = ImageIndex(self.index_path, self.root)
        self.assertTrue(reloaded.load())
        self.assertIn("a" * 64, reloaded)
        self.assertEqual(reloaded.get("a" * 64).source_url, "https://x.com/1.jpg")

    def test_persist_leaves_no_temp_file(self):
        index = ImageIndex(self.index_path, self.root)
        index.add(_entry())
        index.persist()
        self.assertEqual([p.name for p in self.root.iterdir()], [".image_index.json"])

    def test_corrupt_json_returns_false_and_empty(self):
        """JSON 损坏时视为空索引"""
        self.index_path.write_text("{not json", encoding="utf-8")
        index = ImageIndex(self.index_path, self.root)
        self.assertFalse(index.load())
        self.assertEqual(len(index), 0)

    def test_schema_mismatch_returns_false(self):
        """记录缺少字段时视为损坏"""
        self.index_path.write_text(json.dumps({"a" * 64: {"file_path": "x"}}), encoding="utf-8")
        index = ImageIndex(self.index_path, self.root)
        self.assertFalse(index.load())

    def test_bad_digest_key_returns_false(self):
        record = json.loads(_serialize({"a" * 64: _entry()}))["a" * 64]
        self.index_path.write_text(json.dumps({"not-a-hash": record}), encoding="utf-8")
        index = ImageIndex(self.index_path, self.root)
        self.assertFalse(index.load())

    def test_add_existing_hash_is_rejected(self):
        """同一哈希只保留第一条记录"""
        index = ImageIndex(self.index_path, self.root)
        self.assertTrue(index.add(_entry(path="/tmp/first.jpg")))
        self.assertFalse(index.add(_entry(path="/tmp/second.jpg")))
        self.assertEqual(len(index), 1)
        self.assertEqual(index.get("a" * 64).file_path, "/tmp/first.jpg")


class TestImageIndexRebuild(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.mkdtemp()
        self.root = Path(self.tmp) / "out"
        self.root.mkdir()
        self.index_path = self.root / ".image_index.json"
        self.logs = self.root / "logs"

    def tearDown(self):
        shutil.rmtree(self.tmp, ignore_errors=True)

    def test_rebuild_empty_directory(self):
        index = ImageIndex(self.index_path, self.root)
        self.assertFalse(index.load())
        stats = index.rebuild()
        self.assertEqual(stats["entries"], 0)
        self.assertEqual(len(index), 0)

    def test_rebuild_counts_valid_images_and_paths_exist(self):
        """重建：只统计图片文件，跳过排除目录"""
        _write_image(self.root / "100.jpg", "red")
        _write_image(self.root / "100-2.png", "green")
        _write_image(self.root / "nested" / "200.jpg", "blue")
        (self.root / "notes.txt").write_text("not an image", encoding="utf-8")
        _write_image(self.logs / "300.jpg", "yellow")
        self.index_path.write_text("{}", encoding="utf-8")

        index = ImageIndex(self.index_path, self.root, excluded_dirs=[self.logs])
        index.rebuild()

        self.assertEqual(len(index), 3)
        for entry in index:
            self.assertTrue(Path(entry.file_path).exists())
        self.assertEqual(sorted(entry.lot_id for entry in index), ["100", "100", "200"])

    def test_rebuild_keeps_one_entry_per_content(self):
        """重建：相同内容只保留一条"""
        _write_image(self.root / "1.jpg", "red")
        shutil.copy(self.root / "1.jpg", self.root / "2.jpg")

        index = ImageIndex(self.index_path, self.root)
        stats = index.rebuild()

        self.assertEqual(stats["files_scanned"], 2)
        self.assertEqual(stats["duplicates"], 1)
        self.assertEqual(len(index), 1)
        digest = hash_file(self.root / "1.jpg")
        self.assertTrue(index.get(digest).file_path.endswith("1.jpg"))

    def test_rebuild_marks_dirty_and_persists(self):
        _write_image(self.root / "7.jpg")
        index = ImageIndex(self.index_path, self.root)
        index.rebuild()
        self.assertTrue(index.dirty)
        index.persist()

        reloaded = ImageIndex(self.index_path, self.root)
        self.assertTrue(reloaded.load())
        self.assertEqual(len(reloaded), 1)

    def test_get_statistics(self):
        _write_image(self.root / "7.jpg", "red")
        _write_image(self.root / "8.jpg", "blue")
        index = ImageIndex(self.index_path, self.root)
        index.rebuild()
        stats = index.get_statistics()
        self.assertEqual(stats["entries"], 2)
        self.assertEqual(stats["lots"], 2)
        self.assertGreater(stats["total_bytes"], 0)
