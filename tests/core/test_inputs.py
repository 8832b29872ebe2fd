"""
CSV 输入读取单元测试
"""
import unittest
import tempfile
import shutil
from pathlib import Path

from core.inputs import InputError, detect_url_column, read_urls


class TestDetectUrlColumn(unittest.TestCase):
    def test_named_column(self):
        self.assertEqual(detect_url_column(["Title", " URL ", "Price"]), 1)
        self.assertEqual(detect_url_column(["lot", "Lot Link"]), 1)

    def test_defaults_to_first_column(self):
        self.assertEqual(detect_url_column(["address", "title"]), 0)


class TestReadUrls(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.mkdtemp()
        self.csv_path = Path(self.tmp) / "lots.csv"

    def tearDown(self):
        shutil.rmtree(self.tmp, ignore_errors=True)

    def _write(self, text, encoding="utf-8"):
        self.csv_path.write_text(text, encoding=encoding)

    def test_reads_detected_column_and_skips_blank_rows(self):
        """自动识别URL列并跳过空行"""
        self._write("title,url\nChair,https://a.com/lot/1\n,\nTable, https://a.com/lot/2 \n")
        self.assertEqual(read_urls(self.csv_path), ["https://a.com/lot/1", "https://a.com/lot/2"])

    def test_byte_order_mark_is_ignored(self):
        """忽略 UTF-8 BOM"""
        self._write("url\nhttps://a.com/lot/1\n", encoding="utf-8-sig")
        self.assertEqual(read_urls(self.csv_path), ["https://a.com/lot/1"])

    def test_explicit_column(self):
        self._write("page,backup\nhttps://a.com/1,https://b.com/1\n")
        self.assertEqual(read_urls(self.csv_path, column="Backup"), ["https://b.com/1"])

    def test_missing_column_raises(self):
        """指定列不存在时报错"""
        self._write("page\nhttps://a.com/1\n")
        with self.assertRaises(InputError):
            read_urls(self.csv_path, column="url")

    def test_missing_file_raises(self):
        with self.assertRaises(InputError):
            read_urls(Path(self.tmp) / "nope.csv")

    def test_empty_file_raises(self):
        self._write("")
        with self.assertRaises(InputError):
            read_urls(self.csv_path)

    def test_header_only_raises(self):
        """只有表头时报错"""
        self._write("url\n")
        with self.assertRaises(InputError):
            read_urls(self.csv_path)
