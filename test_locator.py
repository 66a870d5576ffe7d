from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from pharkit.fileio import FileReader
from pharkit.locator import find_offset

from phar_fixture import build_phar, sample_entries, stub_of_length


class OffsetLocatorTests(unittest.TestCase):
    def run_with_tmpdir(self, func):
        with tempfile.TemporaryDirectory() as tmp:
            func(Path(tmp))

    def _offset_of(self, path: Path):
        with FileReader(str(path)) as r:
            return find_offset(r)

    def test_custom_stub_offset(self):
        def scenario(tmp_path: Path):
            p = tmp_path / "example.phar"
            p.write_bytes(build_phar(sample_entries(), stub=stub_of_length(94)))
            self.assertEqual(self._offset_of(p), 94)

        self.run_with_tmpdir(scenario)

    def test_large_stub_offset(self):
        def scenario(tmp_path: Path):
            p = tmp_path / "default.phar"
            p.write_bytes(build_phar(sample_entries(), stub=stub_of_length(6683)))
            self.assertEqual(self._offset_of(p), 6683)

        self.run_with_tmpdir(scenario)

    def test_missing_terminator(self):
        def scenario(tmp_path: Path):
            p = tmp_path / "plain.txt"
            p.write_text("<?php echo 'no archive here';\n")
            self.assertIsNone(self._offset_of(p))
            empty = tmp_path / "empty.bin"
            empty.write_bytes(b"")
            self.assertIsNone(self._offset_of(empty))

        self.run_with_tmpdir(scenario)

    def test_case_insensitive_and_without_crlf(self):
        def scenario(tmp_path: Path):
            p = tmp_path / "lower.phar"
            p.write_bytes(b"<?php __halt_compiler(); ?>" + b"\x00" * 8)
            self.assertEqual(self._offset_of(p), 27)
            mixed = tmp_path / "mixed.phar"
            mixed.write_bytes(b"<?php __Halt_Compiler(); ?>\n" + b"\x00" * 8)
            # A lone LF is not part of the stub
            self.assertEqual(self._offset_of(mixed), 27)

        self.run_with_tmpdir(scenario)

    def test_final_byte_is_skipped_unchecked(self):
        def scenario(tmp_path: Path):
            p = tmp_path / "odd.phar"
            p.write_bytes(b"__HALT_COMPILER(); ?X\r\nrest")
            self.assertEqual(self._offset_of(p), 23)

        self.run_with_tmpdir(scenario)

    def test_overlapping_prefix_is_not_recovered(self):
        def scenario(tmp_path: Path):
            p = tmp_path / "quirk.phar"
            # The third underscore resets the counter and is not re-tested
            p.write_bytes(b"___HALT_COMPILER(); ?>\r\n")
            self.assertIsNone(self._offset_of(p))
            # A later clean occurrence is still found
            p.write_bytes(b"___HALT_COMPILER(); __HALT_COMPILER(); ?>\r\n")
            self.assertEqual(self._offset_of(p), 43)

        self.run_with_tmpdir(scenario)

    def test_match_across_read_chunks(self):
        def scenario(tmp_path: Path):
            p = tmp_path / "boundary.phar"
            # Terminator straddles the 8 KiB scan window
            p.write_bytes(stub_of_length(8192 + 10))
            self.assertEqual(self._offset_of(p), 8192 + 10)

        self.run_with_tmpdir(scenario)


if __name__ == "__main__":
    unittest.main()
