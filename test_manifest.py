from __future__ import annotations

import json
import struct
import tempfile
import unittest
from pathlib import Path

from pharkit.constants import COMPRESSION_BZ2, COMPRESSION_GZ
from pharkit.errors import FileError, MetadataError, OffsetNotFoundError
from pharkit.fileio import FileReader
from pharkit.manifest import Manifest

from phar_fixture import TIMESTAMP, FixtureEntry, build_phar, sample_entries, stub_of_length


class ManifestTests(unittest.TestCase):
    def run_with_tmpdir(self, func):
        with tempfile.TemporaryDirectory() as tmp:
            func(Path(tmp))

    def _write_sample(self, tmp_path: Path, **kwargs) -> Path:
        p = tmp_path / "example.phar"
        kwargs.setdefault("stub", stub_of_length(94))
        kwargs.setdefault("metadata", b'a:1:{s:3:"who";s:10:"It was me!";}')
        p.write_bytes(build_phar(sample_entries(), **kwargs))
        return p

    def test_header_fields(self):
        def scenario(tmp_path: Path):
            p = self._write_sample(tmp_path)
            with FileReader(str(p)) as r:
                m = Manifest(r)
                self.assertEqual(m.offset, 94)
                self.assertEqual(m.alias(), "test.phar")
                self.assertEqual(m.alias_size(), 9)
                self.assertEqual(m.api_version(), "1.1.0")
                self.assertEqual(m.entry_count(), 3)
                self.assertEqual(m.global_flags(), 0)
                self.assertEqual(m.metadata_size(), 34)
                self.assertTrue(m.has_metadata())
                self.assertEqual(m.metadata(), b'a:1:{s:3:"who";s:10:"It was me!";}')
                # Header accessors can be called in any order and repeatedly
                self.assertEqual(m.alias(), "test.phar")
                self.assertEqual(m.size(), m.size())

        self.run_with_tmpdir(scenario)

    def test_no_alias_no_metadata(self):
        def scenario(tmp_path: Path):
            p = tmp_path / "no-alias.phar"
            p.write_bytes(build_phar([], alias=b"", metadata=b""))
            with FileReader(str(p)) as r:
                m = Manifest(r)
                self.assertIsNone(m.alias())
                self.assertEqual(m.alias_size(), 0)
                self.assertEqual(m.entry_count(), 0)
                self.assertIsNone(m.metadata())
                self.assertFalse(m.has_metadata())
                self.assertEqual(m.entries(), [])

        self.run_with_tmpdir(scenario)

    def test_global_flags_are_masked(self):
        def scenario(tmp_path: Path):
            p = self._write_sample(tmp_path, global_flags=0x0001_0000 | COMPRESSION_GZ | 0x1)
            with FileReader(str(p)) as r:
                self.assertEqual(Manifest(r).global_flags(), COMPRESSION_GZ)

        self.run_with_tmpdir(scenario)

    def test_entries(self):
        def scenario(tmp_path: Path):
            p = self._write_sample(tmp_path)
            with FileReader(str(p)) as r:
                m = Manifest(r)
                entries = m.entries()
                self.assertEqual([e.name for e in entries], ["bin/main", "src/Put.php", "docs/"])
                first, second, third = entries
                self.assertEqual(first.data_offset, m.offset + m.size() + 4)
                self.assertEqual(first.data_offset, m.data_offset())
                self.assertEqual(second.data_offset, first.data_offset + first.compressed_size)
                self.assertEqual(third.data_offset, second.data_offset + second.compressed_size)
                self.assertEqual(first.name_size, 8)
                self.assertEqual(first.timestamp, TIMESTAMP)
                self.assertEqual(first.size, first.uncompressed_size)
                self.assertEqual(first.flags, 0)
                self.assertFalse(first.has_metadata())
                self.assertIsNone(first.metadata)
                self.assertTrue(second.has_metadata())
                self.assertEqual(second.metadata_size, 30)
                self.assertEqual(second.metadata, b'a:1:{s:4:"rand";i:1317613458;}')
                self.assertFalse(first.is_directory())
                self.assertTrue(third.is_directory())
                # The payload region ends exactly at end of file
                self.assertEqual(third.data_offset + third.compressed_size, r.size())

        self.run_with_tmpdir(scenario)

    def test_payload_region_follows_records(self):
        def scenario(tmp_path: Path):
            entries = [
                FixtureEntry(b"a.txt", b"alpha" * 10, flags=COMPRESSION_GZ),
                FixtureEntry(b"b.txt", b"beta" * 10, flags=COMPRESSION_BZ2),
                FixtureEntry(b"c.txt", b"gamma"),
            ]
            p = tmp_path / "mixed.phar"
            p.write_bytes(build_phar(entries))
            with FileReader(str(p)) as r:
                m = Manifest(r)
                listed = m.entries()
                expected = m.data_offset()
                for e in listed:
                    self.assertEqual(e.data_offset, expected)
                    expected += e.compressed_size
                self.assertEqual([e.flags for e in listed], [COMPRESSION_GZ, COMPRESSION_BZ2, 0])

        self.run_with_tmpdir(scenario)

    def test_entry_flags_are_masked(self):
        def scenario(tmp_path: Path):
            p = tmp_path / "flags.phar"
            p.write_bytes(build_phar([FixtureEntry(b"x", b"x", recorded_flags=0x1B6 | COMPRESSION_BZ2 | 0x10000)]))
            with FileReader(str(p)) as r:
                (e,) = Manifest(r).entries()
                self.assertEqual(e.flags, COMPRESSION_BZ2)
                self.assertTrue(e.is_compressed(COMPRESSION_BZ2))
                self.assertFalse(e.is_compressed(COMPRESSION_GZ))

        self.run_with_tmpdir(scenario)

    def test_backslash_names_are_normalized(self):
        def scenario(tmp_path: Path):
            p = tmp_path / "win.phar"
            p.write_bytes(
                build_phar(
                    [
                        FixtureEntry(b"src\\Lib\\Util.php", b"<?php"),
                        FixtureEntry(b"assets\\img\\", b""),
                        FixtureEntry(b"a//b.txt", b"b"),
                    ]
                )
            )
            with FileReader(str(p)) as r:
                entries = Manifest(r).entries()
            self.assertEqual([e.name for e in entries], ["src/Lib/Util.php", "assets/img/", "a/b.txt"])
            self.assertTrue(entries[1].is_directory())
            self.assertEqual(entries[0].name_size, len(b"src\\Lib\\Util.php"))

        self.run_with_tmpdir(scenario)

    def test_explicit_offset(self):
        def scenario(tmp_path: Path):
            p = self._write_sample(tmp_path)
            with FileReader(str(p)) as r:
                m = Manifest(r, 94)
                self.assertEqual(m.offset, 94)
                self.assertEqual(m.alias(), "test.phar")
                self.assertEqual(Manifest(r, 1234).offset, 1234)

        self.run_with_tmpdir(scenario)

    def test_offset_not_found(self):
        def scenario(tmp_path: Path):
            p = tmp_path / "plain.txt"
            p.write_text("not an archive")
            with FileReader(str(p)) as r:
                with self.assertRaisesRegex(OffsetNotFoundError, "manifest offset could not be found"):
                    Manifest(r)

        self.run_with_tmpdir(scenario)

    def test_truncated_manifest(self):
        def scenario(tmp_path: Path):
            full = build_phar(sample_entries())
            p = tmp_path / "short.phar"
            # Cut inside the first entry name
            p.write_bytes(full[:70])
            with FileReader(str(p)) as r:
                m = Manifest(r)
                with self.assertRaises(FileError) as ctx:
                    m.entries()
                self.assertEqual(ctx.exception.path, str(p))
                self.assertIsNotNone(ctx.exception.expected)

        self.run_with_tmpdir(scenario)

    def test_entry_count_past_eof(self):
        def scenario(tmp_path: Path):
            data = bytearray(build_phar([FixtureEntry(b"one", b"1")]))
            offset = 29
            struct.pack_into("<I", data, offset + 4, 5)
            p = tmp_path / "count.phar"
            p.write_bytes(bytes(data))
            with FileReader(str(p)) as r:
                with self.assertRaises(FileError):
                    Manifest(r).entries()

        self.run_with_tmpdir(scenario)

    def test_metadata_deserializer(self):
        def scenario(tmp_path: Path):
            p = tmp_path / "json.phar"
            p.write_bytes(
                build_phar(
                    [FixtureEntry(b"a", b"a", metadata=b'{"rand": 7}')],
                    metadata=b'{"who": "It was me!"}',
                )
            )
            with FileReader(str(p)) as r:
                m = Manifest(r, deserializer=json.loads)
                self.assertEqual(m.metadata(), {"who": "It was me!"})
                (e,) = m.entries()
                self.assertEqual(m.entry_metadata(e), {"rand": 7})

            bad = tmp_path / "bad.phar"
            bad.write_bytes(build_phar([], metadata=b"{not json"))
            with FileReader(str(bad)) as r:
                m = Manifest(r, deserializer=json.loads)
                with self.assertRaisesRegex(MetadataError, "invalid metadata"):
                    m.metadata()

        self.run_with_tmpdir(scenario)

    def test_any_deserializer_failure_is_metadata_error(self):
        class BlobError(Exception):
            pass

        def strict(data: bytes):
            raise BlobError("truncated blob")

        def scenario(tmp_path: Path):
            p = tmp_path / "blob.phar"
            p.write_bytes(build_phar([FixtureEntry(b"a", b"a", metadata=b"garbage")], metadata=b"garbage"))
            with FileReader(str(p)) as r:
                m = Manifest(r, deserializer=strict)
                with self.assertRaisesRegex(MetadataError, "invalid metadata") as ctx:
                    m.metadata()
                self.assertIsInstance(ctx.exception.__cause__, BlobError)
                (e,) = m.entries()
                with self.assertRaises(MetadataError):
                    m.entry_metadata(e)

        self.run_with_tmpdir(scenario)

    def test_iteration_tolerates_interleaved_seeks(self):
        def scenario(tmp_path: Path):
            p = self._write_sample(tmp_path)
            with FileReader(str(p)) as r:
                m = Manifest(r)
                names = []
                for e in m.iter_entries():
                    names.append(e.name)
                    r.seek(e.data_offset)
                    r.read(e.compressed_size)
                self.assertEqual(names, ["bin/main", "src/Put.php", "docs/"])

        self.run_with_tmpdir(scenario)


if __name__ == "__main__":
    unittest.main()
