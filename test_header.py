from __future__ import annotations

import json
import struct
import unittest

from asar import header, pickle
from asar.errors import (
    BadLinkError,
    FileTooLargeError,
    HeaderSchemaError,
    InvalidHeaderError,
    InvalidHeaderSizeError,
    ParseIntError,
    RelativePathError,
    Status,
    UnknownOffsetError,
)
from asar.node import DirectoryNode, FileNode, LinkNode


def _archive(document, data: bytes = b"") -> bytes:
    text = document if isinstance(document, str) else json.dumps(document)
    hdr = pickle.pack_string(text)
    return pickle.pack_size(len(hdr)) + hdr + data


class FramingTests(unittest.TestCase):
    def test_header_pickle_layout(self):
        hdr = pickle.pack_string("hello")
        # payload size, string length, 5 bytes of text and 3 of padding
        self.assertEqual(hdr, struct.pack("<Ii", 12, 5) + b"hello\x00\x00\x00")
        self.assertEqual(pickle.pack_size(len(hdr)), struct.pack("<II", 4, 16))

    def test_align_int(self):
        self.assertEqual([pickle.align_int(i) for i in range(6)], [0, 4, 4, 4, 4, 8])

    def test_header_longer_than_buffer(self):
        buf = _archive({"files": {}})
        truncated = buf[:-2]
        with self.assertRaises(InvalidHeaderSizeError) as ctx:
            header.decode(truncated)
        self.assertEqual(ctx.exception.status, Status.INVALID_HEADER_SIZE)

    def test_short_buffer(self):
        for buf in (b"", b"\x04\x00\x00", struct.pack("<I", 4)):
            with self.assertRaises(InvalidHeaderSizeError):
                header.decode(buf)

    def test_bad_size_payload(self):
        buf = bytearray(_archive({"files": {}}))
        buf[0] = 8
        with self.assertRaises(InvalidHeaderSizeError):
            header.decode(bytes(buf))

    def test_unaligned_header_size(self):
        buf = struct.pack("<II", 4, 13) + b"\x00" * 16
        with self.assertRaises(InvalidHeaderSizeError):
            header.decode(buf)

    def test_string_length_out_of_range(self):
        hdr = struct.pack("<Ii", 12, 100) + b"{}\x00\x00\x00\x00\x00\x00"
        with self.assertRaises(InvalidHeaderError):
            header.decode(pickle.pack_size(len(hdr)) + hdr)

    def test_negative_string_length(self):
        hdr = struct.pack("<Ii", 12, -1) + b"\x00" * 8
        with self.assertRaises(InvalidHeaderError):
            header.decode(pickle.pack_size(len(hdr)) + hdr)

    def test_invalid_utf8(self):
        hdr = struct.pack("<Ii", 8, 2) + b"\xff\xfe\x00\x00"
        with self.assertRaises(InvalidHeaderError):
            header.decode(pickle.pack_size(len(hdr)) + hdr)


class DecodeTests(unittest.TestCase):
    def test_minimal_root(self):
        raw = header.decode(_archive({"files": {}}))
        self.assertIsInstance(raw.root, DirectoryNode)
        self.assertEqual(raw.root.files, {})
        self.assertEqual(raw.data_offset, 8 + raw.header_size)

    def test_nodes(self):
        doc = {
            "files": {
                "a.txt": {"size": 5, "offset": "0", "executable": True},
                "b": {"files": {"c.txt": {"size": 5, "offset": "5"}}},
                "d": {"size": 3, "unpacked": True},
                "l": {"link": "b/c.txt"},
            }
        }
        raw = header.decode(_archive(doc, b"helloworld"))
        files = raw.root.files
        self.assertEqual(files["a.txt"], FileNode(size=5, offset=0, executable=True))
        self.assertEqual(files["b"].files["c.txt"].offset, 5)
        self.assertTrue(files["d"].unpacked)
        self.assertIsNone(files["d"].offset)
        self.assertEqual(files["l"], LinkNode(link="b/c.txt"))

    def test_integer_offset_accepted(self):
        raw = header.decode(_archive({"files": {"a": {"size": 1, "offset": 0}}}, b"x"))
        self.assertEqual(raw.root.files["a"].offset, 0)

    def test_offset_leading_zeros(self):
        raw = header.decode(_archive({"files": {"a": {"size": 1, "offset": "0" * 20 + "1"}}}, b"xy"))
        self.assertEqual(raw.root.files["a"].offset, 1)

    def test_malformed_json(self):
        with self.assertRaises(InvalidHeaderError) as ctx:
            header.decode(_archive('{"files": {'))
        self.assertEqual(ctx.exception.status, Status.INVALID_HEADER)

    def test_duplicate_keys(self):
        with self.assertRaises(InvalidHeaderError):
            header.decode(_archive('{"files":{"a":{"size":0,"offset":"0"},"a":{"files":{}}}}'))

    def test_unrecognized_node_kind(self):
        with self.assertRaises(HeaderSchemaError) as ctx:
            header.decode(_archive({"files": {"x": {"mystery": 1}}}))
        self.assertEqual(ctx.exception.status, Status.JSON)

    def test_root_must_be_directory(self):
        for doc in ({"size": 0, "offset": "0"}, [], {"link": "a"}):
            with self.assertRaises(HeaderSchemaError):
                header.decode(_archive(doc))

    def test_wrong_field_types(self):
        bad = [
            {"files": {"a": {"size": "5", "offset": "0"}}},
            {"files": {"a": {"size": -1, "offset": "0"}}},
            {"files": {"a": {"size": 0, "offset": "0", "executable": "yes"}}},
            {"files": {"a": {"files": []}}},
            {"files": {"a": {"link": 3}}},
            {"files": {"a": {"size": 0, "offset": True}}},
        ]
        for doc in bad:
            with self.subTest(doc=doc), self.assertRaises(HeaderSchemaError):
                header.decode(_archive(doc))

    def test_offset_not_an_integer(self):
        for offset in ("12a", "-1", " 1", "1\n", "0x10", "", "9" * 5000, "1" * 17):
            with self.subTest(offset=offset), self.assertRaises(ParseIntError) as ctx:
                header.decode(_archive({"files": {"a": {"size": 0, "offset": offset}}}))
            self.assertEqual(ctx.exception.status, Status.PARSE_INT)

    def test_missing_offset(self):
        with self.assertRaises(UnknownOffsetError):
            header.decode(_archive({"files": {"a": {"size": 1}}}, b"x"))

    def test_extent_outside_data_section(self):
        with self.assertRaises(UnknownOffsetError) as ctx:
            header.decode(_archive({"files": {"a": {"size": 4, "offset": "2"}}}, b"abcd"))
        self.assertEqual(ctx.exception.status, Status.UNKNOWN_OFFSET)

    def test_unpacked_extent_not_checked(self):
        raw = header.decode(_archive({"files": {"a": {"size": 10 ** 9, "unpacked": True}}}))
        self.assertEqual(raw.root.files["a"].size, 10 ** 9)

    def test_size_beyond_safe_integer(self):
        doc = '{"files":{"a":{"size":9007199254740993,"unpacked":true}}}'
        with self.assertRaises(FileTooLargeError):
            header.decode(_archive(doc))

    def test_bad_child_names(self):
        for name in ("", ".", "..", "a/b", "a\\b", "x\x00"):
            with self.subTest(name=name), self.assertRaises(RelativePathError):
                header.decode(_archive({"files": {name: {"files": {}}}}))

    def test_escaping_links(self):
        for target in ("../../x", "/etc/passwd", "C:/x", "", "a/../../x", "d/../a"):
            doc = {"files": {"d": {"files": {"l": {"link": target}}}, "a": {"files": {}}}}
            with self.subTest(target=target), self.assertRaises(BadLinkError) as ctx:
                header.decode(_archive(doc))
            self.assertEqual(ctx.exception.status, Status.BAD_LINK)

    def test_link_relative_to_its_directory(self):
        doc = {"files": {"d": {"files": {"l": {"link": "../a"}}}, "a": {"files": {}}}}
        raw = header.decode(_archive(doc))
        self.assertEqual(raw.root.files["d"].files["l"].link, "../a")

    def test_integrity_decoded(self):
        integ = {"algorithm": "SHA256", "hash": "ab", "blockSize": 4194304, "blocks": ["ab"]}
        raw = header.decode(_archive({"files": {"a": {"size": 0, "offset": "0", "integrity": integ}}}))
        node = raw.root.files["a"]
        self.assertEqual(node.integrity.block_size, 4194304)
        self.assertEqual(node.integrity.blocks, ["ab"])

    def test_unsupported_integrity_algorithm(self):
        integ = {"algorithm": "MD5", "hash": "ab", "blockSize": 4, "blocks": []}
        with self.assertRaises(HeaderSchemaError):
            header.decode(_archive({"files": {"a": {"size": 0, "offset": "0", "integrity": integ}}}))


class EncodeTests(unittest.TestCase):
    def _tree(self) -> DirectoryNode:
        root = DirectoryNode()
        sub = DirectoryNode(unpacked=True)
        sub.files["z"] = FileNode(size=2, unpacked=True)
        root.files["b"] = sub
        root.files["a"] = FileNode(size=3, offset=0, executable=True)
        root.files["l"] = LinkNode(link="a")
        return root

    def test_compact_sorted_json(self):
        text = header.encode_json(self._tree())
        self.assertEqual(
            text,
            '{"files":{"a":{"size":3,"offset":"0","executable":true},'
            '"b":{"unpacked":true,"files":{"z":{"size":2,"unpacked":true}}},'
            '"l":{"link":"a"}}}',
        )

    def test_deterministic(self):
        self.assertEqual(header.encode(self._tree()), header.encode(self._tree()))

    def test_decode_of_encoded_tree(self):
        buf = header.encode(self._tree()) + b"abc"
        raw = header.decode(buf)
        self.assertEqual(raw.root, self._tree())
        self.assertEqual(buf[raw.data_offset :], b"abc")

    def test_non_ascii_names_kept_verbatim(self):
        root = DirectoryNode(files={"héllo": FileNode(size=0, offset=0)})
        self.assertIn("héllo", header.encode_json(root))
        self.assertEqual(header.decode(header.encode(root)).root, root)


if __name__ == "__main__":
    unittest.main()
