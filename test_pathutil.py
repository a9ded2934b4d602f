from __future__ import annotations

import unittest

from asar.constants import MAX_LINK_DEPTH
from asar.errors import (
    BadLinkError,
    ExpectDirNodeError,
    ExpectFileNodeError,
    InvalidArgError,
    NoSuchEntryError,
    RelativePathError,
)
from asar.node import DirectoryNode, FileNode, LinkNode
from asar.pathutil import norm_path, resolve, resolve_file, resolve_link_target, resolve_with_path
from asar.tree import depth_first, list_paths, lookup


def _sample_tree() -> DirectoryNode:
    # a.txt, b/c.txt, b/d/e.txt, links at various levels
    d = DirectoryNode(files={"e.txt": FileNode(size=1, offset=10)})
    b = DirectoryNode(
        files={
            "c.txt": FileNode(size=5, offset=5),
            "d": d,
            "up": LinkNode(link="../a.txt"),
            "here": LinkNode(link="."),
        }
    )
    return DirectoryNode(
        files={
            "a.txt": FileNode(size=5, offset=0),
            "b": b,
            "lb": LinkNode(link="b"),
            "lc": LinkNode(link="b/c.txt"),
            "dangling": LinkNode(link="nowhere"),
        }
    )


class NormPathTests(unittest.TestCase):
    def test_normalization(self):
        self.assertEqual(norm_path("a/b"), ("a", "b"))
        self.assertEqual(norm_path("./a//b/"), ("a", "b"))
        self.assertEqual(norm_path("a\\b"), ("a", "b"))

    def test_rejections(self):
        for spec in ("", ".", "/", "/a", "../a", "a/../b", "C:/a", "\\\\server\\share", "a\x00b"):
            with self.subTest(spec=spec), self.assertRaises(RelativePathError):
                norm_path(spec)

    def test_invalid_argument(self):
        for spec in (None, 5, b"a"):
            with self.subTest(spec=spec), self.assertRaises(InvalidArgError):
                norm_path(spec)


class LinkTargetTests(unittest.TestCase):
    def test_relative_to_parent(self):
        self.assertEqual(resolve_link_target(("b",), "../a.txt", "b/up"), ("a.txt",))
        self.assertEqual(resolve_link_target(("b",), "d/e.txt", "b/l"), ("b", "d", "e.txt"))
        self.assertEqual(resolve_link_target((), ".", "l"), ())

    def test_escape(self):
        with self.assertRaises(BadLinkError):
            resolve_link_target(("b",), "../../x", "b/l")

    def test_dotdot_after_name(self):
        with self.assertRaises(BadLinkError):
            resolve_link_target((), "b/../a.txt", "l")


class ResolveTests(unittest.TestCase):
    def setUp(self):
        self.root = _sample_tree()

    def test_plain_paths(self):
        self.assertEqual(resolve(self.root, "a.txt").offset, 0)
        self.assertEqual(resolve(self.root, "b/d/e.txt").offset, 10)
        self.assertIsInstance(resolve(self.root, "b"), DirectoryNode)

    def test_missing(self):
        with self.assertRaises(NoSuchEntryError):
            resolve(self.root, "b/zzz")

    def test_file_mid_path(self):
        with self.assertRaises(ExpectDirNodeError):
            resolve(self.root, "a.txt/x")

    def test_links_followed_mid_path(self):
        self.assertEqual(resolve(self.root, "lb/c.txt").offset, 5)
        self.assertEqual(resolve(self.root, "lb/d/e.txt").offset, 10)
        self.assertEqual(resolve(self.root, "b/here/c.txt").offset, 5)

    def test_final_link(self):
        self.assertEqual(resolve(self.root, "lc").offset, 5)
        self.assertEqual(resolve(self.root, "b/up").offset, 0)
        self.assertEqual(resolve(self.root, "lc", follow_links=False), LinkNode(link="b/c.txt"))

    def test_real_path(self):
        node, real = resolve_with_path(self.root, "lb/d/e.txt")
        self.assertEqual(real, "b/d/e.txt")
        self.assertEqual(node.offset, 10)

    def test_dangling_link(self):
        with self.assertRaises(NoSuchEntryError):
            resolve(self.root, "dangling")
        with self.assertRaises(ExpectDirNodeError):
            resolve(self.root, "dangling/x")
        self.assertIsInstance(resolve(self.root, "dangling", follow_links=False), LinkNode)

    def test_link_to_file_mid_path(self):
        with self.assertRaises(ExpectDirNodeError):
            resolve(self.root, "lc/x")

    def test_resolve_file(self):
        self.assertEqual(resolve_file(self.root, "lc").size, 5)
        with self.assertRaises(ExpectFileNodeError):
            resolve_file(self.root, "b")
        with self.assertRaises(ExpectFileNodeError):
            resolve_file(self.root, "lb")

    def test_unsafe_specs(self):
        for spec in ("../a.txt", "/a.txt", "b/../../a.txt"):
            with self.subTest(spec=spec), self.assertRaises(RelativePathError):
                resolve(self.root, spec)

    def test_cycle(self):
        root = DirectoryNode(files={"x": LinkNode(link="y"), "y": LinkNode(link="x")})
        with self.assertRaises(BadLinkError):
            resolve(root, "x")
        self.assertIsInstance(resolve(root, "x", follow_links=False), LinkNode)

    def test_self_cycle_mid_path(self):
        root = DirectoryNode(files={"s": LinkNode(link="s")})
        with self.assertRaises(BadLinkError):
            resolve(root, "s/a")

    def test_long_chain_within_guard(self):
        files = {"target": FileNode(size=0, offset=0)}
        files["l0"] = LinkNode(link="target")
        for i in range(1, MAX_LINK_DEPTH - 1):
            files[f"l{i}"] = LinkNode(link=f"l{i - 1}")
        root = DirectoryNode(files=files)
        self.assertIsInstance(resolve(root, f"l{MAX_LINK_DEPTH - 2}"), FileNode)

    def test_doubling_chain_bounded(self):
        # each link names the next one twice, so nesting stays shallow while
        # the number of links to follow doubles at every level
        count = 40
        files = {"f": FileNode(size=0, offset=0), f"x{count}": LinkNode(link=".")}
        for i in range(count):
            files[f"x{i}"] = LinkNode(link=f"x{i + 1}/x{i + 1}")
        root = DirectoryNode(files=files)
        with self.assertRaises(BadLinkError):
            resolve(root, "x0/f")
        self.assertIsInstance(resolve(root, f"x{count - 1}/f"), FileNode)

    def test_lookup_delegates(self):
        self.assertIs(lookup(self.root, "b/c.txt"), self.root.files["b"].files["c.txt"])


class TraversalTests(unittest.TestCase):
    def test_depth_first_order(self):
        paths = [p for p, _n in depth_first(_sample_tree())]
        self.assertEqual(
            paths,
            [
                "a.txt",
                "b",
                "b/c.txt",
                "b/d",
                "b/d/e.txt",
                "b/here",
                "b/up",
                "dangling",
                "lb",
                "lc",
            ],
        )

    def test_fresh_generator_each_call(self):
        root = _sample_tree()
        first = depth_first(root)
        list(first)
        self.assertEqual(list(first), [])
        self.assertEqual(len(list(depth_first(root))), 10)

    def test_list_paths_repeatable(self):
        root = _sample_tree()
        self.assertEqual(list_paths(root), list_paths(root))

    def test_list_paths_pack_state(self):
        root = DirectoryNode(
            files={
                "a": FileNode(size=1, offset=0),
                "u": DirectoryNode(unpacked=True, files={"f": FileNode(size=1, unpacked=True)}),
            }
        )
        self.assertEqual(
            list_paths(root, is_pack=True),
            ["pack   : a", "unpack : u", "unpack : u/f"],
        )

    def test_empty_root(self):
        self.assertEqual(list_paths(DirectoryNode()), [])


if __name__ == "__main__":
    unittest.main()
