"""Tests for DocumentTree lookup, consistency checks and the JSON wire format."""

from __future__ import annotations

import json

import pytest

from blocvibe.core.errors import PayloadError
from blocvibe.core.node import Node
from blocvibe.core.tree import DocumentTree, index_of, is_root_target

# ---------------------------------------------------------------------------
# Lookup
# ---------------------------------------------------------------------------


class TestLookup:
    def test_find_by_id_at_any_depth(self, tree: DocumentTree) -> None:
        assert tree.find_by_id("B").tag == "h2"
        assert tree.find_by_id("C1a").text == "deep"
        assert tree.find_by_id("missing") is None
        assert tree.find_by_id(None) is None

    def test_all_nodes_pre_order(self, tree: DocumentTree) -> None:
        assert [n.id for n in tree.all_nodes()] == ["A", "A1", "A2", "B", "C", "C1", "C1a"]

    def test_locate_returns_siblings_index_and_parent(self, tree: DocumentTree) -> None:
        loc = tree.locate("A2")
        assert loc is not None
        assert loc.index == 1
        assert loc.parent is tree.find_by_id("A")
        assert loc.parent_id == "A"
        assert loc.siblings is tree.find_by_id("A").children

        root_loc = tree.locate("B")
        assert root_loc.parent is None
        assert root_loc.parent_id is None
        assert root_loc.siblings is tree.roots

    def test_parent_and_siblings(self, tree: DocumentTree) -> None:
        assert tree.parent_of("C1a").id == "C1"
        assert tree.parent_of("A") is None
        assert [n.id for n in tree.siblings_of("A1")] == ["A1", "A2"]
        assert tree.siblings_of("nope") is None

    def test_children_of_root_sentinels(self, tree: DocumentTree) -> None:
        for sentinel in (None, "root", "body", ""):
            assert tree.children_of(sentinel) is tree.roots
        assert tree.children_of("unknown") is None
        assert [n.id for n in tree.children_of("A")] == ["A1", "A2"]

    def test_depth(self, tree: DocumentTree) -> None:
        assert tree.depth("A") == 0
        assert tree.depth("A1") == 1
        assert tree.depth("C1a") == 2
        assert tree.depth("missing") == -1

    def test_counts(self, tree: DocumentTree) -> None:
        assert len(tree) == 3
        assert tree.node_count() == 7
        assert DocumentTree().node_count() == 0

    def test_find_by_tag(self, tree: DocumentTree) -> None:
        assert tree.find_by_tag("div") == ["A", "C", "C1"]
        assert tree.find_by_tag("  ") == []

    def test_find_by_property(self) -> None:
        tree = DocumentTree(
            [
                Node(id="a", styles={"color": "red"}),
                Node(id="b", attributes={"color": "blue"}),
                Node(id="c", styles={"margin": "0"}),
            ]
        )
        assert tree.find_by_property("color") == ["a", "b"]
        assert tree.find_by_property("color", "blue") == ["b"]
        assert tree.find_by_property("") == []

    def test_selected(self, tree: DocumentTree) -> None:
        assert tree.selected is None
        tree.find_by_id("C1").selected = True
        assert tree.selected.id == "C1"

    def test_index_of_uses_identity(self) -> None:
        a = Node(id="same", tag="p")
        b = Node(id="same", tag="p")
        siblings = [a, b]
        assert a == b
        assert index_of(siblings, b) == 1
        assert index_of(siblings, Node(id="same", tag="p")) == -1

    def test_is_root_target(self) -> None:
        assert is_root_target(None)
        assert is_root_target("root")
        assert not is_root_target("A")


# ---------------------------------------------------------------------------
# Consistency
# ---------------------------------------------------------------------------


class TestConsistency:
    def test_fresh_tree_is_valid(self, tree: DocumentTree) -> None:
        assert tree.validate() == []

    def test_rebuild_parent_refs_counts_changes(self) -> None:
        tree = DocumentTree([Node(id="p", children=[Node(id="c", parent_ref="wrong")])])
        assert tree.rebuild_parent_refs() == 1
        assert tree.find_by_id("c").parent_ref == "p"
        assert tree.rebuild_parent_refs() == 0

    def test_validate_reports_problems(self) -> None:
        shared = Node(id="dup")
        tree = DocumentTree(
            [
                Node(id="x", parent_ref="bogus", selected=True),
                Node(id="x", selected=True),
                shared,
                shared,
            ]
        )
        problems = tree.validate()
        assert any("duplicate id x" in p for p in problems)
        assert any("parentRef 'bogus'" in p for p in problems)
        assert any("appears more than once" in p for p in problems)
        assert any("2 nodes selected" in p for p in problems)

    def test_replace_with_adopts_forest(self, tree: DocumentTree) -> None:
        other = DocumentTree([Node(id="z")])
        tree.replace_with(other)
        assert [n.id for n in tree.roots] == ["z"]


# ---------------------------------------------------------------------------
# Wire format
# ---------------------------------------------------------------------------


class TestWireFormat:
    def test_round_trip_preserves_structure(self, tree: DocumentTree) -> None:
        tree.find_by_id("A1").styles["color"] = "red"
        tree.find_by_id("B").attributes["title"] = "t"
        restored = DocumentTree.from_json(tree.to_json())
        assert restored.to_data() == tree.to_data()
        assert restored.validate() == []

    def test_selection_is_not_serialized(self, tree: DocumentTree) -> None:
        tree.find_by_id("B").selected = True
        assert "selected" not in tree.to_json()
        assert DocumentTree.from_json(tree.to_json()).selected is None

    def test_single_object_is_normalized_to_list(self) -> None:
        tree = DocumentTree.from_json('{"id": "solo", "tag": "p", "text": "hi"}')
        assert len(tree) == 1
        assert tree.roots[0].id == "solo"

    def test_parent_refs_rebuilt_on_decode(self) -> None:
        payload = json.dumps(
            [{"id": "p", "parentRef": "ghost", "children": [{"id": "c", "parentRef": "nope"}]}]
        )
        tree = DocumentTree.from_json(payload)
        assert tree.find_by_id("p").parent_ref is None
        assert tree.find_by_id("c").parent_ref == "p"

    def test_empty_array_is_empty_tree(self) -> None:
        assert len(DocumentTree.from_json("[]")) == 0

    def test_bytes_payload(self) -> None:
        tree = DocumentTree.from_json('[{"id": "b", "text": "café"}]'.encode())
        assert tree.roots[0].text == "café"

    def test_non_ascii_written_verbatim(self) -> None:
        tree = DocumentTree([Node(id="u", text="über")])
        assert "über" in tree.to_json()

    @pytest.mark.parametrize("payload", [None, "", "   ", b""])
    def test_empty_payload_rejected(self, payload) -> None:
        with pytest.raises(PayloadError, match="Empty payload"):
            DocumentTree.from_json(payload)

    def test_malformed_json_carries_location(self) -> None:
        with pytest.raises(PayloadError) as exc_info:
            DocumentTree.from_json('[{"id": "a",,}]', source="surface")
        err = exc_info.value
        assert "Malformed JSON" in err.message
        assert err.context is not None
        assert err.context.line == 1
        assert err.context.source == "surface"
        assert "surface:1:" in str(err)

    def test_deeply_nested_payload_rejected(self) -> None:
        with pytest.raises(PayloadError, match="nested too deeply"):
            DocumentTree.from_json("[" * 100_000)

    @pytest.mark.parametrize("payload", ["42", '"text"', "null", "true"])
    def test_scalar_top_level_rejected(self, payload: str) -> None:
        with pytest.raises(PayloadError, match="Expected a node object"):
            DocumentTree.from_json(payload)

    @pytest.mark.parametrize("node_id", ["", "root", "body"])
    def test_root_sentinel_id_rejected(self, node_id: str) -> None:
        payload = json.dumps([{"id": "x"}, {"id": node_id, "tag": "div"}])
        with pytest.raises(PayloadError, match="Invalid node at 1.id"):
            DocumentTree.from_json(payload)

    def test_wrong_field_type_rejected(self) -> None:
        with pytest.raises(PayloadError, match="Invalid node"):
            DocumentTree.from_json('[{"id": "a", "children": "nope"}]')

    def test_non_object_entry_rejected(self) -> None:
        with pytest.raises(PayloadError):
            DocumentTree.from_json('[{"id": "a"}, 7]')

    def test_duplicate_ids_rejected(self) -> None:
        with pytest.raises(PayloadError, match="Duplicate node id: a"):
            DocumentTree.from_json('[{"id": "a"}, {"id": "b", "children": [{"id": "a"}]}]')

    def test_invalid_utf8_rejected(self) -> None:
        with pytest.raises(PayloadError, match="UTF-8"):
            DocumentTree.from_json(b"\xff\xfe[")
