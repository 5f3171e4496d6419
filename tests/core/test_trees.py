"""Tests for the rooted tree structure."""

import pytest

from gtrml.core.errors import InvalidArgumentError, StructuralError
from gtrml.core.trees import Edge, TreeNode, TreeStructure, load_tree


MAMMALS = "((rat:2,mouse:2):1,(horse:3,(cow:2,pig:2):1):3)"


class TestFromNewick:

    def test_counts(self):
        tree = TreeStructure.from_newick(MAMMALS)
        assert tree.n_tips == 5
        assert tree.n_internal == 4
        assert tree.n_nodes == 9
        assert len(tree.edges) == 8
        assert sorted(tree.tip_names) == ["cow", "horse", "mouse", "pig", "rat"]

    def test_branch_lengths(self):
        tree = TreeStructure.from_newick(MAMMALS)
        tips = tree.get_tip_index_map()
        assert tree.nodes[tips["horse"]].branch_length == 3.0
        assert tree.nodes[tips["rat"]].branch_length == 2.0

    def test_root_has_no_parent(self):
        tree = TreeStructure.from_newick(MAMMALS + ";")
        assert tree.nodes[tree.root_index].parent_id is None
        assert all(
            node.parent_id is not None for node in tree.nodes if node.id != tree.root_index
        )

    def test_underscores_preserved(self):
        tree = TreeStructure.from_newick("(mus_musculus:1,rattus_rattus:1);")
        assert sorted(tree.tip_names) == ["mus_musculus", "rattus_rattus"]

    def test_load_tree(self, tmp_path):
        path = tmp_path / "tree.nwk"
        path.write_text(MAMMALS + ";\n")
        tree = load_tree(path)
        assert tree.n_tips == 5


class TestPreorder:

    def test_parents_before_children(self):
        tree = TreeStructure.from_newick(MAMMALS)
        populated = {tree.root_index}
        for edge in tree.preorder_edges():
            assert edge.parent in populated
            populated.add(edge.child)
        assert len(populated) == tree.n_nodes

    def test_edges_from_unordered_input(self):
        edges = [
            ("ab", "a", 0.1),
            ("root", "c", 0.3),
            ("ab", "b", 0.2),
            ("root", "ab", 0.05),
        ]
        tree = TreeStructure.from_edges(edges)
        populated = {tree.root_index}
        for edge in tree.preorder_edges():
            assert edge.parent in populated
            populated.add(edge.child)

    def _unchecked_tree(self, children):
        nodes = [TreeNode(id=i, children_ids=list(c), branch_length=0.1) for i, c in enumerate(children)]
        return TreeStructure(
            nodes=nodes,
            edges=[],
            root_index=0,
            tip_indices=[],
            internal_indices=list(range(len(nodes))),
            tip_names=[],
        )

    def test_cycle_in_unvalidated_tree_raises(self):
        tree = self._unchecked_tree([[1], [2], [1]])
        with pytest.raises(StructuralError):
            tree.preorder_edges()

    def test_unreachable_node_in_unvalidated_tree_raises(self):
        tree = self._unchecked_tree([[1], [], []])
        with pytest.raises(StructuralError):
            tree.preorder_edges()

    def test_edge_tuple_fields(self):
        tree = TreeStructure.from_edges([("root", "a", 0.5)])
        assert tree.preorder_edges() == [Edge(tree.root_index, tree.get_tip_index_map()["a"], 0.5)]


class TestFromEdges:

    def test_leaf_names(self):
        tree = TreeStructure.from_edges(
            [(0, 1, 0.1), (0, 2, 0.2)],
            names={1: "left", 2: "right"},
        )
        assert tree.tip_names == ["left", "right"]
        assert tree.root_index == 0

    def test_default_names(self):
        tree = TreeStructure.from_edges([("r", "x", 1.0), ("r", "y", 1.0)])
        assert sorted(tree.tip_names) == ["x", "y"]

    def test_multiple_roots(self):
        with pytest.raises(StructuralError):
            TreeStructure.from_edges([("r1", "a", 1.0), ("r2", "b", 1.0)])

    def test_multiple_parents(self):
        with pytest.raises(StructuralError):
            TreeStructure.from_edges([("r", "a", 1.0), ("r", "b", 1.0), ("a", "b", 1.0)])

    def test_cycle(self):
        with pytest.raises(StructuralError):
            TreeStructure.from_edges([("a", "b", 1.0), ("b", "c", 1.0), ("c", "a", 1.0)])

    def test_disconnected_cycle(self):
        with pytest.raises(StructuralError):
            TreeStructure.from_edges([
                ("r", "a", 1.0),
                ("x", "y", 1.0),
                ("y", "x", 1.0),
            ])

    def test_isolated_named_node(self):
        with pytest.raises(StructuralError):
            TreeStructure.from_edges([("r", "a", 1.0)], names={"lonely": "lonely"})

    def test_self_loop(self):
        with pytest.raises(StructuralError):
            TreeStructure.from_edges([("r", "r", 1.0)])

    def test_empty(self):
        with pytest.raises(StructuralError):
            TreeStructure.from_edges([])

    def test_duplicate_leaf_names(self):
        with pytest.raises(StructuralError):
            TreeStructure.from_edges(
                [("r", 1, 1.0), ("r", 2, 1.0)],
                names={1: "same", 2: "same"},
            )

    def test_negative_length(self):
        with pytest.raises(InvalidArgumentError):
            TreeStructure.from_edges([("r", "a", -0.5), ("r", "b", 1.0)])
