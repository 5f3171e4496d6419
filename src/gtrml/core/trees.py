"""
Rooted tree structure consumed by the sequence simulator.

Trees are built either from explicit (parent, child, length) edge triples
or from Newick text parsed by dendropy. Construction validates topology, so
every TreeStructure has a single root, one incoming edge per non-root node,
no cycles and no unreachable nodes.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Hashable, Iterable, List, Mapping, NamedTuple, Optional, Tuple, Union

import numpy as np

from gtrml.core.errors import InvalidArgumentError, StructuralError


class Edge(NamedTuple):
    """Directed edge from parent to child; length in substitutions per site."""
    parent: int
    child: int
    length: float


@dataclass
class TreeNode:
    """
    Tree node.

    Attributes:
        id: Index of the node in TreeStructure.nodes
        name: Node name (taxon label for tips)
        parent_id: Index of the parent node (None for root)
        children_ids: Indices of child nodes
        branch_length: Length of the edge leading to this node
        is_tip: Whether this is a leaf node
    """
    id: int
    name: Optional[str] = None
    parent_id: Optional[int] = None
    children_ids: List[int] = field(default_factory=list)
    branch_length: float = 0.0
    is_tip: bool = False


@dataclass
class TreeStructure:
    """
    Validated rooted tree.

    Attributes:
        nodes: TreeNode objects, indexed by id
        edges: Edges in input order
        root_index: Index of the root node
        tip_indices: Indices of leaf nodes
        internal_indices: Indices of non-leaf nodes
        tip_names: Leaf names, aligned with tip_indices
    """
    nodes: List[TreeNode]
    edges: List[Edge]
    root_index: int
    tip_indices: List[int]
    internal_indices: List[int]
    tip_names: List[str]

    @property
    def n_nodes(self) -> int:
        return len(self.nodes)

    @property
    def n_tips(self) -> int:
        return len(self.tip_indices)

    @property
    def n_internal(self) -> int:
        return len(self.internal_indices)

    @classmethod
    def from_edges(
        cls,
        edges: Iterable[Tuple[Hashable, Hashable, float]],
        names: Optional[Mapping[Hashable, str]] = None,
    ) -> "TreeStructure":
        """
        Build a tree from (parent, child, length) triples.

        Node keys can be any hashable. Leaves are the nodes without children;
        their names come from ``names`` and default to ``str(key)``.

        Args:
            edges: Edge triples
            names: Optional node key -> name mapping

        Raises:
            StructuralError: Not exactly one root, a node with several
                parents, a cycle, or duplicate leaf names
            InvalidArgumentError: Negative or non-finite edge length
        """
        names = dict(names or {})
        edges = list(edges)

        key_to_idx: Dict[Hashable, int] = {}

        def index_of(key: Hashable) -> int:
            if key not in key_to_idx:
                key_to_idx[key] = len(key_to_idx)
            return key_to_idx[key]

        indexed: List[Edge] = []
        for parent, child, length in edges:
            length = float(length)
            if not np.isfinite(length) or length < 0:
                raise InvalidArgumentError(
                    f"Edge {parent!r}->{child!r} has invalid length {length}"
                )
            if parent == child:
                raise StructuralError(f"Self-loop on node {parent!r}")
            indexed.append(Edge(index_of(parent), index_of(child), length))

        for key in names:
            index_of(key)

        if not key_to_idx:
            raise StructuralError("Tree has no nodes")

        idx_to_key = {idx: key for key, idx in key_to_idx.items()}
        nodes = [
            TreeNode(id=idx, name=names.get(idx_to_key[idx]))
            for idx in range(len(key_to_idx))
        ]

        for edge in indexed:
            child = nodes[edge.child]
            if child.parent_id is not None:
                raise StructuralError(
                    f"Node {idx_to_key[edge.child]!r} has more than one parent"
                )
            child.parent_id = edge.parent
            child.branch_length = edge.length
            nodes[edge.parent].children_ids.append(edge.child)

        roots = [node.id for node in nodes if node.parent_id is None]
        if len(roots) != 1:
            raise StructuralError(
                f"Tree must have exactly one root, found {len(roots)}: "
                f"{[idx_to_key[r] for r in roots]}"
            )
        root_index = roots[0]

        reached = cls._reachable(nodes, root_index)
        if len(reached) != len(nodes):
            missing = sorted(set(range(len(nodes))) - reached)
            raise StructuralError(
                f"Nodes not reachable from the root (cycle or disconnected): "
                f"{[idx_to_key[i] for i in missing]}"
            )

        tip_indices = []
        internal_indices = []
        for node in nodes:
            if node.children_ids:
                internal_indices.append(node.id)
            else:
                node.is_tip = True
                if node.name is None:
                    node.name = str(idx_to_key[node.id])
                tip_indices.append(node.id)

        tip_names = [nodes[i].name for i in tip_indices]
        if len(set(tip_names)) != len(tip_names):
            duplicates = sorted({n for n in tip_names if tip_names.count(n) > 1})
            raise StructuralError(f"Duplicate leaf names: {duplicates}")

        return cls(
            nodes=nodes,
            edges=indexed,
            root_index=root_index,
            tip_indices=tip_indices,
            internal_indices=internal_indices,
            tip_names=tip_names,
        )

    @classmethod
    def from_newick(cls, newick: str) -> "TreeStructure":
        """
        Parse a Newick string with dendropy.

        The tree is treated as rooted. A missing trailing semicolon is added.
        """
        import dendropy

        newick = newick.strip()
        if not newick.endswith(";"):
            newick += ";"

        tree = dendropy.Tree.get(
            data=newick,
            schema="newick",
            rooting="force-rooted",
            preserve_underscores=True,
        )

        names = {}
        edges = []
        for node in tree.preorder_node_iter():
            key = id(node)
            if node.taxon is not None:
                names[key] = node.taxon.label
            elif node.label:
                names[key] = node.label
            if node.parent_node is not None:
                length = node.edge_length if node.edge_length is not None else 0.0
                edges.append((id(node.parent_node), key, length))

        if not edges:
            raise StructuralError("Tree has a single node and no edges")
        return cls.from_edges(edges, names=names)

    @classmethod
    def from_file(cls, filepath: Union[str, Path]) -> "TreeStructure":
        """Load tree from Newick file."""
        with open(filepath, 'r') as f:
            newick = f.read().strip()
        return cls.from_newick(newick)

    @staticmethod
    def _reachable(nodes: List[TreeNode], root_index: int) -> set:
        seen = set()
        stack = [root_index]
        while stack:
            node_id = stack.pop()
            if node_id in seen:
                continue
            seen.add(node_id)
            stack.extend(nodes[node_id].children_ids)
        return seen

    def preorder_edges(self) -> List[Edge]:
        """
        Edges ordered so every parent is reached before its children.

        Raises:
            StructuralError: If a node is reached twice or some node is
                unreachable from the root
        """
        result = []
        seen = {self.root_index}
        stack = [self.root_index]
        while stack:
            node_id = stack.pop()
            for child_id in self.nodes[node_id].children_ids:
                if child_id in seen:
                    raise StructuralError(f"Node {child_id} is reached more than once from the root")
                seen.add(child_id)
                result.append(Edge(node_id, child_id, self.nodes[child_id].branch_length))
            stack.extend(reversed(self.nodes[node_id].children_ids))
        if len(seen) != self.n_nodes:
            raise StructuralError(
                f"{self.n_nodes - len(seen)} node(s) are unreachable from the root"
            )
        return result

    def get_tip_index_map(self) -> Dict[str, int]:
        """Map tip names to their indices."""
        return {name: idx for idx, name in zip(self.tip_indices, self.tip_names)}

    def __repr__(self) -> str:
        return f"TreeStructure({self.n_tips} tips, {self.n_nodes} nodes)"


def load_tree(filepath: Union[str, Path]) -> TreeStructure:
    """Load a phylogenetic tree from a Newick file."""
    return TreeStructure.from_file(filepath)
