"""Rebuild a bounded binary ancestor tree from flat ancestry edges.

The tree for one side starts at that side's root path ("0" or "1") and each
node's children sit at ``path + "0"`` and ``path + "1"``. Every node costs one
(descendant, path) lookup; a missing edge ends that branch, so sparse
pedigrees stay far below the 2**max_depth - 1 ceiling.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import structlog

from kennel_pedigree.pedigree.paths import FATHER, MOTHER, PedigreeSide, child_path, label_of

if TYPE_CHECKING:
    from kennel_pedigree.store.dogs import DogStore
    from kennel_pedigree.store.relationships import RelationshipStore

logger = structlog.get_logger(__name__)

DEFAULT_MAX_DEPTH = 3


@dataclass
class AncestorCard:
    """What a presentation layer needs to draw one ancestor."""
    dog_id: str
    name: str
    path: str
    generation: int
    relation: str
    sex: str | None = None
    titles: list[str] = field(default_factory=list)
    image: str | None = None
    is_placeholder: bool = False
    initials: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "dog_id": self.dog_id,
            "name": self.name,
            "path": self.path,
            "generation": self.generation,
            "relation": self.relation,
            "sex": self.sex,
            "titles": list(self.titles),
            "image": self.image,
            "is_placeholder": self.is_placeholder,
            "initials": self.initials,
        }


@dataclass
class TreeNode:
    payload: AncestorCard
    children: list[TreeNode] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "payload": self.payload.to_dict(),
            "children": [c.to_dict() for c in self.children],
        }

    def walk(self):
        """Yield nodes depth-first, father's branch before mother's."""
        yield self
        for child in self.children:
            yield from child.walk()


class TreeBuilder:
    """Builds per-side ancestor trees for presentation.

    Example:
        >>> builder = TreeBuilder(relationships, dogs)
        >>> tree = builder.build_tree("DK12345/2019", "father", max_depth=3)
        >>> [n.payload.path for n in tree.walk()] if tree else []
        ['0', '00', '000', '001', '01']
    """

    def __init__(
        self,
        relationships: RelationshipStore,
        dogs: DogStore,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ) -> None:
        self.relationships = relationships
        self.dogs = dogs
        self.max_depth = max_depth

    def build_tree(
        self,
        descendant_id: str,
        side: PedigreeSide | str,
        max_depth: int | None = None,
    ) -> TreeNode | None:
        """Tree of one parent's line, or None when that parent is unknown.

        Args:
            descendant_id: Dog whose ancestry is drawn
            side: "father"/"mother" (or paternal/maternal, sire/dam)
            max_depth: Deepest path length included; defaults to the builder's

        Returns:
            Root node for the side's parent, or None
        """
        tree, _ = self.trace_tree(descendant_id, side, max_depth)
        return tree

    def trace_tree(
        self,
        descendant_id: str,
        side: PedigreeSide | str,
        max_depth: int | None = None,
    ) -> tuple[TreeNode | None, int]:
        """Like ``build_tree`` but also returns how many edge lookups it took."""
        depth = self.max_depth if max_depth is None else max_depth
        if depth < 1:
            return None, 0
        root = PedigreeSide(side).root_path
        tree, lookups = self._build(descendant_id, root, depth)
        logger.debug(
            "tree.built",
            descendant_id=descendant_id,
            side=root,
            lookups=lookups,
            found=tree is not None,
        )
        return tree, lookups

    def build_pedigree(
        self, descendant_id: str, max_depth: int | None = None
    ) -> dict[str, TreeNode | None]:
        return {
            side.value: self.build_tree(descendant_id, side, max_depth)
            for side in PedigreeSide
        }

    def _build(
        self, descendant_id: str, path: str, max_depth: int
    ) -> tuple[TreeNode | None, int]:
        edge = self.relationships.get_edge(descendant_id, path)
        if edge is None:
            return None, 1

        lookups = 1
        node = TreeNode(payload=self._card(edge.ancestor_id, path))
        if len(path) < max_depth:
            for branch in (FATHER, MOTHER):
                child, n = self._build(descendant_id, child_path(path, branch), max_depth)
                lookups += n
                if child is not None:
                    node.children.append(child)
        return node, lookups

    def _card(self, dog_id: str, path: str) -> AncestorCard:
        relation = label_of(path)
        dog = self.dogs.get_dog(dog_id, with_titles=True)
        if dog is None:
            # Edge survived its dog (foreign keys off on some other writer)
            return AncestorCard(
                dog_id=dog_id, name=dog_id, path=path, generation=len(path), relation=relation
            )
        image = self.dogs.best_image(dog_id)
        return AncestorCard(
            dog_id=dog.id,
            name=dog.name,
            path=path,
            generation=len(path),
            relation=relation,
            sex=dog.sex.value,
            titles=[t.title_code for t in dog.titles],
            image=image.reference if image else None,
            is_placeholder=dog.is_placeholder,
            initials=dog.initials,
        )
