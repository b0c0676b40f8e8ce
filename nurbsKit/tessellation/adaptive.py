"""
Adaptive quadtree subdivision of a NURBS surface's parameter domain.

Layout of a node and its children (quadrant order), with the edge and
neighbor numbering used throughout:

      v
      ^                      edge 2 (top)
      |
      +--> u         (u0,v1)---(u05,v1)---(u1,v1)
                        |           |          |
                        |     3     |     2    |
                        |           |          |
      edge 3 (left)  (u0,v05)--(u05,v05)--(u1,v05)   edge 1 (right)
                        |           |          |
                        |     0     |     1    |
                        |           |          |
                     (u0,v0)---(u05,v0)---(u1,v0)

                             edge 0 (bottom)

Nodes live in an arena (AdaptiveRefinementTree.nodes) and refer to each
other by index: parent, children and neighbors are plain ints. A node is
a leaf when children is None; otherwise children holds exactly 4 ids in
quadrant order. A node split in one direction only has two distinct
children, repeated to fill the quadrants they cover:

    split_vert only  (cut at u05):  (L, R, R, L)
    split_horiz only (cut at v05):  (B, B, T, T)

The tree is built in three passes:

1. Build. build_node evaluates a node's 9 surface points (corners, edge
   midpoints, center) and decides its split flags before the node is
   stored. Subdivision recurses depth-first until the split test fails,
   bounded by max_depth.
2. Neighbors. In parent-before-child order, the neighbor of a node across
   an edge is the deepest node on the other side whose opposite edge
   contains the node's edge. Links between edges of equal size are set in
   both directions.
3. Stitching. For every leaf edge, the corners of the finer leaves across
   it are inserted into the edge's vertex run, so adjoining leaves share
   identical boundary vertices and the mesh has no T-junction cracks.

After build the tree is read-only.
"""

import logging
import numpy as np
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterator, List, Optional, Tuple

from ..constants import EPSILON
from ..errors import DegenerateGeometryError, ValidationError
from ..geometry.vector import is_zero, unitize

logger = logging.getLogger(__name__)

BOTTOM, RIGHT, TOP, LEFT = 0, 1, 2, 3
OPPOSITE = (TOP, LEFT, BOTTOM, RIGHT)

# Fraction of the way toward the domain center used to recover a normal
# at a degenerate point (e.g. a collapsed edge or pole)
NORMAL_NUDGE = 1e-4

UVBounds = Tuple[Tuple[float, float], Tuple[float, float]]


@dataclass(frozen=True)
class AdaptiveRefinementOptions:
    """
    Settings for adaptive tessellation.

    Attributes:
        norm_tol: Allowed deviation of an edge midpoint or center normal
            from the interpolated corner normals before a node is split
        min_depth: Depth to which every node is split unconditionally
        max_depth: Depth at which splitting stops regardless of flatness
        refine: Split on flatness; when False only min_depth and the
            seed grid subdivide the domain
        min_divs_u: Seed cells along u
        min_divs_v: Seed cells along v
    """
    norm_tol: float = 2.5e-2
    min_depth: int = 0
    max_depth: int = 10
    refine: bool = True
    min_divs_u: int = 1
    min_divs_v: int = 1

    def __post_init__(self):
        if self.norm_tol <= 0:
            raise ValidationError(f"norm_tol must be positive, got {self.norm_tol}")
        if self.min_depth < 0:
            raise ValidationError(f"min_depth must be >= 0, got {self.min_depth}")
        if self.max_depth < self.min_depth:
            raise ValidationError(
                f"max_depth ({self.max_depth}) must be >= min_depth ({self.min_depth})"
            )
        if self.min_divs_u < 1 or self.min_divs_v < 1:
            raise ValidationError(
                f"Seed divisions must be >= 1, got ({self.min_divs_u}, {self.min_divs_v})"
            )


@dataclass(frozen=True)
class SurfacePoint:
    """
    Surface sample used by the tessellator.

    Attributes:
        uv: Parameter values (u, v)
        point: Position S(u, v)
        normal: Unit normal; at a degenerate point the normal of a nearby
            regular point, or zeros if none could be found
        degenerate: True if S_u x S_v vanishes at uv
    """
    uv: Tuple[float, float]
    point: np.ndarray
    normal: np.ndarray
    degenerate: bool = False


def _raw_normal(surface, uv: Tuple[float, float]) -> Tuple[np.ndarray, np.ndarray]:
    SKL = surface.eval_derivatives(uv, 1)
    return SKL[0, 0], np.cross(SKL[1, 0], SKL[0, 1])


def evaluate_surface_point(surface, uv: Tuple[float, float],
                           toward: Optional[Tuple[float, float]] = None) -> SurfacePoint:
    """
    Evaluate position and unit normal at uv.

    Parameters:
        surface: NURBSSurface
        uv: Parameter values
        toward: Parameter point to nudge toward when the normal is
            degenerate; defaults to the center of the surface domain

    Returns:
        SurfacePoint
    """
    uv = (float(uv[0]), float(uv[1]))
    point, normal = _raw_normal(surface, uv)
    try:
        return SurfacePoint(uv, point, unitize(normal))
    except DegenerateGeometryError:
        pass

    if toward is None:
        (u0, u1), (v0, v1) = surface.domain
        toward = (0.5 * (u0 + u1), 0.5 * (v0 + v1))
    nudged = (uv[0] + NORMAL_NUDGE * (toward[0] - uv[0]),
              uv[1] + NORMAL_NUDGE * (toward[1] - uv[1]))

    try:
        normal = unitize(_raw_normal(surface, nudged)[1])
        logger.debug("Degenerate normal at uv=%s, using normal at %s", uv, nudged)
    except DegenerateGeometryError:
        logger.debug("Degenerate normal at uv=%s could not be recovered", uv)
        normal = np.zeros_like(point)
    return SurfacePoint(uv, point, normal, True)


@dataclass
class AdaptiveRefinementNode:
    """
    Quadtree node over [u0, u1] x [v0, v1].

    Attributes:
        id: Index in the tree's node arena
        depth: Subdivision depth (seed cells are depth 0)
        uv_bounds: ((u0, u1), (v0, v1))
        corners: SurfacePoints at the corners, quadrant order
        midpoints: SurfacePoints at the edge midpoints, edge order
        center: SurfacePoint at (u05, v05)
        split_vert: Split at u05 (normals vary along u)
        split_horiz: Split at v05 (normals vary along v)
        parent: Parent node id, None for a seed cell
        children: None for a leaf, else 4 node ids in quadrant order
        neighbors: Node id across each edge, None on the domain boundary
    """
    id: int
    depth: int
    uv_bounds: UVBounds
    corners: Tuple[SurfacePoint, ...]
    midpoints: Tuple[SurfacePoint, ...]
    center: SurfacePoint
    split_vert: bool = False
    split_horiz: bool = False
    parent: Optional[int] = None
    children: Optional[Tuple[int, int, int, int]] = None
    neighbors: List[Optional[int]] = field(default_factory=lambda: [None] * 4)

    @property
    def is_leaf(self) -> bool:
        return self.children is None

    @property
    def should_split(self) -> bool:
        return self.split_vert or self.split_horiz

    @property
    def u05(self) -> float:
        return 0.5 * (self.uv_bounds[0][0] + self.uv_bounds[0][1])

    @property
    def v05(self) -> float:
        return 0.5 * (self.uv_bounds[1][0] + self.uv_bounds[1][1])

    @property
    def area(self) -> float:
        (u0, u1), (v0, v1) = self.uv_bounds
        return (u1 - u0) * (v1 - v0)

    def child_ids(self) -> List[int]:
        """Distinct child ids in quadrant order (empty for a leaf)."""
        if self.children is None:
            return []
        ids = []
        for c in self.children:
            if c not in ids:
                ids.append(c)
        return ids

    def edge_line(self, edge: int) -> float:
        """Constant parameter value along an edge (v for bottom/top, u for right/left)."""
        (u0, u1), (v0, v1) = self.uv_bounds
        return (v0, u1, v1, u0)[edge]

    def edge_extent(self, edge: int) -> Tuple[float, float]:
        """Parameter interval spanned by an edge, in increasing order."""
        (u0, u1), (v0, v1) = self.uv_bounds
        return (u0, u1) if edge in (BOTTOM, TOP) else (v0, v1)


def _deviation(normal: np.ndarray, a: np.ndarray, b: np.ndarray) -> float:
    # Deviation of normal from the interpolation of a and b
    mean = a + b
    length = np.linalg.norm(mean)
    if length < EPSILON:
        return 2.0
    return float(np.linalg.norm(normal - mean / length))


def _split_flags(corners, midpoints, center, depth: int,
                 options: AdaptiveRefinementOptions) -> Tuple[bool, bool]:
    if depth >= options.max_depth:
        return False, False
    if depth < options.min_depth:
        return True, True
    if not options.refine:
        return False, False

    samples = corners + midpoints + (center,)
    if any(is_zero(s.normal) for s in samples):
        return False, False

    n = [c.normal for c in corners]
    m = [s.normal for s in midpoints]
    nc = center.normal

    # Variation along u: corners at either u end, then the bottom/top
    # midpoints and center against their interpolated normals
    along_u = max(np.linalg.norm(n[0] - n[1]),
                  np.linalg.norm(n[3] - n[2]),
                  _deviation(m[BOTTOM], n[0], n[1]),
                  _deviation(m[TOP], n[3], n[2]),
                  _deviation(nc, m[LEFT], m[RIGHT]))
    # Variation along v: the same across the left/right edges
    along_v = max(np.linalg.norm(n[0] - n[3]),
                  np.linalg.norm(n[1] - n[2]),
                  _deviation(m[LEFT], n[0], n[3]),
                  _deviation(m[RIGHT], n[1], n[2]),
                  _deviation(nc, m[BOTTOM], m[TOP]))

    return along_u > options.norm_tol, along_v > options.norm_tol


def build_node(surface, uv_bounds: UVBounds, depth: int,
               options: AdaptiveRefinementOptions,
               node_id: int = 0,
               parent: Optional[int] = None,
               evaluate: Optional[Callable[[Tuple[float, float]], SurfacePoint]] = None
               ) -> AdaptiveRefinementNode:
    """
    Evaluate a node's surface points and decide how it splits.

    The returned node is fully evaluated; children and neighbors are
    left for the tree to assign.

    Parameters:
        surface: NURBSSurface
        uv_bounds: ((u0, u1), (v0, v1))
        depth: Depth of the node
        options: AdaptiveRefinementOptions
        node_id: Arena index of the node
        parent: Arena index of the parent
        evaluate: uv -> SurfacePoint, defaults to evaluate_surface_point

    Returns:
        AdaptiveRefinementNode
    """
    if evaluate is None:
        def evaluate(uv):
            return evaluate_surface_point(surface, uv)

    (u0, u1), (v0, v1) = uv_bounds
    u05 = 0.5 * (u0 + u1)
    v05 = 0.5 * (v0 + v1)

    corners = tuple(evaluate(uv) for uv in ((u0, v0), (u1, v0), (u1, v1), (u0, v1)))
    midpoints = tuple(evaluate(uv) for uv in ((u05, v0), (u1, v05), (u05, v1), (u0, v05)))
    center = evaluate((u05, v05))

    split_vert, split_horiz = _split_flags(corners, midpoints, center, depth, options)

    return AdaptiveRefinementNode(
        id=node_id,
        depth=depth,
        uv_bounds=((u0, u1), (v0, v1)),
        corners=corners,
        midpoints=midpoints,
        center=center,
        split_vert=split_vert,
        split_horiz=split_horiz,
        parent=parent,
    )


@dataclass(frozen=True)
class LeafPatch:
    """
    Triangulation input for one leaf.

    Attributes:
        node_id: Leaf id in the tree
        uv_bounds: ((u0, u1), (v0, v1))
        corners: 4 corner SurfacePoints, quadrant order
        midpoints: Per edge, the vertex at the edge midpoint when the far
            side is refined deeper, else None
        center: SurfacePoint at the patch center
        edge_points: Per edge, the ordered boundary run from corner e to
            corner (e + 1) % 4 (counter-clockwise), both corners included
    """
    node_id: int
    uv_bounds: UVBounds
    corners: Tuple[SurfacePoint, ...]
    midpoints: Tuple[Optional[SurfacePoint], ...]
    center: SurfacePoint
    edge_points: Tuple[Tuple[SurfacePoint, ...], ...]

    def boundary_ring(self) -> List[SurfacePoint]:
        """Counter-clockwise boundary vertices, each listed once."""
        ring = []
        for run in self.edge_points:
            ring.extend(run[:-1])
        return ring


class AdaptiveRefinementTree:
    """
    Adaptive quadtree over a NURBS surface's parameter domain.

    Example:
        >>> tree = AdaptiveRefinementTree(surface, AdaptiveRefinementOptions(norm_tol=0.05))
        >>> for patch in tree.leaf_patches():
        ...     ring = patch.boundary_ring()
    """

    def __init__(self, surface, options: Optional[AdaptiveRefinementOptions] = None):
        """
        Build, link and stitch the tree.

        Parameters:
            surface: NURBSSurface (3D)
            options: AdaptiveRefinementOptions, defaults if None
        """
        if surface.n_dim_parametric != 2 or surface.n_dim_physical != 3:
            raise ValidationError("Adaptive tessellation requires a surface in 3D")

        self.surface = surface
        self.options = options if options is not None else AdaptiveRefinementOptions()
        self.nodes: List[AdaptiveRefinementNode] = []
        self.roots: List[int] = []

        (u0, u1), (v0, v1) = surface.domain
        self._domain_center = (0.5 * (u0 + u1), 0.5 * (v0 + v1))
        self._points: Dict[Tuple[float, float], SurfacePoint] = {}
        self._root_grid: List[List[int]] = []
        self._root_cell: Dict[int, Tuple[int, int]] = {}
        self._edge_points: Dict[int, Tuple[Tuple[SurfacePoint, ...], ...]] = {}

        self._build()
        self._assign_neighbors()
        self._stitch()

        logger.debug("Adaptive tree: %d nodes, %d leaves, max depth %d",
                     len(self.nodes), self.n_leaves, self.max_depth)

    # ------------------------------------------------------------------
    # Build
    # ------------------------------------------------------------------

    def _evaluate(self, uv: Tuple[float, float]) -> SurfacePoint:
        key = (float(uv[0]), float(uv[1]))
        sp = self._points.get(key)
        if sp is None:
            sp = evaluate_surface_point(self.surface, key, self._domain_center)
            self._points[key] = sp
        return sp

    def _new_node(self, uv_bounds: UVBounds, depth: int,
                  parent: Optional[int]) -> int:
        node = build_node(self.surface, uv_bounds, depth, self.options,
                          node_id=len(self.nodes), parent=parent,
                          evaluate=self._evaluate)
        self.nodes.append(node)
        return node.id

    def _build(self):
        (u0, u1), (v0, v1) = self.surface.domain
        u_breaks = np.linspace(u0, u1, self.options.min_divs_u + 1)
        v_breaks = np.linspace(v0, v1, self.options.min_divs_v + 1)

        for j in range(self.options.min_divs_v):
            row = []
            for i in range(self.options.min_divs_u):
                bounds = ((float(u_breaks[i]), float(u_breaks[i + 1])),
                          (float(v_breaks[j]), float(v_breaks[j + 1])))
                node_id = self._new_node(bounds, 0, None)
                self.roots.append(node_id)
                self._root_cell[node_id] = (i, j)
                row.append(node_id)
            self._root_grid.append(row)

        for root in self.roots:
            self._divide(root)

    def _divide(self, node_id: int):
        node = self.nodes[node_id]
        if not node.should_split:
            return

        (u0, u1), (v0, v1) = node.uv_bounds
        u05, v05 = node.u05, node.v05
        depth = node.depth + 1

        if node.split_vert and node.split_horiz:
            children = tuple(self._new_node(b, depth, node_id) for b in (
                ((u0, u05), (v0, v05)), ((u05, u1), (v0, v05)),
                ((u05, u1), (v05, v1)), ((u0, u05), (v05, v1))))
        elif node.split_vert:
            left = self._new_node(((u0, u05), (v0, v1)), depth, node_id)
            right = self._new_node(((u05, u1), (v0, v1)), depth, node_id)
            children = (left, right, right, left)
        else:
            bottom = self._new_node(((u0, u1), (v0, v05)), depth, node_id)
            top = self._new_node(((u0, u1), (v05, v1)), depth, node_id)
            children = (bottom, bottom, top, top)

        node.children = children
        for child in node.child_ids():
            self._divide(child)

    # ------------------------------------------------------------------
    # Neighbors
    # ------------------------------------------------------------------

    def _root_across(self, node: AdaptiveRefinementNode, edge: int) -> Optional[int]:
        i, j = self._root_cell[node.id]
        di, dj = ((0, -1), (1, 0), (0, 1), (-1, 0))[edge]
        i, j = i + di, j + dj
        if 0 <= i < self.options.min_divs_u and 0 <= j < self.options.min_divs_v:
            return self._root_grid[j][i]
        return None

    def _abuts(self, other: AdaptiveRefinementNode, node: AdaptiveRefinementNode,
               edge: int) -> bool:
        return other.edge_line(OPPOSITE[edge]) == node.edge_line(edge)

    def _start_across(self, node: AdaptiveRefinementNode, edge: int) -> Optional[int]:
        if node.parent is None:
            return self._root_across(node, edge)

        parent = self.nodes[node.parent]
        if node.edge_line(edge) == parent.edge_line(edge):
            return parent.neighbors[edge]

        b0, b1 = node.edge_extent(edge)
        for sibling_id in parent.child_ids():
            sibling = self.nodes[sibling_id]
            c0, c1 = sibling.edge_extent(OPPOSITE[edge])
            if self._abuts(sibling, node, edge) and c0 <= b0 and b1 <= c1:
                return sibling_id
        return None

    def _descend(self, start: int, node: AdaptiveRefinementNode, edge: int) -> int:
        b0, b1 = node.edge_extent(edge)
        current = self.nodes[start]
        while not current.is_leaf:
            for child_id in current.child_ids():
                child = self.nodes[child_id]
                c0, c1 = child.edge_extent(OPPOSITE[edge])
                if self._abuts(child, node, edge) and c0 <= b0 and b1 <= c1:
                    current = child
                    break
            else:
                break
        return current.id

    def _link(self, a: int, edge: int, b: Optional[int]):
        self.nodes[a].neighbors[edge] = b
        if b is None:
            return
        node_a, node_b = self.nodes[a], self.nodes[b]
        if node_a.edge_extent(edge) == node_b.edge_extent(OPPOSITE[edge]):
            node_b.neighbors[OPPOSITE[edge]] = a

    def _assign_neighbors(self):
        # Parents precede their children in the arena
        for node in self.nodes:
            for edge in range(4):
                start = self._start_across(node, edge)
                target = None if start is None else self._descend(start, node, edge)
                self._link(node.id, edge, target)

    # ------------------------------------------------------------------
    # Stitching
    # ------------------------------------------------------------------

    def _leaves_along(self, start: int, node: AdaptiveRefinementNode,
                      edge: int) -> List[AdaptiveRefinementNode]:
        b0, b1 = node.edge_extent(edge)
        found = []
        stack = [start]
        while stack:
            other = self.nodes[stack.pop()]
            c0, c1 = other.edge_extent(OPPOSITE[edge])
            if not self._abuts(other, node, edge) or c1 <= b0 or c0 >= b1:
                continue
            if other.is_leaf:
                found.append(other)
            else:
                stack.extend(other.child_ids())
        return found

    def _edge_run(self, node: AdaptiveRefinementNode, edge: int) -> Tuple[SurfacePoint, ...]:
        b0, b1 = node.edge_extent(edge)
        line = node.edge_line(edge)

        params = set()
        across = node.neighbors[edge]
        if across is not None:
            for leaf in self._leaves_along(across, node, edge):
                for s in leaf.edge_extent(OPPOSITE[edge]):
                    if b0 < s < b1:
                        params.add(s)

        ordered = [b0] + sorted(params) + [b1]
        if edge in (TOP, LEFT):
            ordered.reverse()

        if edge in (BOTTOM, TOP):
            return tuple(self._evaluate((s, line)) for s in ordered)
        return tuple(self._evaluate((line, s)) for s in ordered)

    def _stitch(self):
        for node in self.leaves():
            self._edge_points[node.id] = tuple(self._edge_run(node, e) for e in range(4))

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    @property
    def n_leaves(self) -> int:
        return sum(1 for node in self.nodes if node.is_leaf)

    @property
    def max_depth(self) -> int:
        return max(node.depth for node in self.nodes)

    def leaves(self) -> Iterator[AdaptiveRefinementNode]:
        """Yield leaf nodes depth-first, children in quadrant order."""
        stack = list(reversed(self.roots))
        while stack:
            node = self.nodes[stack.pop()]
            if node.is_leaf:
                yield node
            else:
                stack.extend(reversed(node.child_ids()))

    def leaf_patches(self) -> Iterator[LeafPatch]:
        """Yield a LeafPatch per leaf, in the order of leaves()."""
        for node in self.leaves():
            runs = self._edge_points[node.id]
            midpoints = []
            for edge, run in enumerate(runs):
                mid = node.midpoints[edge]
                midpoints.append(mid if any(sp.uv == mid.uv for sp in run[1:-1]) else None)
            yield LeafPatch(node.id, node.uv_bounds, node.corners,
                            tuple(midpoints), node.center, runs)

    def is_ancestor(self, ancestor: int, node_id: int) -> bool:
        """True if ancestor is node_id itself or one of its ancestors."""
        current = node_id
        while current is not None:
            if current == ancestor:
                return True
            current = self.nodes[current].parent
        return False

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    def check_partition(self, tol: float = 1e-12) -> None:
        """
        Verify that the leaf rectangles tile the root domain.

        Raises:
            ValidationError: on a gap, overlap, or leaf outside the domain
        """
        (u0, u1), (v0, v1) = self.surface.domain
        domain_area = (u1 - u0) * (v1 - v0)

        leaves = sorted(self.leaves(), key=lambda n: n.uv_bounds[0][0])
        for leaf in leaves:
            (a0, a1), (c0, c1) = leaf.uv_bounds
            if a0 < u0 or a1 > u1 or c0 < v0 or c1 > v1:
                raise ValidationError(f"Leaf {leaf.id} {leaf.uv_bounds} lies outside the domain")

        total = sum(leaf.area for leaf in leaves)
        if abs(total - domain_area) > tol * max(1.0, domain_area):
            raise ValidationError(
                f"Leaf areas sum to {total}, domain area is {domain_area}"
            )

        for i, leaf in enumerate(leaves):
            (a0, a1), (c0, c1) = leaf.uv_bounds
            for other in leaves[i + 1:]:
                (b0, b1), (d0, d1) = other.uv_bounds
                if b0 >= a1:
                    break
                if min(a1, b1) > max(a0, b0) and min(c1, d1) > max(c0, d0):
                    raise ValidationError(f"Leaves {leaf.id} and {other.id} overlap")

    def check_neighbors(self) -> None:
        """
        Verify neighbor references.

        Every neighbor must abut its node and cover the shared edge; every
        interior edge must have a neighbor; and a leaf's neighbor must
        point back at the leaf or one of its ancestors.

        Raises:
            ValidationError: on the first violation found
        """
        (u0, u1), (v0, v1) = self.surface.domain
        boundary = (v0, u1, v1, u0)

        for node in self.nodes:
            for edge in range(4):
                other_id = node.neighbors[edge]
                on_boundary = node.edge_line(edge) == boundary[edge]
                if other_id is None:
                    if not on_boundary:
                        raise ValidationError(f"Node {node.id} has no neighbor across edge {edge}")
                    continue
                if on_boundary:
                    raise ValidationError(f"Node {node.id} has a neighbor across the domain boundary")

                other = self.nodes[other_id]
                b0, b1 = node.edge_extent(edge)
                c0, c1 = other.edge_extent(OPPOSITE[edge])
                if not self._abuts(other, node, edge) or c0 > b0 or b1 > c1:
                    raise ValidationError(
                        f"Neighbor {other_id} of node {node.id} does not cover edge {edge}"
                    )

                if node.is_leaf:
                    back = other.neighbors[OPPOSITE[edge]]
                    if back is None or not self.is_ancestor(back, node.id):
                        raise ValidationError(
                            f"Neighbor link {node.id} -> {other_id} across edge {edge} "
                            f"is not symmetric (back reference {back})"
                        )
