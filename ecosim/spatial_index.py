"""
Spatial hash grid for neighbor queries.

Partitions the plane into square buckets so radius queries only touch the
buckets overlapping the query circle instead of scanning every organism.
Rebuilt once per tick from the live population.
"""

import math
from collections import defaultdict
from typing import Callable, Dict, Hashable, Iterable, List, Optional, Set, Tuple

BucketKey = Tuple[int, int]


class SpatialHashGrid:
    def __init__(self, cell_size: float = 1.0):
        if cell_size <= 0:
            cell_size = 1.0
        self.cell_size = float(cell_size)
        self._buckets: Dict[BucketKey, Set[Hashable]] = defaultdict(set)
        self._bucket_of: Dict[Hashable, BucketKey] = {}
        self._positions: Dict[Hashable, Tuple[float, float]] = {}

    def __len__(self) -> int:
        return len(self._positions)

    def __contains__(self, key: Hashable) -> bool:
        return key in self._positions

    def bucket_key(self, x: float, y: float) -> BucketKey:
        return (math.floor(x / self.cell_size), math.floor(y / self.cell_size))

    def insert(self, key: Hashable, x: float, y: float):
        """Insert or move an entry. Bucket membership only changes when the bucket does."""
        new_bucket = self.bucket_key(x, y)
        old_bucket = self._bucket_of.get(key)
        if old_bucket != new_bucket:
            if old_bucket is not None:
                self._discard_from_bucket(key, old_bucket)
            self._buckets[new_bucket].add(key)
            self._bucket_of[key] = new_bucket
        self._positions[key] = (float(x), float(y))

    update = insert

    def remove(self, key: Hashable) -> bool:
        bucket = self._bucket_of.pop(key, None)
        if bucket is None:
            return False
        self._discard_from_bucket(key, bucket)
        del self._positions[key]
        return True

    def _discard_from_bucket(self, key: Hashable, bucket: BucketKey):
        members = self._buckets.get(bucket)
        if members is None:
            return
        members.discard(key)
        if not members:
            del self._buckets[bucket]

    def position(self, key: Hashable) -> Optional[Tuple[float, float]]:
        return self._positions.get(key)

    def clear(self):
        self._buckets.clear()
        self._bucket_of.clear()
        self._positions.clear()

    def rebuild(self, entries: Iterable[Tuple[Hashable, float, float]]):
        """Drop everything and re-insert from (key, x, y) triples."""
        self.clear()
        for key, x, y in entries:
            self.insert(key, x, y)

    def _candidate_buckets(self, min_x: float, min_y: float,
                           max_x: float, max_y: float) -> Iterable[Set[Hashable]]:
        min_bx, min_by = self.bucket_key(min_x, min_y)
        max_bx, max_by = self.bucket_key(max_x, max_y)
        span = (max_bx - min_bx + 1) * (max_by - min_by + 1)

        # Large radius over a sparse grid: walk occupied buckets instead
        if span > len(self._buckets):
            for (bx, by), members in self._buckets.items():
                if min_bx <= bx <= max_bx and min_by <= by <= max_by:
                    yield members
            return

        for bx in range(min_bx, max_bx + 1):
            for by in range(min_by, max_by + 1):
                members = self._buckets.get((bx, by))
                if members:
                    yield members

    def query_radius(self, x: float, y: float, radius: float) -> List[Hashable]:
        """All keys within Euclidean distance `radius` of (x, y), each exactly once."""
        if radius < 0:
            return []
        r_sq = radius * radius
        found = []
        for members in self._candidate_buckets(x - radius, y - radius, x + radius, y + radius):
            for key in members:
                px, py = self._positions[key]
                dx = px - x
                dy = py - y
                if dx * dx + dy * dy <= r_sq:
                    found.append(key)
        return found

    def query_radius_with_distance(self, x: float, y: float,
                                   radius: float) -> List[Tuple[Hashable, float]]:
        result = []
        for key in self.query_radius(x, y, radius):
            px, py = self._positions[key]
            result.append((key, math.hypot(px - x, py - y)))
        return result

    def nearest(self, x: float, y: float, radius: float,
                exclude: Optional[Hashable] = None,
                accept: Optional[Callable[[Hashable], bool]] = None
                ) -> Optional[Tuple[Hashable, float]]:
        """Closest key within `radius`, skipping `exclude` and keys `accept` rejects."""
        best = None
        for key, dist in self.query_radius_with_distance(x, y, radius):
            if key == exclude:
                continue
            if best is not None and dist >= best[1]:
                continue
            if accept is not None and not accept(key):
                continue
            best = (key, dist)
        return best
