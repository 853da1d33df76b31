"""
Record source interface for index ingestion.

This module defines the source protocol the builder pulls records from and
provides simple in-memory and synthetic implementations used for testing
and demos.
"""

from abc import ABC, abstractmethod
from typing import Iterable, Iterator, Tuple
import logging
import random

from .quadtree import Record


logger = logging.getLogger(__name__)


class RecordSource(ABC):
    """
    Abstract base class for record sources.

    A source produces (key, latitude, longitude) triples as Records, in a
    stable order. The builder consumes it once during the load phase.
    """

    @abstractmethod
    def records(self) -> Iterator[Record]:
        """
        Iterate over the records to index.

        Returns:
            Iterator of Record objects
        """
        pass

    def __iter__(self) -> Iterator[Record]:
        return self.records()


class IterableSource(RecordSource):
    """
    Source wrapper for plain (key, latitude, longitude) triples.

    Triples whose coordinates are not finite numbers are logged and skipped.
    """

    def __init__(self, triples: Iterable[Tuple[str, float, float]]):
        self._triples = list(triples)

    def records(self) -> Iterator[Record]:
        for key, lat, lon in self._triples:
            try:
                record = Record.of(str(key), float(lat), float(lon))
            except (TypeError, ValueError) as e:
                logger.warning("Skipping record %r: %s", key, e)
                continue
            yield record

    def __len__(self) -> int:
        return len(self._triples)


class GridSource(RecordSource):
    """
    Mock source producing a regular lattice of points.

    Points run from (-90, -180) to (90, 180) inclusive in steps of
    step_degrees; keys are "grid_<lat>_<lon>".
    """

    def __init__(self, step_degrees: float = 10.0):
        if step_degrees <= 0:
            raise ValueError("step_degrees must be positive")
        self.step = step_degrees

    def records(self) -> Iterator[Record]:
        lat_steps = int(180.0 / self.step)
        lon_steps = int(360.0 / self.step)
        for i in range(lat_steps + 1):
            lat = -90.0 + i * self.step
            for j in range(lon_steps + 1):
                lon = -180.0 + j * self.step
                yield Record.of(f"grid_{lat:g}_{lon:g}", lat, lon)


class RandomSource(RecordSource):
    """
    Mock source producing deterministic pseudo-random points.

    Latitudes are drawn uniformly in [-90, 90] and longitudes in
    [-180, 180]; the same seed always yields the same records.
    """

    def __init__(self, count: int, seed: int = 42):
        if count < 0:
            raise ValueError("count must be non-negative")
        self.count = count
        self.seed = seed

    def records(self) -> Iterator[Record]:
        rng = random.Random(self.seed)
        for i in range(self.count):
            lat = rng.uniform(-90.0, 90.0)
            lon = rng.uniform(-180.0, 180.0)
            yield Record.of(f"random_{i}", lat, lon)
