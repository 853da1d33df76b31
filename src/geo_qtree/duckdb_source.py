"""
DuckDB-based record source for CSV and Parquet point files.

This module implements a real source that loads a tabular file into an
in-memory DuckDB table and streams (key, latitude, longitude) rows to the
index builder.
"""

from pathlib import Path
from typing import Iterator, Optional, Tuple
import logging

import duckdb

from .quadtree import Record
from .sources import RecordSource


logger = logging.getLogger(__name__)

_READERS = {
    ".csv": "read_csv_auto",
    ".tsv": "read_csv_auto",
    ".txt": "read_csv_auto",
    ".parquet": "read_parquet",
}


def _quote_identifier(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def _quote_literal(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


class DuckDBRecordSource(RecordSource):
    """
    Record source backed by DuckDB.

    Loads the file once at construction; records() may be called any number
    of times. Rows missing a key or a coordinate are skipped.
    """

    def __init__(
        self,
        path: Path,
        key_field: str = "key",
        lat_field: str = "latitude",
        lon_field: str = "longitude",
        batch_size: int = 10000,
    ):
        """
        Initialize the DuckDB source.

        Args:
            path: CSV (.csv, .tsv, .txt) or Parquet (.parquet) file
            key_field: Column holding the record key
            lat_field: Column holding latitude in degrees
            lon_field: Column holding longitude in degrees
            batch_size: Rows fetched per round trip
        """
        path = Path(path)
        reader = _READERS.get(path.suffix.lower())
        if reader is None:
            raise ValueError(f"Unsupported file type: {path.suffix}")
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")

        self.path = path
        self.key_field = key_field
        self.lat_field = lat_field
        self.lon_field = lon_field
        self.batch_size = batch_size

        self._con: Optional[duckdb.DuckDBPyConnection] = duckdb.connect(":memory:")
        self._con.execute(f"""
            CREATE TABLE points AS
            SELECT * FROM {reader}({_quote_literal(str(path))})
        """)
        self._check_columns()

    def _check_columns(self) -> None:
        """Fail early if the configured columns are not in the file."""
        columns = {
            row[0] for row in self._connection().execute("DESCRIBE points").fetchall()
        }
        missing = [
            name for name in (self.key_field, self.lat_field, self.lon_field)
            if name not in columns
        ]
        if missing:
            self.close()
            raise ValueError(f"Columns {missing} not found in {self.path}")

    def _connection(self) -> duckdb.DuckDBPyConnection:
        if self._con is None:
            raise ValueError("Source is closed")
        return self._con

    def _columns(self) -> Tuple[str, str, str]:
        return (
            _quote_identifier(self.key_field),
            _quote_identifier(self.lat_field),
            _quote_identifier(self.lon_field),
        )

    def _usable_rows(self) -> str:
        """SQL condition selecting rows with a key and finite coordinates."""
        key, lat, lon = self._columns()
        return (
            f"{key} IS NOT NULL"
            f" AND isfinite(TRY_CAST({lat} AS DOUBLE))"
            f" AND isfinite(TRY_CAST({lon} AS DOUBLE))"
        )

    def records(self) -> Iterator[Record]:
        key, lat, lon = self._columns()
        con = self._connection()

        (skipped,) = con.execute(
            f"SELECT count(*) FROM points WHERE NOT coalesce({self._usable_rows()}, false)"
        ).fetchone()
        if skipped:
            logger.warning(
                "Skipping %d rows of %s without a key or finite coordinates",
                skipped, self.path,
            )

        result = con.execute(f"""
            SELECT CAST({key} AS VARCHAR), TRY_CAST({lat} AS DOUBLE), TRY_CAST({lon} AS DOUBLE)
            FROM points
            WHERE {self._usable_rows()}
        """)

        while True:
            rows = result.fetchmany(self.batch_size)
            if not rows:
                break
            for key_value, lat_value, lon_value in rows:
                yield Record.of(key_value, lat_value, lon_value)

    def get_record_count(self) -> int:
        """Number of rows records() will yield."""
        (count,) = self._connection().execute(
            f"SELECT count(*) FROM points WHERE {self._usable_rows()}"
        ).fetchone()
        return count

    def close(self) -> None:
        """Close the database connection."""
        if self._con is not None:
            self._con.close()
            self._con = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


def create_source_from_file(
    path: Path,
    key_field: str = "key",
    lat_field: str = "latitude",
    lon_field: str = "longitude",
) -> DuckDBRecordSource:
    """
    Convenience function to create a source from a point file.

    Args:
        path: CSV or Parquet file
        key_field: Key column name
        lat_field: Latitude column name
        lon_field: Longitude column name

    Returns:
        Configured DuckDBRecordSource instance
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Could not find point file {path}")

    logger.info("Loading point records from %s", path)
    return DuckDBRecordSource(path, key_field, lat_field, lon_field)
