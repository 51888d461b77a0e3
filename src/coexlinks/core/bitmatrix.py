"""
Sparse gene x gene matrix of experiment bitsets.

Each cell (i, j) of a BitSupportMatrix holds a bit vector whose width is the
number of experiments in the analysis: bit k is set when experiment k reported
a link of the matrix's sign between row gene i and column gene j. The number
of set bits in a cell is the *support* for that link.

Biological Context:
    Gene universes for a single taxon exceed 40,000 genes, so a dense
    genes x genes x experiments array would need tens of gigabytes even as
    packed bits. Only a small fraction of gene pairs are ever linked, so cells
    are allocated lazily, one dictionary per row.

Engineering Design:
    - Bitsets are Python ints (arbitrary width, C-speed bit operations)
    - A running per-cell support count and a matrix-wide total are updated on
      every set, so row summaries never rescan bitsets
    - Axis lookups by gene id are explicit: `row_index`/`col_index` raise
      GeneNotFoundError, while `set_bit` reports absence by returning False
    - Fill is asymmetric: a link lives in exactly the (row, column)
      orientation it was set in; nothing is mirrored

Examples:
    >>> m = BitSupportMatrix([1, 2, 3], [1, 2, 3], n_bits=4)
    >>> m.set_bit(1, 2, 0)
    True
    >>> m.set_bit(1, 2, 3)
    True
    >>> m.row_bit_count(m.row_index(1)).tolist()
    [0, 2, 0]
    >>> m.set_bit(1, 99, 0)
    False
"""

from __future__ import annotations

from typing import Dict, Hashable, Iterator, List, Sequence, Tuple

import numpy as np
import pandas as pd

from coexlinks.exceptions import GeneNotFoundError

__all__ = ['BitSupportMatrix']


class BitSupportMatrix:
    """
    Named rows x columns matrix whose cells are fixed-width bitsets.

    Attributes:
        row_names: Gene ids on the row axis (unique, dense index order)
        col_names: Gene ids on the column axis (unique, dense index order)
        n_bits: Width of every cell's bitset (number of experiments)

    Invariants:
        - Every set bit index k satisfies 0 <= k < n_bits
        - cell_count(i, j) == popcount(cell(i, j)) at all times
        - total_bit_count() == sum of all cell counts
        - Self-pairs are never set through set_bit
    """

    def __init__(
        self,
        row_names: Sequence[Hashable],
        col_names: Sequence[Hashable],
        n_bits: int,
    ):
        """
        Allocate an empty matrix.

        Args:
            row_names: Gene ids for the rows; must be unique
            col_names: Gene ids for the columns; must be unique
            n_bits: Bitset width (number of experiments); must be >= 0

        Raises:
            ValueError: If an axis contains duplicate names or n_bits < 0
        """
        if n_bits < 0:
            raise ValueError(f"n_bits must be non-negative, got {n_bits}")

        self._row_names = pd.Index(list(row_names))
        self._col_names = pd.Index(list(col_names))

        if not self._row_names.is_unique:
            raise ValueError("row names must be unique")
        if not self._col_names.is_unique:
            raise ValueError("column names must be unique")

        self._n_bits = int(n_bits)

        # pd.Index.get_loc is slow for scalar lookups in tight loops
        self._row_lookup: Dict[Hashable, int] = {name: i for i, name in enumerate(self._row_names)}
        self._col_lookup: Dict[Hashable, int] = {name: j for j, name in enumerate(self._col_names)}

        n_rows = len(self._row_names)
        self._bits: List[Dict[int, int]] = [dict() for _ in range(n_rows)]
        self._counts: List[Dict[int, int]] = [dict() for _ in range(n_rows)]
        self._total = 0

    @property
    def row_names(self) -> pd.Index:
        """Gene ids on the row axis."""
        return self._row_names

    @property
    def col_names(self) -> pd.Index:
        """Gene ids on the column axis."""
        return self._col_names

    @property
    def n_bits(self) -> int:
        return self._n_bits

    @property
    def rows(self) -> int:
        return len(self._row_names)

    @property
    def columns(self) -> int:
        return len(self._col_names)

    @property
    def shape(self) -> Tuple[int, int]:
        return self.rows, self.columns

    def contains_row_name(self, name: Hashable) -> bool:
        return name in self._row_lookup

    def contains_col_name(self, name: Hashable) -> bool:
        return name in self._col_lookup

    def row_index(self, name: Hashable) -> int:
        """Index of a row gene id; raises GeneNotFoundError if absent."""
        try:
            return self._row_lookup[name]
        except KeyError:
            raise GeneNotFoundError(name, axis="row") from None

    def col_index(self, name: Hashable) -> int:
        """Index of a column gene id; raises GeneNotFoundError if absent."""
        try:
            return self._col_lookup[name]
        except KeyError:
            raise GeneNotFoundError(name, axis="column") from None

    def row_name(self, index: int) -> Hashable:
        return self._row_names[index]

    def col_name(self, index: int) -> Hashable:
        return self._col_names[index]

    def set(self, row: int, col: int, bit: int) -> bool:
        """
        Set bit `bit` of cell (row, col) by position.

        Returns:
            True if the bit was newly set, False if it was already set.

        Raises:
            IndexError: If row, col or bit are out of range
        """
        if not 0 <= row < self.rows:
            raise IndexError(f"row {row} out of range [0, {self.rows})")
        if not 0 <= col < self.columns:
            raise IndexError(f"column {col} out of range [0, {self.columns})")
        if not 0 <= bit < self._n_bits:
            raise IndexError(f"bit {bit} out of range [0, {self._n_bits})")

        mask = 1 << bit
        row_bits = self._bits[row]
        current = row_bits.get(col, 0)
        if current & mask:
            return False

        row_bits[col] = current | mask
        row_counts = self._counts[row]
        row_counts[col] = row_counts.get(col, 0) + 1
        self._total += 1
        return True

    def set_bit(self, row_name: Hashable, col_name: Hashable, bit: int) -> bool:
        """
        Set bit `bit` of the cell addressed by gene ids.

        Absent ids are an expected condition (the link universe may be larger
        than the gene axis), so they are reported by the return value rather
        than raised.

        Returns:
            False if either id is absent from its axis, True otherwise.
            Setting an already-set bit is idempotent and returns True.
        """
        row = self._row_lookup.get(row_name)
        col = self._col_lookup.get(col_name)
        if row is None or col is None:
            return False
        self.set(row, col, bit)
        return True

    def is_set(self, row: int, col: int, bit: int) -> bool:
        return bool(self._bits[row].get(col, 0) >> bit & 1)

    def get_bits(self, row: int, col: int) -> List[int]:
        """Experiment indexes set in cell (row, col), ascending."""
        value = self._bits[row].get(col, 0)
        return [k for k in range(self._n_bits) if value >> k & 1]

    def bit_count(self, row: int, col: int) -> int:
        """Support of one cell."""
        return self._counts[row].get(col, 0)

    def row_bit_count(self, row: int) -> np.ndarray:
        """
        Per-column support for one row.

        Built from the running counts, so the cost is O(columns) for the
        output array plus O(non-empty cells in the row).

        Returns:
            int array of length `columns`; entry j is popcount(cell(row, j))
        """
        counts = np.zeros(self.columns, dtype=np.int32)
        row_counts = self._counts[row]
        if row_counts:
            cols = np.fromiter(row_counts.keys(), dtype=np.int64, count=len(row_counts))
            vals = np.fromiter(row_counts.values(), dtype=np.int32, count=len(row_counts))
            counts[cols] = vals
        return counts

    def iter_row_cells(self, row: int) -> Iterator[Tuple[int, int]]:
        """Yield (col, support) for the non-empty cells of a row, by column."""
        row_counts = self._counts[row]
        for col in sorted(row_counts):
            yield col, row_counts[col]

    def total_bit_count(self) -> int:
        """Number of set bits across the whole matrix."""
        return self._total

    def __repr__(self) -> str:
        n_cells = sum(len(r) for r in self._counts)
        return (
            f"BitSupportMatrix({self.rows} x {self.columns}, {self._n_bits} bits)\n"
            f"  Non-empty cells: {n_cells}\n"
            f"  Set bits: {self._total}"
        )
