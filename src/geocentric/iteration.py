"""
geocentric.iteration — Overlap-Safe Traversal of Coordinate Buffers
====================================================================

Batched transforms read (λ,φ[,h]) or (X,Y,Z) tuples from a flat source
buffer and write tuples of possibly different length to a destination
buffer which may be the same array.  Before anything is written the overlap
is classified so that no source tuple is overwritten before it is read::

    src  ──┬──┬──┬──┬──┐
           │p0│p1│p2│p3│        stride = source dimension
    dst  ──┴─┬┴──┴┬─┴──┴┬──┐
             │ p0 │ p1  │… │    stride = target dimension

Points are processed in blocks: each block is copied out of the source,
transformed vectorised, then written.  The classification below guarantees
that writing block k never clobbers a block not yet read.
"""

from enum import Enum
from typing import Callable

import numpy as np
from numpy.typing import NDArray

from .utils import BLOCK_SIZE


class IterationStrategy(Enum):
    """Order in which points of an aliased buffer must be visited."""
    ASCENDING = "ascending"
    DESCENDING = "descending"
    BUFFER_SOURCE = "buffer_source"

    @staticmethod
    def suggest(src_off: int, src_dim: int,
                dst_off: int, dst_dim: int, num_pts: int) -> "IterationStrategy":
        """Classify the overlap of two ranges inside the same buffer.

        Parameters
        ----------
        src_off, dst_off : int — offsets of the first coordinate
        src_dim, dst_dim : int — coordinates per point (the strides)
        num_pts : int — number of points

        Returns
        -------
        strategy : IterationStrategy
            ASCENDING if writing point j−1 never reaches the start of point j,
            DESCENDING if writing point j+1 never reaches back into point j,
            BUFFER_SOURCE otherwise (copy the source range first).
        """
        if num_pts <= 1:
            return IterationStrategy.ASCENDING
        if (dst_off >= src_off + num_pts * src_dim
                or dst_off + num_pts * dst_dim <= src_off):
            return IterationStrategy.ASCENDING      # disjoint ranges
        # Gap between the end of written point j−1 and the start of
        # unread point j is delta + j·grow, linear in j ∈ [1, num_pts−1].
        delta = dst_off - src_off
        grow = dst_dim - src_dim
        first = delta + grow
        last = delta + (num_pts - 1) * grow
        if first <= 0 and last <= 0:
            return IterationStrategy.ASCENDING
        if first >= 0 and last >= 0:
            return IterationStrategy.DESCENDING
        return IterationStrategy.BUFFER_SOURCE


def _check_range(buf: NDArray, off: int, dim: int, num_pts: int, name: str):
    if buf.ndim != 1:
        raise ValueError(f"{name} must be a flat 1-D buffer, got {buf.ndim}-D")
    if off < 0 or off + num_pts * dim > buf.shape[0]:
        raise IndexError(
            f"{name}[{off}:{off + num_pts * dim}] is outside a buffer of "
            f"length {buf.shape[0]}")


def transform_blocks(fn: Callable[[NDArray], NDArray],
                     src: NDArray, src_off: int, src_dim: int,
                     dst: NDArray, dst_off: int, dst_dim: int,
                     num_pts: int, block_size: int = BLOCK_SIZE) -> IterationStrategy:
    """Apply `fn` to every point of `src` and store the results in `dst`.

    `fn` maps a (k, src_dim) array to a (k, dst_dim) array.  Exceptions
    raised by `fn` propagate and abort the call; blocks already written
    stay written.

    Returns
    -------
    strategy : IterationStrategy — the traversal that was used
    """
    _check_range(src, src_off, src_dim, num_pts, "source")
    _check_range(dst, dst_off, dst_dim, num_pts, "destination")
    if num_pts <= 0:
        return IterationStrategy.ASCENDING

    strategy = IterationStrategy.ASCENDING
    if src is dst:
        strategy = IterationStrategy.suggest(src_off, src_dim, dst_off, dst_dim, num_pts)
    elif np.may_share_memory(src, dst):
        # Different views of one buffer: offsets are not comparable.
        strategy = IterationStrategy.BUFFER_SOURCE

    if strategy is IterationStrategy.BUFFER_SOURCE:
        src = src[src_off:src_off + num_pts * src_dim].copy()
        src_off = 0

    starts = range(0, num_pts, block_size)
    if strategy is IterationStrategy.DESCENDING:
        starts = reversed(starts)
    for i in starts:
        k = min(block_size, num_pts - i)
        a = src_off + i * src_dim
        block = np.array(src[a:a + k * src_dim], dtype=np.float64).reshape(k, src_dim)
        out = fn(block)
        b = dst_off + i * dst_dim
        dst[b:b + k * dst_dim] = out.reshape(-1)
    return strategy
