"""Fixed-size 2-D textures of scalars or vectors."""

from __future__ import annotations

import numpy as np


class Texture:
    """A ``w`` x ``h`` grid stored row by row."""

    def __init__(self, w: int = 1, h: int = 1, channels: int = 1, dtype=float) -> None:
        self.w = w
        self.h = h
        self.channels = channels
        self.dtype = dtype
        self.initialize()

    def initialize(self) -> None:
        """Reallocate zeroed storage for the current size."""
        n = self.w * self.h
        shape = (n,) if self.channels == 1 else (n, self.channels)
        self.data = np.zeros(shape, dtype=self.dtype)

    def _index(self, x: int, y: int) -> int:
        if not (0 <= x < self.w and 0 <= y < self.h):
            raise IndexError(f"texel ({x}, {y}) outside {self.w}x{self.h} texture")
        return y * self.w + x

    def set(self, x: int, y: int, value) -> None:
        self.data[self._index(x, y)] = value

    def get(self, x: int, y: int):
        item = self.data[self._index(x, y)]
        return item.item() if self.channels == 1 else item.copy()

    def eval(self, u: float, v: float):
        """Nearest texel for coordinates in [0, 1], clamped at the borders."""
        x = max(min(int(u * self.w), self.w - 1), 0)
        y = max(min(int(v * self.h), self.h - 1), 0)
        return self.get(x, y)