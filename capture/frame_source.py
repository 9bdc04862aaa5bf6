"""Frame source abstraction for the undistortion pipeline."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterator, Optional

from contracts import Frame


class FrameSource(ABC):
    @abstractmethod
    def read_frame(self) -> Optional[Frame]:
        """Read the next frame, or None when the source is exhausted."""

    @abstractmethod
    def close(self) -> None:
        """Release the source."""

    @property
    def fps(self) -> float:
        """Nominal frame rate, 0.0 when the source does not know it."""
        return 0.0

    def frames(self, limit: Optional[int] = None) -> Iterator[Frame]:
        count = 0
        while limit is None or count < limit:
            frame = self.read_frame()
            if frame is None:
                return
            count += 1
            yield frame

    def __enter__(self) -> "FrameSource":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
