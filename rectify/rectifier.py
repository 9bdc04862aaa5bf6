"""Rectification interface."""

from __future__ import annotations

from abc import ABC, abstractmethod

from contracts import Frame
from rectify.camera_pair import PairSnapshot


class Rectifier(ABC):
    @abstractmethod
    def rectify(self, frame: Frame, snapshot: PairSnapshot) -> Frame:
        """Rectify an input frame for the given camera pair."""
