"""Geometry helpers for CAD drawings."""

from src.core.cad.geometry.transform import Affine2D

__all__ = ["Affine2D"]
