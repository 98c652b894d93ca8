"""Conversion between absolute block positions and the HUD ("pretty") coordinates"""

from __future__ import annotations

from typing import NamedTuple


class BlockPos(NamedTuple):
    x: int
    y: int
    z: int


def world_center(map_size_x: int, map_size_z: int) -> tuple[int, int]:
    """World center offset on the X/Z plane (half the map size)"""
    return map_size_x // 2, map_size_z // 2


def absolute_to_pretty(pos: BlockPos, center: tuple[int, int]) -> BlockPos:
    cx, cz = center
    return BlockPos(pos.x - cx, pos.y, pos.z - cz)


def pretty_to_absolute(pos: BlockPos, center: tuple[int, int]) -> BlockPos:
    cx, cz = center
    return BlockPos(pos.x + cx, pos.y, pos.z + cz)


def format_pretty(pos: BlockPos, center: tuple[int, int]) -> str:
    """Format an absolute position the way players see it in the HUD"""
    x, y, z = absolute_to_pretty(pos, center)
    return f"({x}, {y}, {z})"
