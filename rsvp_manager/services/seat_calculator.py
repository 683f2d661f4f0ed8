"""
Seat position geometry for table shapes

Positions are relative to the table centre in a unit box (-0.5..0.5 on
both axes). Angles are in degrees, 0 meaning the seat faces down onto the
table from above.
"""

import math
from dataclasses import dataclass
from typing import List, Optional

SHAPES = ("square", "circle", "rectangle", "oval")
ARRANGEMENTS = ("even", "bride-side", "sides-only", "custom")

@dataclass
class SeatPosition:
    seat_number: int
    x: float
    y: float
    angle: float
    side: Optional[str] = None  # "bride" / "groom" for bride-side rectangles

    def to_dict(self) -> dict:
        return {
            "seat_number": self.seat_number,
            "x": self.x,
            "y": self.y,
            "angle": self.angle,
            "side": self.side,
        }

def get_available_arrangements(shape: str) -> List[str]:
    """Arrangements that make sense for a table shape"""
    if shape == "rectangle":
        return ["even", "bride-side", "sides-only"]
    return ["even"]

def _round_positions(radius_x: float, radius_y: float, capacity: int) -> List[SeatPosition]:
    positions = []
    for i in range(capacity):
        angle = (i / capacity) * 360
        radians = math.radians(angle - 90)  # first seat at the top
        positions.append(SeatPosition(
            seat_number=i + 1,
            x=math.cos(radians) * radius_x,
            y=math.sin(radians) * radius_y,
            angle=angle,
        ))
    return positions

def _edge_spacing(index: int, count: int) -> float:
    return index / (count - 1) if count > 1 else 0.5

def _two_edge_positions(capacity: int, label_sides: bool) -> List[SeatPosition]:
    top_count = math.ceil(capacity / 2)
    bottom_count = capacity - top_count
    positions = []

    for i in range(top_count):
        spacing = _edge_spacing(i, top_count)
        positions.append(SeatPosition(
            seat_number=i + 1,
            x=-0.4 + spacing * 0.8,
            y=-0.5,
            angle=0,
            side="bride" if label_sides else None,
        ))

    for i in range(bottom_count):
        spacing = _edge_spacing(i, bottom_count)
        positions.append(SeatPosition(
            seat_number=top_count + i + 1,
            x=0.4 - spacing * 0.8,
            y=0.5,
            angle=180,
            side="groom" if label_sides else None,
        ))

    return positions

def calculate_seat_positions(shape: str, capacity: int, arrangement: str = "even") -> List[SeatPosition]:
    """Place `capacity` seats around a table of the given shape"""
    if capacity <= 0:
        return []

    # bride-side only exists for rectangles; sides-only and custom share even placement
    label_sides = arrangement == "bride-side" and shape == "rectangle"

    if shape == "circle":
        return _round_positions(0.5, 0.5, capacity)
    if shape == "oval":
        return _round_positions(0.5, 0.45, capacity)
    if shape in ("square", "rectangle"):
        return _two_edge_positions(capacity, label_sides)

    return []

def seat_relative_to_absolute(
    relative_x: float,
    relative_y: float,
    table_x: float,
    table_y: float,
    table_width: float,
    table_height: float,
    rotation: float = 0
) -> tuple:
    """Convert a relative seat position into floor plan coordinates"""
    scaled_x = relative_x * table_width
    scaled_y = relative_y * table_height

    radians = math.radians(rotation)
    rotated_x = scaled_x * math.cos(radians) - scaled_y * math.sin(radians)
    rotated_y = scaled_x * math.sin(radians) + scaled_y * math.cos(radians)

    return (
        table_x + table_width / 2 + rotated_x,
        table_y + table_height / 2 + rotated_y,
    )
