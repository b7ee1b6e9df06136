import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from highway_planner.core.data_structures import VehicleObservation
from highway_planner.core.road_frame import RoadFrameConverter, make_loop_road


LOOP_RADIUS = 500.0
LOOP_POINTS = 120


@pytest.fixture
def loop_road():
    """Circular loop of radius 500 m sampled every 3 degrees."""
    return make_loop_road(LOOP_RADIUS, LOOP_POINTS)


@pytest.fixture
def road_frame(loop_road):
    points, max_arc_length = loop_road
    return RoadFrameConverter(points, max_arc_length=max_arc_length)


def make_vehicle(s, lane, speed=0.0, vehicle_id=0, lane_width=4.0):
    """Vehicle centered in a lane and driving along the road."""
    return VehicleObservation(
        id=vehicle_id,
        x=0.0,
        y=0.0,
        vx=speed,
        vy=0.0,
        s=s,
        d=lane_width * (lane + 0.5),
    )
