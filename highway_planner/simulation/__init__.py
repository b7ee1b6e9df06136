"""Offline closed-loop simulation."""

from .highway_simulator import HighwaySimulator, TrafficVehicle

__all__ = ['HighwaySimulator', 'TrafficVehicle']
