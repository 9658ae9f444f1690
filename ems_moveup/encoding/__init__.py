from ems_moveup.encoding.base import StateEncoder
from ems_moveup.encoding.encoders import BasicStateEncoder, StationOccupancyEncoder

__all__ = ["StateEncoder", "BasicStateEncoder", "StationOccupancyEncoder"]
