from .town_snapshot import TownSnapshot

__all__ = ["TownSnapshot"]
