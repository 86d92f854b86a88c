from bulkadd.services.neighborhood_service import NeighborhoodResolver
from bulkadd.services.place_service import PlaceService

__all__ = ["NeighborhoodResolver", "PlaceService"]
