from .app import TripTicketApp

__all__ = ["TripTicketApp"]
