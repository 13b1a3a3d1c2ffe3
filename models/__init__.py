from models.incident import Channel, Incident, IncidentUpdate, Notification
from models.message import RenderedMessage

__all__ = ["Channel", "Incident", "IncidentUpdate", "Notification", "RenderedMessage"]
