"""Import all models to register them with SQLAlchemy metadata."""
from app.models.base import Base
from app.models.vessel import Vessel
from app.models.vessel_position import VesselPosition
from app.models.port import Port
from app.models.voyage_document import VoyageDocument
from app.models.port_watch import PortWatch
from app.models.port_alert import PortAlert
