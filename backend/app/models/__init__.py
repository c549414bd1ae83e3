# Importe tous les modèles pour enregistrer leurs tables dans Base.metadata
# avant que SQLAlchemy tente de résoudre les clés étrangères inter-modèles.
# Sans cet import, les FK comme stations.event_id → events.id échouent
# avec NoReferencedTableError si event.py n'est pas chargé avant station.py.

from app.models.event import Event  # noqa: F401  doit précéder les autres
from app.models.station import Station, Mission, StationTravelTime  # noqa: F401
from app.models.team import Team, TeamAssignment  # noqa: F401
from app.models.progress import TeamProgress  # noqa: F401
from app.models.route import TeamRoute  # noqa: F401
from app.models.render_job import RenderJob  # noqa: F401
