"""
Déclenchement de la vidéo souvenir en fin de chasse (CompletionCoordinator).

Best-effort : toute erreur du service de rendu est journalisée puis ignorée,
la fin de partie d'une équipe ne dépend jamais du rendu.
"""

import uuid
import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.config import settings
from app.models.event import Event
from app.models.progress import TeamProgress
from app.models.render_job import ACTIVE_RENDER_STATUSES
from app.models.team import Team
from app.schemas.render import UserClip

logger = logging.getLogger(__name__)


def collect_clips(progress: Iterable[TeamProgress]) -> List[UserClip]:
    """Transforme les clips des stations validées en descripteurs pour le rendu."""
    clips = []
    for p in progress:
        if p.status != "completed":
            continue
        for file_path in p.user_clips or []:
            clips.append(
                UserClip(
                    id=f"{p.team_id}-{p.station_id}",
                    file_path=file_path,
                    duration_ms=settings.DEFAULT_CLIP_DURATION_MS,
                    station_id=p.station_id,
                    timestamp=p.completion_time or datetime.now(timezone.utc),
                )
            )
    return clips


def trigger_render_if_needed(db: Session, team: Team, renderer) -> Optional[uuid.UUID]:
    """
    Demande au plus un rendu vidéo par équipe.

    Étapes :
    1. Un job pending/processing/completed existe déjà → rien à faire
    2. Pas de gabarit vidéo configuré sur l'événement → rien à faire
    3. Aucun clip sur les stations validées → rien à faire
    4. Sinon → une seule demande de création de job

    Retourne l'ID du job créé, ou None.
    """
    try:
        existing = [
            job for job in renderer.list_render_jobs(team.event_id)
            if job.team_id == team.id and job.status in ACTIVE_RENDER_STATUSES
        ]
        if existing:
            logger.info("Job de rendu déjà existant pour l'équipe %s (%s)", team.id, existing[0].status)
            return None

        event = db.get(Event, team.event_id)
        template_id = event.video_template_id if event else None
        if not template_id:
            logger.info("Aucun gabarit vidéo pour l'événement %s : rendu ignoré", team.event_id)
            return None

        progress = db.execute(
            select(TeamProgress)
            .where(TeamProgress.team_id == team.id, TeamProgress.status == "completed")
            .order_by(TeamProgress.completion_time)
        ).scalars().all()
        clips = collect_clips(progress)
        if not clips:
            logger.info("Aucun clip pour l'équipe %s : rendu ignoré", team.id)
            return None

        return renderer.create_render_job(team.event_id, team.id, template_id, clips)

    except Exception as exc:
        logger.error("Erreur lors du déclenchement du rendu pour l'équipe %s : %s", team.id, exc, exc_info=True)
        return None
