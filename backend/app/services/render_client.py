"""
Client du service de rendu vidéo (collaborateur externe).

Le moteur dépose les demandes dans la table render_jobs, consommée par le
worker de rendu ; il n'attend jamais la fin du rendu. L'index unique partiel
sur (event_id, team_id) garantit au plus un job actif par équipe : une
insertion concurrente en double est rejetée par PostgreSQL et signalée
comme "déjà existant".
"""

import uuid
import logging
from typing import List, Optional

from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.render_job import RenderJob
from app.schemas.render import RenderJobSummary, UserClip

logger = logging.getLogger(__name__)


class RenderJobClient:
    """Accès aux jobs de rendu, lié à une session BDD injectée."""

    def __init__(self, db: Session):
        self.db = db

    def list_render_jobs(self, event_id: uuid.UUID) -> List[RenderJobSummary]:
        """Tous les jobs de rendu d'un événement, du plus ancien au plus récent."""
        jobs = self.db.execute(
            select(RenderJob)
            .where(RenderJob.event_id == event_id)
            .order_by(RenderJob.created_at)
        ).scalars().all()
        return [RenderJobSummary.model_validate(j) for j in jobs]

    def create_render_job(
        self,
        event_id: uuid.UUID,
        team_id: uuid.UUID,
        video_template_id: str,
        clips: List[UserClip],
    ) -> Optional[uuid.UUID]:
        """
        Crée un job en statut pending et retourne son ID.
        Retourne None si un job actif existe déjà pour l'équipe (index unique).
        """
        job = RenderJob(
            event_id=event_id,
            team_id=team_id,
            video_template_id=video_template_id,
            user_clips=[c.model_dump(mode="json") for c in clips],
            status="pending",
            progress=0,
        )
        self.db.add(job)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            logger.info("Job de rendu déjà actif pour l'équipe %s, création ignorée", team_id)
            return None

        self.db.refresh(job)
        logger.info("Job de rendu %s créé pour l'équipe %s (%d clips)", job.id, team_id, len(clips))
        return job.id


def get_render_client(db: Session = Depends(get_db)) -> RenderJobClient:
    """Dépendance FastAPI : client de rendu lié à la session de la requête."""
    return RenderJobClient(db)
