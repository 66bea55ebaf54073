"""
Schema creation and bootstrap data.
"""
import logging

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from chat_backend.core.config import settings
from chat_backend.models import Base
from chat_backend.services.auth import create_user, get_user_by_username
from chat_backend.services.channels import create_channel, get_channel_by_name

logger = logging.getLogger(__name__)


def create_tables(engine: Engine) -> None:
    Base.metadata.create_all(bind=engine)


def seed_initial_data(db: Session) -> None:
    """Create the bootstrap user and channels if they are missing."""
    if get_user_by_username(db, settings.SEED_USERNAME) is None:
        create_user(db, settings.SEED_USERNAME, settings.SEED_PASSWORD)
        logger.info(f'Initial user "{settings.SEED_USERNAME}" created.')

    for name in settings.SEED_CHANNELS:
        if get_channel_by_name(db, name) is None:
            create_channel(db, name)
            logger.info(f'Initial channel "{name}" created.')
