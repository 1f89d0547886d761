# HSE Guardian: database models
# Import all models here for SQLAlchemy discovery

from hse_guardian.models.app_state import AppState     # noqa
