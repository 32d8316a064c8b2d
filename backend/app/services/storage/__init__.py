from backend.app.services.storage.local import LocalStorageService, archive_name
from backend.app.services.storage.housekeeping import Housekeeper, age_sweep, sweep

__all__ = ["LocalStorageService", "archive_name", "Housekeeper", "age_sweep", "sweep"]
