from backend.app.services.archive.producer import ArchiveProducer

__all__ = ["ArchiveProducer"]
