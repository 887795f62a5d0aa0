"""Tender Desk: tender discovery feed and bid workspace."""

from .ingestion_pipeline import FeedIngestor
from .state.persistence import open_store
from .state.store import StoreState, TenderStore

__all__ = ["FeedIngestor", "open_store", "StoreState", "TenderStore"]
