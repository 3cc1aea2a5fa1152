"""
Composition root for the Guardforce service layer.

Services receive their collaborators explicitly: a Store implementation and
a Settings instance. This module is the one place where production
collaborators are chosen, so tests and jobs can swap either by passing
their own.

Usage:
    # Production wiring (PostgreSQL store, environment settings)
    services = build_services()
    calculation = await services.lead_scoring.calculate_lead_score("lead-001")

    # Test wiring
    services = build_services(store=InMemoryStore(), settings=Settings(database_url="postgresql://test"))
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from guardforce.core.config import Settings, get_settings
from guardforce.core.store import PostgresStore, Store
from guardforce.services.assignments import AssignmentService
from guardforce.services.lead_scoring import LeadScoringService


@dataclass
class ServiceContainer:
    """Services sharing one store and one settings object."""
    store: Store
    settings: Settings
    lead_scoring: LeadScoringService
    assignments: AssignmentService


def build_services(
    store: Optional[Store] = None,
    settings: Optional[Settings] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> ServiceContainer:
    """
    Wire the service graph.

    Args:
        store: Persistence adapter; PostgresStore when omitted.
        settings: Configuration; the cached environment settings when omitted.
        clock: Current-time source for assignment deadlines.

    Returns:
        ServiceContainer: Ready-to-use services.
    """
    settings = settings or get_settings()
    store = store or PostgresStore()

    return ServiceContainer(
        store=store,
        settings=settings,
        lead_scoring=LeadScoringService(store, settings),
        assignments=AssignmentService(store, settings, clock=clock),
    )
