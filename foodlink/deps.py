from fastapi import Depends

from foodlink.core.config import settings
from foodlink.services.assignments import AssignmentLifecycle
from foodlink.services.donations import DonationLifecycle
from foodlink.services.notifier import Notifier
from foodlink.services.requests import RequestLifecycle

_store_singleton = None


def get_store():
    global _store_singleton
    if _store_singleton is None:
        if settings.use_mongo:
            from foodlink.repos.mongo import MongoStore
            _store_singleton = MongoStore()
        else:
            from foodlink.repos.inmemory import InMemoryStore
            _store_singleton = InMemoryStore()
    return _store_singleton


def get_notifier(store=Depends(get_store)) -> Notifier:
    return Notifier(store)


def get_donations(store=Depends(get_store), notifier: Notifier = Depends(get_notifier)) -> DonationLifecycle:
    return DonationLifecycle(store, notifier)


def get_assignments(store=Depends(get_store), notifier: Notifier = Depends(get_notifier)) -> AssignmentLifecycle:
    return AssignmentLifecycle(store, notifier)


def get_requests(
    store=Depends(get_store),
    notifier: Notifier = Depends(get_notifier),
    assignments: AssignmentLifecycle = Depends(get_assignments),
) -> RequestLifecycle:
    return RequestLifecycle(store, assignments, notifier)
