"""Service layer — realm registry operations returning ServiceResult."""

from realmctl.services.realms import RealmService
from realmctl.services.result import ServiceError, ServiceResult

__all__ = ["RealmService", "ServiceError", "ServiceResult"]
