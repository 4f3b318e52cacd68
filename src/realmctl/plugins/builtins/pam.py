"""Built-in ``pam`` realm: system PAM authentication.

The PAM conversation itself is an injected callable
``(service, username, password) -> bool`` so this module carries no
OS bindings.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from realmctl.domain.schemas import PamProperties
from realmctl.domain.types import RealmType
from realmctl.errors import AuthFailure, UnsupportedOperation
from realmctl.plugins.base import RealmPlugin

if TYPE_CHECKING:
    from realmctl.domain.realm import DomainConfig

logger = logging.getLogger(__name__)

PAM_SERVICE = "realmctl-auth"

PamAuthenticator = Callable[[str, str, str], bool]


class SystemAuthRealm(RealmPlugin):
    """Realm that defers to the host's PAM stack."""

    type = RealmType.PAM.value
    properties_model = PamProperties

    def __init__(
        self, authenticator: PamAuthenticator | None = None, *, service: str = PAM_SERVICE
    ) -> None:
        self._authenticator = authenticator
        self.service = service

    def authenticate(
        self, config: DomainConfig, realm_id: str, username: str, password: str
    ) -> None:
        if self._authenticator is None:
            msg = "no PAM authenticator configured"
            raise UnsupportedOperation(msg, realm_type=self.type)
        try:
            accepted = self._authenticator(self.service, username, password)
        except OSError as exc:
            logger.debug("PAM conversation failed for service %s: %s", self.service, exc)
            raise AuthFailure() from exc
        if not accepted:
            raise AuthFailure()
