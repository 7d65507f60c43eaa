"""RS256 JWT construction for client assertions and OIDC request objects."""
import time
import uuid
from typing import Optional

import jwt

from tpp_simulator.config import Settings
from tpp_simulator.errors import ConfigError
from tpp_simulator.services.keys import load_private_key

ALGORITHM = "RS256"

CLIENT_ASSERTION_TTL_SECONDS = 600
REQUEST_OBJECT_TTL_SECONDS = 60


class JwtSigner:
    """
    Signs the JWTs the sandbox's OIDC flow requires.

    The private key is resolved on first use and reused for the lifetime
    of the signer.
    """

    def __init__(self, settings: Settings, private_key: Optional[str] = None):
        """
        Initialize the signer.

        Args:
            settings: Application settings (client ID and key material)
            private_key: PEM key to use instead of the configured one
        """
        self.settings = settings
        self._private_key = private_key

    @property
    def private_key(self) -> str:
        if self._private_key is None:
            self._private_key = load_private_key(self.settings)
        return self._private_key

    def _sign(self, payload: dict) -> str:
        try:
            return jwt.encode(
                payload,
                self.private_key,
                algorithm=ALGORITHM,
                headers={"typ": "JWT"},
            )
        except (jwt.PyJWTError, ValueError) as e:
            raise ConfigError(f"Invalid private key: {e}") from e

    def build_client_assertion(self, audience: str) -> str:
        """
        Build the RFC 7523 client assertion for a token endpoint.

        Args:
            audience: Token endpoint URL the assertion is presented to

        Returns:
            Signed JWT valid for ten minutes
        """
        client_id = self.settings.client_id()
        now = int(time.time())

        payload = {
            "iss": client_id,
            "sub": client_id,
            "aud": audience,
            "jti": str(uuid.uuid4()),
            "iat": now,
            "exp": now + CLIENT_ASSERTION_TTL_SECONDS,
        }
        return self._sign(payload)

    def build_request_object_jwt(
        self,
        token_endpoint: str,
        consent_id: str,
        redirect_uri: str,
        scope: str,
    ) -> str:
        """
        Build the request object binding an authorization request to a consent.

        The consent ID is required as the essential openbanking_intent_id
        claim of the ID token.
        """
        client_id = self.settings.client_id()
        issued_at = int(time.time()) - 1

        payload = {
            "claims": {
                "id_token": {
                    "openbanking_intent_id": {
                        "essential": True,
                        "value": consent_id,
                    }
                }
            },
            "client_id": client_id,
            "iss": client_id,
            "sub": client_id,
            "aud": token_endpoint,
            "jti": str(uuid.uuid4()),
            "redirect_uri": redirect_uri,
            "scope": scope,
            "response_type": "code",
            "iat": issued_at,
            "exp": issued_at + REQUEST_OBJECT_TTL_SECONDS,
        }
        return self._sign(payload)
