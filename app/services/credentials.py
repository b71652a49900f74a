import json
import logging
import threading
import time
from typing import Callable, Optional

from jose import jwk
from jose.constants import ALGORITHMS
from jose.exceptions import JOSEError
from jose.utils import base64url_encode

from app.core.exceptions import ConfigurationError, CryptoError

logger = logging.getLogger(__name__)

# A Apple aceita o token por 1 hora; renovamos antes
TOKEN_TTL_SECONDS = 50 * 60


def _b64_json(data: dict) -> bytes:
    return base64url_encode(json.dumps(data, separators=(",", ":")).encode("utf-8"))


class CredentialManager:
    """
    Assinatura ES256 dos tokens do APNs, com cache.

    Uma instância por processo (criada no lifespan do FastAPI). A chave só é
    importada na primeira chamada de get_token() e o token é reaproveitado
    enquanto tiver menos de ``ttl`` segundos.
    """

    def __init__(
        self,
        key_id: Optional[str],
        team_id: Optional[str],
        private_key: Optional[str],
        ttl: int = TOKEN_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.key_id = key_id
        self.team_id = team_id
        self._private_key = private_key
        self.ttl = ttl
        self._clock = clock

        self._lock = threading.Lock()
        self._signing_key = None
        self._token: Optional[str] = None
        self._issued_at = 0.0

    @property
    def configured(self) -> bool:
        return bool(self.key_id and self.team_id and self._private_key)

    def get_token(self) -> str:
        # O lock garante uma única assinatura por janela, mesmo com chamadas concorrentes
        with self._lock:
            now = self._clock()
            if self._token and now - self._issued_at < self.ttl:
                return self._token

            token = self._sign(int(now))
            self._token = token
            self._issued_at = now
            logger.info(f"🔑 Novo token APNs gerado (kid={self.key_id})")
            return token

    def _load_key(self):
        if not self.configured:
            raise ConfigurationError("Credenciais APNs não configuradas (APNS_KEY_ID, APNS_TEAM_ID, APNS_PRIVATE_KEY)")

        if self._signing_key is None:
            # Variáveis de ambiente costumam trazer o PEM com "\n" literal
            pem = self._private_key.replace("\\n", "\n").strip()
            try:
                key = jwk.construct(pem, algorithm=ALGORITHMS.ES256)
            except (JOSEError, ValueError, TypeError) as e:
                raise CryptoError(f"Chave privada APNs inválida: {e}") from e

            curve = getattr(key.prepared_key, "curve", None)
            if curve is None or curve.name != "secp256r1":
                raise CryptoError("A chave APNs precisa ser uma chave EC P-256")
            self._signing_key = key
        return self._signing_key

    def _sign(self, issued_at: int) -> str:
        key = self._load_key()

        header = {"alg": ALGORITHMS.ES256, "kid": self.key_id}
        claims = {"iss": self.team_id, "iat": issued_at}
        signing_input = _b64_json(header) + b"." + _b64_json(claims)

        try:
            signature = key.sign(signing_input)
        except Exception as e:
            raise CryptoError(f"Falha ao assinar token APNs: {e}") from e

        return (signing_input + b"." + base64url_encode(signature)).decode("ascii")
