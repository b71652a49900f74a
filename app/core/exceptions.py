"""Erros do pipeline de push.

Os erros de entrega (transitório / permanente) nunca saem dos adaptadores:
eles viram um ``SendOutcome``. Só configuração, criptografia e falhas na
listagem inicial do banco chegam até a camada HTTP.
"""


class PushError(Exception):
    """Base de todos os erros do serviço de push."""


class ConfigurationError(PushError):
    """Segredo obrigatório ausente (credenciais APNs ou chave VAPID)."""


class CryptoError(PushError):
    """Chave privada ilegível ou falha ao assinar o token."""


class TransientDeliveryError(PushError):
    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code


class PermanentInvalidityError(PushError):
    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code


class StoreError(PushError):
    """Falha ao ler ou escrever no banco (inscrições ou notificações in-app)."""
