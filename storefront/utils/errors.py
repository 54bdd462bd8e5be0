"""
Taxonomie d'erreurs applicatives.
- Chaque erreur porte un status_code HTTP et un message destiné au client.
- Converties en JSON {status, message} par app_setup.exception_handlers.
- status: "fail" pour les 4xx (corrigeable côté client), "error" pour les 5xx.
"""
from typing import Any, Dict, Optional


class AppError(Exception):
    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None, extra: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.extra = extra or {}

    @property
    def status(self) -> str:
        return "fail" if str(self.status_code).startswith("4") else "error"

    def to_dict(self) -> Dict[str, Any]:
        body = {"status": self.status, "message": self.message}
        body.update(self.extra)
        return body


class ValidationError(AppError):
    """Champ manquant/invalide: jamais rejoué, corrigeable par l'utilisateur."""
    status_code = 400


class AuthError(AppError):
    status_code = 401


class SignatureError(AuthError):
    """Signature de webhook invalide: le corps n'est pas traité."""
    status_code = 402


class ForbiddenError(AppError):
    status_code = 403


class NotFoundError(AppError):
    status_code = 404


class ConflictError(AppError):
    """Tentative de paiement en double (verrou d'idempotence déjà posé)."""
    status_code = 400


class UpstreamError(AppError):
    """Échec de la passerelle de paiement, du cache ou de la base."""
    status_code = 500


class PaymentTimeoutError(AppError):
    """
    Budget de temps dépassé (attente du worker ou polling).
    Distinct d'UpstreamError: l'opération peut encore aboutir côté serveur
    (le webhook fera converger l'état).
    """
    status_code = 504


class JobFailedError(UpstreamError):
    """Job terminé en échec après épuisement des tentatives."""
