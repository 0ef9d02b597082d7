"""
Taxonomie des erreurs du bridge.
Les services lèvent ces exceptions; app_setup.exception_handlers les convertit en JSON.
"""
from typing import Any, Dict, List, Optional


class BridgeError(Exception):
    status_code = 500
    reason = "error"

    def __init__(self, detail: str = "", **extra: Any):
        super().__init__(detail)
        self.detail = detail
        self.extra = extra

    def to_dict(self) -> Dict[str, Any]:
        body = {"ok": False, "reason": self.reason, "detail": self.detail}
        body.update(self.extra)
        return body


class ValidationError(BridgeError):
    """Entrée invalide, rejetée avant toute mutation externe."""
    status_code = 400
    reason = "bad_request"


class FunnelDisabled(BridgeError):
    status_code = 409
    reason = "funnel_off"


class NotFound(BridgeError):
    status_code = 404
    reason = "not_found"


class SignatureInvalid(BridgeError):
    status_code = 400
    reason = "sig_verify_failed"


class PaymentDeclined(BridgeError):
    status_code = 402
    reason = "payment_declined"


class DependencyUnavailable(BridgeError):
    """
    Processeur ou système hôte indisponible.
    - not_configured=True: clé/URL absente (500)
    - sinon: l'appel a échoué (502)
    """
    reason = "dependency_unavailable"

    def __init__(self, detail: str = "", *, service: str = "", not_configured: bool = False, **extra: Any):
        super().__init__(detail, service=service, **extra)
        self.service = service
        self.not_configured = not_configured
        self.status_code = 500 if not_configured else 502
        if not_configured:
            self.reason = "not_configured"


class PartialRefundFailure(BridgeError):
    """Remboursement réussi sur certaines charges seulement (réconciliation manuelle)."""
    status_code = 502
    reason = "partial_refund"

    def __init__(
        self,
        detail: str,
        *,
        succeeded: List[Dict[str, Any]],
        failed: List[Dict[str, Any]],
        refund_id: Optional[Any] = None,
    ):
        super().__init__(detail, succeeded=succeeded, failed=failed, refund_id=refund_id)
        self.succeeded = succeeded
        self.failed = failed
        self.refund_id = refund_id
