"""Service error taxonomy.

Components raise these typed errors; the API layer is the only place that
turns them into HTTP responses (see ``backend.app.api.errors``). ``message``
is always safe to show to the caller; upstream detail stays in ``detail``.
"""

from backend.app.validation.upload import RejectionReason


class ServiceError(Exception):
    """Base class for all service-level failures."""

    status_code = 500
    default_message = "Desculpe, ocorreu um erro ao processar sua solicitação. Tente novamente."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(ServiceError):
    """Bad input: rejected upload, unsupported plan, malformed request."""

    status_code = 400
    default_message = "Dados da requisição inválidos"


class UploadRejectedError(ValidationError):
    """Upload failed one of the input validator rules."""

    def __init__(self, reason: RejectionReason) -> None:
        super().__init__(reason.message)
        self.reason = reason


class UnsupportedFileTypeError(ValidationError):
    """File suffix does not map to any extraction path."""

    default_message = "Tipo de arquivo não suportado. Use PDF, Word, imagens ou áudio."

    def __init__(self, file_name: str) -> None:
        super().__init__()
        self.file_name = file_name


class InvalidPlanError(ValidationError):
    """Checkout requested for a plan that does not exist."""

    default_message = "Plano inválido"

    def __init__(self, plan: str) -> None:
        super().__init__()
        self.plan = plan


class WebhookSignatureError(ValidationError):
    """Inbound payment event failed signature verification."""

    default_message = "Webhook signature verification failed"


class AccessError(ServiceError):
    """Caller lacks ownership or entitlement."""

    status_code = 403
    default_message = "Acesso negado."


class DocumentNotFoundError(AccessError):
    """Document does not exist or belongs to someone else."""

    status_code = 404
    default_message = "Contrato não encontrado ou acesso negado."


class ProRequiredError(AccessError):
    """Feature requires the pro tier."""

    default_message = "Acesso negado. Esta funcionalidade é exclusiva para assinantes PRO."


class InsufficientCreditsError(AccessError):
    """No analysis credits left."""

    status_code = 402
    default_message = "Créditos insuficientes. Você precisa de mais créditos para continuar."


class RateLimitError(ServiceError):
    """Per-user throttle exceeded."""

    status_code = 429
    default_message = "Muitas tentativas. Tente novamente em alguns minutos."

    def __init__(self, bucket: str, retry_after_seconds: int) -> None:
        super().__init__()
        self.bucket = bucket
        self.retry_after_seconds = retry_after_seconds


class UpstreamError(ServiceError):
    """LLM, transcription or payment provider returned a failure."""

    status_code = 502
    default_message = "Desculpe, não foi possível falar com o serviço de IA. Tente novamente."

    def __init__(self, detail: str, status: int | None = None) -> None:
        super().__init__()
        self.detail = detail
        self.status = status


class ExtractionError(UpstreamError):
    """Upstream call during extraction or chat returned a non-success result."""

    def __init__(self, stage: str, status: int | None, detail: str = "") -> None:
        super().__init__(detail or f"{stage} failed", status=status)
        self.stage = stage


class PaymentProviderError(UpstreamError):
    """Payment provider call failed."""

    default_message = "Erro ao criar sessão de pagamento."


class PersistenceError(ServiceError):
    """A primary storage write failed."""

    status_code = 500


class ConsistencyError(PersistenceError):
    """Version-number collision or missing expected prior version."""

    status_code = 409
    default_message = "O contrato foi alterado por outra solicitação. Tente novamente."
