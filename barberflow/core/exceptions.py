"""
Erros de domínio da API.

Os services levantam estas exceções; o handler registrado em ``main.py``
converte cada uma na resposta HTTP correspondente.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class DomainException(Exception):
    """Base de todos os erros de domínio."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Dados inválidos enviados pelo chamador."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """Horário ocupado, assinatura duplicada, transição inválida."""

    status_code = status.HTTP_409_CONFLICT


class UnauthorizedException(DomainException):
    status_code = status.HTTP_401_UNAUTHORIZED


class ForbiddenException(DomainException):
    status_code = status.HTTP_403_FORBIDDEN


class UpstreamException(DomainException):
    """Falha do processador de pagamento ou de outro serviço externo."""

    status_code = status.HTTP_502_BAD_GATEWAY
