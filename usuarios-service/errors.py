class ServiceError(Exception):
    """Erro de domínio convertido em envelope JSON pelo main."""

    status_code = 500
    error_type = "internal"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ServiceError):
    status_code = 400
    error_type = "validation"


class NotFound(ServiceError):
    status_code = 404
    error_type = "not_found"

    def __init__(self, message: str = "Usuário não encontrado"):
        super().__init__(message)


class InvalidBody(ValidationError):
    error_type = "invalid_body"

    def __init__(self, message: str = "Dados inválidos"):
        super().__init__(message)
