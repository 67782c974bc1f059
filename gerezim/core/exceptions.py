"""
Error taxonomy shared by the state managers, clients and views.

Clients translate database, storage and HTTP failures into these classes so the
layers above never see driver-specific exceptions. Each class carries the HTTP
status the API answers with.
"""
from rest_framework import status


class GerezimError(Exception):
    """Base class for every domain error"""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = 'Erro inesperado'

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(GerezimError):
    """Bad user input (empty required field, non-positive value, invalid move)"""
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = 'Dados inválidos'


class NotFoundError(GerezimError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = 'Registro não encontrado'


class FetchError(GerezimError):
    """The backing store could not be read"""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = 'Erro ao carregar dados'


class PersistenceError(GerezimError):
    """The backing store rejected a write or could not be reached"""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = 'Erro ao salvar dados'


class StorageError(PersistenceError):
    """Blob storage upload/delete failure"""
    default_message = 'Erro no armazenamento de arquivos'


class EnrichmentError(GerezimError):
    """
    A secondary lookup failed; the primary record is still usable.
    The board absorbs it, so it never reaches a response on its own.
    """
    default_message = 'Erro ao carregar dados relacionados'


class WebhookError(GerezimError):
    """The concierge webhook endpoint failed or answered with an error"""
    status_code = status.HTTP_502_BAD_GATEWAY
    default_message = 'Erro ao chamar o webhook'
