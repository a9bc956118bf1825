# errors.py — исключения бота

from typing import Optional


class StoreUnavailable(RuntimeError):
    """Хранилище недоступно (ошибка соединения или транзакции). Внутри не повторяется."""


class ExternalServiceError(Exception):
    """Сбой внешнего шага голосового конвейера: скачивание, анализ, синтез, перекодирование."""


class DownloadError(ExternalServiceError):
    pass


class ApiError(ExternalServiceError):
    def __init__(self, message: str, response_body: Optional[str] = None):
        super().__init__(message)
        self.response_body = response_body


class ParsingError(ExternalServiceError):
    pass


class TranscodeError(ExternalServiceError):
    pass
