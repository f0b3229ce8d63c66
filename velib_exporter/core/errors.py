"""Exceções do exporter.

Hierarquia única com raiz em ``VelibError``. ``ConfigError`` é fatal e só
ocorre no arranque; as restantes são erros de ciclo de coleta e nunca
derrubam o processo.
"""


class VelibError(Exception):
    """Raiz de todos os erros do exporter."""


class ConfigError(VelibError):
    """Configuração inválida ou ausente (ex.: token em falta)."""


class NetworkError(VelibError):
    """Falha de transporte ao contactar a API (conexão, DNS, timeout)."""


class UpstreamError(VelibError):
    """A API respondeu com status HTTP fora da faixa 2xx."""

    def __init__(self, status_code: int, url: str = ""):
        self.status_code = int(status_code)
        self.url = url
        super().__init__(f"HTTP {self.status_code} em {url}" if url else f"HTTP {self.status_code}")


class DecodeError(VelibError):
    """Corpo da resposta não é JSON ou não tem o formato esperado."""


class FieldParseError(DecodeError):
    """Um campo específico não pôde ser convertido (ex.: distância em string)."""

    def __init__(self, field: str, raw: object):
        self.field = field
        self.raw = raw
        super().__init__(f"campo {field} inválido: {raw!r}")
