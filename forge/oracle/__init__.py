"""Oracle clients for external reasoning calls.

Exports:
    - OracleProtocol, OracleOptions, OracleResult: call contract
    - CliOracle: local CLI subprocess backend
    - HttpOracle: OpenAI-compatible chat completions backend
    - create_oracle: backend selection from Settings
"""

from forge.core.config import Settings
from forge.oracle.cli import CliOracle
from forge.oracle.http import HttpOracle
from forge.oracle.protocols import OracleOptions, OracleProtocol, OracleResult


def create_oracle(settings: Settings) -> OracleProtocol:
    """Build the oracle configured by ``settings.oracle_backend``."""
    if settings.oracle_backend == "http":
        api_key = settings.oracle_api_key.get_secret_value() if settings.oracle_api_key else None
        return HttpOracle(
            base_url=settings.oracle_url,
            default_model=settings.evaluator_model,
            api_key=api_key,
        )
    return CliOracle(
        command=settings.oracle_command,
        default_model=settings.evaluator_model,
    )


__all__ = [
    "CliOracle",
    "HttpOracle",
    "OracleOptions",
    "OracleProtocol",
    "OracleResult",
    "create_oracle",
]
