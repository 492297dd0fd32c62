from __future__ import annotations

import hashlib
from typing import Any, Optional


def _norm(value: Any) -> str:
    # solo espacios: "Acme" y "acme" pueden ser cuentas distintas
    if value is None:
        return ""
    return " ".join(str(value).split())


def compute_dedup_key(
    *,
    rule_id: int,
    target_table: str,
    record_key: Optional[Any],
) -> str:
    """
    Identidad de una alerta "abierta": misma regla + misma entidad de la tabla.
    Mientras exista una alerta sin ack con esta llave, no se crea otra.
    """
    payload = "|".join(
        [
            str(int(rule_id)),
            _norm(target_table).lower(),
            _norm(record_key),
        ]
    )
    return hashlib.sha256(payload.encode("utf-8", errors="ignore")).hexdigest()
