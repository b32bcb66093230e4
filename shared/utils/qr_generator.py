"""Utilidades para firmar, verificar y renderizar credenciales QR de tickets"""
import base64
import hashlib
import hmac
import io
import json
import re
import secrets
from dataclasses import dataclass
from typing import Optional

import qrcode

from app.core.config import settings


PAYLOAD_VERSION = "v1"
_SIGNATURE_RE = re.compile(r"^[0-9a-f]{64}$")
_BODY_RE = re.compile(r"^[A-Za-z0-9_-]+$")


class MalformedCredential(ValueError):
    """El payload escaneado no tiene la estructura esperada"""


class InvalidCredentialSignature(ValueError):
    """La firma no corresponde al contenido (alterado o emitido por otro sistema)"""


@dataclass(frozen=True)
class ScanCredential:
    """Credencial efímera, nunca persistida"""
    ticket_id: str
    confirmation_code: str
    issued_at_ms: int
    expires_at_ms: int
    nonce: str

    def is_expired(self, now_ms: int) -> bool:
        return now_ms > self.expires_at_ms

    def to_claims(self) -> dict:
        return {
            "tid": self.ticket_id,
            "cc": self.confirmation_code,
            "iat": self.issued_at_ms,
            "exp": self.expires_at_ms,
            "n": self.nonce,
        }


def new_nonce() -> str:
    """Nonce aleatorio de 128 bits"""
    return secrets.token_hex(16)


def _sign(body: str, secret: Optional[str] = None) -> str:
    if secret is None:
        secret = settings.QR_SECRET
    return hmac.new(
        secret.encode("utf-8"),
        body.encode("ascii"),
        hashlib.sha256
    ).hexdigest()


def encode_credential(credential: ScanCredential, secret: Optional[str] = None) -> str:
    """
    Serializar y firmar una credencial

    Formato: v1.<base64url(json)>.<hmac-sha256 hex>
    La firma cubre el segmento base64 exacto, de modo que cualquier byte
    alterado en el cuerpo o en la firma invalida el payload.
    """
    raw = json.dumps(credential.to_claims(), separators=(",", ":"), sort_keys=True)
    body = base64.urlsafe_b64encode(raw.encode("utf-8")).decode("ascii").rstrip("=")
    return f"{PAYLOAD_VERSION}.{body}.{_sign(body, secret)}"


def decode_credential(payload: str, secret: Optional[str] = None) -> ScanCredential:
    """
    Verificar firma y decodificar un payload escaneado

    No revisa expiración; eso depende del reloj del servidor en quien llama.

    Raises:
        MalformedCredential: estructura inválida
        InvalidCredentialSignature: firma no coincide
    """
    parts = payload.strip().split(".")
    if len(parts) != 3 or parts[0] != PAYLOAD_VERSION or not parts[1]:
        raise MalformedCredential("Invalid QR code format")

    _, body, signature = parts
    # El cuerpo se firma como ASCII: solo alfabeto base64url
    if not _BODY_RE.fullmatch(body) or not _SIGNATURE_RE.fullmatch(signature):
        raise MalformedCredential("Invalid QR code format")

    if not hmac.compare_digest(signature, _sign(body, secret)):
        raise InvalidCredentialSignature("Invalid QR code signature")

    try:
        padded = body + "=" * (-len(body) % 4)
        claims = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")))
        credential = ScanCredential(
            ticket_id=str(claims["tid"]),
            confirmation_code=str(claims["cc"]),
            issued_at_ms=int(claims["iat"]),
            expires_at_ms=int(claims["exp"]),
            nonce=str(claims["n"]),
        )
    except (ValueError, KeyError, TypeError) as e:
        raise MalformedCredential("Invalid QR code format") from e

    return credential


def render_qr_image_base64(qr_data: str) -> str:
    """
    Generar imagen PNG del QR en base64

    Args:
        qr_data: Payload firmado a codificar

    Returns:
        PNG codificado en base64 (sin prefijo data:)
    """
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=8,
        border=2,
    )
    qr.add_data(qr_data)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")
    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return base64.b64encode(buffer.getvalue()).decode("ascii")
