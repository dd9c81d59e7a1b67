from __future__ import annotations

TELEGRAM_MAX_TEXT = 4096


def validate_outgoing_text(value: str) -> str:
    v = (value or "").strip()
    if not v:
        raise ValueError("Pesan kosong")
    if len(v) > TELEGRAM_MAX_TEXT:
        raise ValueError(f"Pesan terlalu panjang (maks {TELEGRAM_MAX_TEXT} karakter)")
    return v
