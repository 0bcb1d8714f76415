"""Редактирование payload перед записью в логи (без сырых текстов)."""

import hashlib

REDACTED_TEXT = "<redacted>"


def sha256_hex(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def redact_chat_payload(payload: dict) -> dict:
    p = dict(payload)
    msgs = p.get("messages")
    if isinstance(msgs, list):
        out_msgs = []
        for m in msgs:
            if not isinstance(m, dict):
                continue
            content = m.get("content")
            if isinstance(content, str):
                out_msgs.append(
                    {
                        "role": m.get("role"),
                        "content": REDACTED_TEXT,
                        "content_len": len(content),
                        "content_sha256": sha256_hex(content),
                    }
                )
            else:
                out_msgs.append({"role": m.get("role"), "content": REDACTED_TEXT})
        p["messages"] = out_msgs
    return p


def redact_text(value: str, keep: int = 0) -> dict:
    """Сводка по строке для логов: длина, хэш и (опционально) короткий префикс."""
    out: dict = {"len": len(value), "sha256": sha256_hex(value)}
    if keep > 0:
        out["head"] = value[:keep]
    return out
