""".g 문법 파일 로더 (CLI 편의용)"""

from __future__ import annotations
from pathlib    import Path


def load_grammar_text(path: str) -> str:
    """
    문법 원문을 읽는다. BOM 은 떼고 줄바꿈은 '\\n' 으로 통일한다.
    fingerprint 도 이 정규화된 텍스트로 계산하므로 줄바꿈 형식만 다른 파일은 같은 문법으로 본다.
    """
    text = Path(path).read_text(encoding="utf-8-sig")
    return text.replace("\r\n", "\n").replace("\r", "\n")
