from __future__ import annotations

from typing import Optional

from ..types import Frame, UslBool, UslNull, UslNumber, UslText, UslValue

def coerce_boolean(val: UslValue) -> bool:
    """Plain truthiness, before any chaos is applied."""
    match val:
        case UslBool(value=b):
            return b
        case UslNull():
            return False
        case UslNumber(value=num):
            return num != 0
        case UslText(value=s):
            return bool(s)
        case _:
            return True

def current_function_frame(frame: Frame) -> Optional[Frame]:
    """Walk parents to find the nearest function-call frame marker."""
    cur: Optional[Frame] = frame

    while cur is not None:
        if cur.is_function_frame():
            return cur

        cur = cur.parent

    return None
