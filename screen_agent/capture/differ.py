"""Change detection for captured frames.

Screenshots are cheap, vision-model calls are not. Every captured frame is
compared byte-for-byte (via a lossless re-encoding) with the last accepted one,
and only frames that differ are handed downstream.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

from ..core.types import Frame
from ..utils.imaging import encode_png


@dataclass(frozen=True)
class ChangeFingerprint:
    width: int
    height: int
    mode: str
    data: bytes

    def __repr__(self) -> str:
        return f"ChangeFingerprint({self.width}x{self.height} {self.mode}, {len(self.data)} bytes)"


def fingerprint(frame: Frame) -> ChangeFingerprint:
    return ChangeFingerprint(frame.width, frame.height, frame.mode, encode_png(frame))


def changed(
    new: Frame, reference: Optional[ChangeFingerprint]
) -> Tuple[bool, ChangeFingerprint]:
    """Return (changed, fingerprint of `new`).

    No reference (first capture, or the capture target just switched) always
    counts as a change. Otherwise any differing pixel is a change; there is no
    perceptual tolerance.
    """
    new_fp = fingerprint(new)
    if reference is None:
        return True, new_fp
    return new_fp != reference, new_fp
