"""Protocol layer: frame codec, command builders, block reads and reassembly."""

from .framing import Frame, decode_frame, encode_frame, split_blocks
from .commands import Command, FrameType, build_command
from .reader import BlockReader, read_frames
