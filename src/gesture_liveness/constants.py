LANDMARK_COUNT = 21
WRIST_INDEX = 0

# Per-finger landmark indices ordered thumb, index, middle, ring, pinky.
FINGER_TIP_INDICES: tuple[int, ...] = (4, 8, 12, 16, 20)
FINGER_MCP_INDICES: tuple[int, ...] = (1, 5, 9, 13, 17)
FINGER_BASE_INDICES: tuple[int, ...] = (2, 5, 9, 13, 17)

LANDMARK_JOINT_NAMES: tuple[str, ...] = (
    "Wrist",
    "ThumbCMC",
    "ThumbMCP",
    "ThumbIP",
    "ThumbTip",
    "IndexMCP",
    "IndexPIP",
    "IndexDIP",
    "IndexTip",
    "MiddleMCP",
    "MiddlePIP",
    "MiddleDIP",
    "MiddleTip",
    "RingMCP",
    "RingPIP",
    "RingDIP",
    "RingTip",
    "PinkyMCP",
    "PinkyPIP",
    "PinkyDIP",
    "PinkyTip",
)
