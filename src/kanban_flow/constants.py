STATE_DIR_NAME = ".kanban_flow"
BOARD_FILE = "board.yaml"
BOARD_LOCK_FILE = "board.lock"
ACTIVITY_FILE = "activity.jsonl"
CONFIG_FILE = "config.yaml"

STORE_VERSION = 1
LOCK_TIMEOUT = 30  # seconds

DEFAULT_LOG_LEVEL = "INFO"
LOG_LEVEL_ENV_VAR = "KANBAN_FLOW_LOG_LEVEL"

DEFAULT_ACTIVITY_LIMIT = 50
DEFAULT_RENUMBER_STEP = 1.0

ACTION_CREATE = "create"
ACTION_UPDATE = "update"
ACTION_DELETE = "delete"
ACTION_MOVE = "move"
ACTION_ASSIGN = "assign"
ACTION_TYPES = (ACTION_CREATE, ACTION_UPDATE, ACTION_DELETE, ACTION_MOVE, ACTION_ASSIGN)
