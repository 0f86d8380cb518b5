VERSION = "0.1.0"

WORKFLOWS_KEY = "workflows"
FIRST_TIME_KEY = "isFirstTime"
PINNED_KEY = "pinnedWorkflows"
BACKUP_IDS_KEY = "backupIds"
HOSTED_KEY = "hostedWorkflows"

# Per-workflow ephemeral keys removed together with the record.
EPHEMERAL_KEY_PREFIXES = ("state", "draft", "draft-team")

TRIGGER_LABEL = "trigger"
DEFAULT_SYNC_INTERVAL = 10 * 60
DEFAULT_GLOBAL_DATA = '{\n\t"key": "value"\n}'


def ephemeral_keys(workflow_id: str) -> list[str]:
    return [f"{prefix}:{workflow_id}" for prefix in EPHEMERAL_KEY_PREFIXES]
