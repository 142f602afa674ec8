"""
Error taxonomy for Bedrock Remote.

Tool errors are recovered locally by the tool dispatcher and handed back to
the model as data. Only provider failures (see bedrock_service.BedrockError)
and precondition failures end an agent loop early.
"""


class ToolError(Exception):
    """Base class for failures a tool reports back to the model."""
    kind = "ToolError"


class AccessDenied(ToolError):
    """A path argument resolves outside the project root."""
    kind = "AccessDenied"


class NotFound(ToolError):
    """The file or directory a tool targets does not exist."""
    kind = "NotFound"


class NoHistory(ToolError):
    """undo_last_write was called with an empty change ledger."""
    kind = "NoHistory"


class FileMissing(ToolError):
    """The file an undo would act on no longer exists."""
    kind = "FileMissing"


class ConfigurationMissing(Exception):
    """No LLM credential is configured."""


class PersistenceError(Exception):
    """Writing the conversation store failed."""
