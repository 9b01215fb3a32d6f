"""
Scout Cron — error taxonomy.

Every ``ScoutCronError`` carries the HTTP status the trigger surface answers
with. Store failures stay ``SQLAlchemyError`` and are recovered per stage.
"""


class ScoutCronError(Exception):
    status_code = 500


class ConfigurationError(ScoutCronError):
    status_code = 500


class StoreUnavailableError(ScoutCronError):
    status_code = 503


# ── Manual-trigger selection ────────────────────────────

class TaskSelectionError(ScoutCronError):
    status_code = 400

    def __init__(self, scout_id: str, message: str):
        super().__init__(message)
        self.scout_id = scout_id


class ScoutNotFoundError(TaskSelectionError):
    status_code = 404

    def __init__(self, scout_id: str):
        super().__init__(scout_id, f"Scout {scout_id} not found in database")


class ScoutNotActiveError(TaskSelectionError):
    status_code = 409

    def __init__(self, scout_id: str):
        super().__init__(
            scout_id, f"Scout {scout_id} is not active. Please activate it in the settings."
        )


class ScoutIncompleteError(TaskSelectionError):
    status_code = 422

    def __init__(self, scout_id: str):
        super().__init__(scout_id, f"Scout {scout_id} configuration is not complete")


# ── Collaborators ───────────────────────────────────────

class ExecutionError(ScoutCronError):
    """One scout's execution failed; isolated to that scout's outcome."""


class AccountNotFoundError(ScoutCronError):
    status_code = 404

    def __init__(self, account_id: str):
        super().__init__(f"Account {account_id} not found")
        self.account_id = account_id


class NotificationError(ScoutCronError):
    status_code = 400


class SlackCooldownError(NotificationError):
    status_code = 429

    def __init__(self, remaining_secs: int):
        super().__init__(f"Please wait {remaining_secs} seconds before sending another test")
        self.remaining_secs = remaining_secs


class CredentialProvisioningError(ScoutCronError):
    pass
