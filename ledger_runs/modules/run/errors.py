from __future__ import annotations


class RunEngineError(RuntimeError):
    status_code = 400

    def __init__(self, *, code: str, message: str) -> None:
        super().__init__(message)
        self.code = str(code)
        self.message = str(message)

    def as_detail(self) -> dict:
        return {"code": self.code, "message": self.message}


class NotFoundError(RunEngineError):
    status_code = 404


class RunNotFoundError(NotFoundError):
    def __init__(self, run_id: str) -> None:
        super().__init__(code="RUN_NOT_FOUND", message=f"run {run_id} not found")


class SceneNotFoundError(NotFoundError):
    def __init__(self, content_id: str, scene_id: str) -> None:
        super().__init__(code="SCENE_NOT_FOUND", message=f"scene {scene_id} not found in {content_id}")


class RoundNotFoundError(NotFoundError):
    def __init__(self, round_id: str) -> None:
        super().__init__(code="ROUND_NOT_FOUND", message=f"round {round_id} not found")


class ActionNotFoundError(NotFoundError):
    def __init__(self, action_id: str) -> None:
        super().__init__(code="ACTION_NOT_FOUND", message=f"action {action_id} not found")


class ProfileNotFoundError(NotFoundError):
    def __init__(self, user_id: str) -> None:
        super().__init__(code="PROFILE_NOT_FOUND", message=f"profile {user_id} not found")


class CheckpointNotFoundError(NotFoundError):
    def __init__(self, checkpoint_id: object) -> None:
        super().__init__(code="CHECKPOINT_NOT_FOUND", message=f"checkpoint {checkpoint_id} not found")


class TurnViolationError(RunEngineError):
    status_code = 409

    def __init__(self, active_user_id: str) -> None:
        super().__init__(code="NOT_YOUR_TURN", message=f"it is {active_user_id}'s turn")
        self.active_user_id = active_user_id


class DownedViolationError(RunEngineError):
    status_code = 409

    def __init__(self, user_id: str) -> None:
        super().__init__(code="ACTOR_DOWNED", message=f"{user_id} is downed and cannot act")
        self.user_id = user_id
