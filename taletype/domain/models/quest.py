"""Quest domain models.

Quest Lifecycle:
    1. new: freshly generated, shown but not yet judged
    2. active: promoted after a short settle delay, sent for judgement
    3. completed / failed: decided by the quest oracle, then replaced

Quests leave the ledger once they are completed or failed; a replacement
takes their slot when the oracle can produce one.
"""

from enum import Enum
from typing import List

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator


class QuestState(str, Enum):
    """Lifecycle state of a quest."""

    NEW = "new"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"


class QuestStub(BaseModel):
    """Quest payload as produced by the quest oracle (no id, no state)."""

    model_config = ConfigDict(populate_by_name=True)

    description: str = Field(min_length=1)
    reward_points: int = Field(
        ge=0,
        validation_alias=AliasChoices("reward_points", "points", "rewardPoints"),
    )


class Quest(BaseModel):
    """A side objective tracked by the quest ledger."""

    id: int
    description: str
    reward_points: int = Field(ge=0)
    state: QuestState = QuestState.NEW


class QuestVerdict(BaseModel):
    """Judgement for one evaluation round.

    Ids present in both lists count as completed.
    """

    model_config = ConfigDict(populate_by_name=True)

    completed_ids: List[int] = Field(
        default_factory=list,
        validation_alias=AliasChoices("completed_ids", "completedQuestIds"),
    )
    failed_ids: List[int] = Field(
        default_factory=list,
        validation_alias=AliasChoices("failed_ids", "failedQuestIds"),
    )

    @model_validator(mode="after")
    def make_disjoint(self) -> "QuestVerdict":
        completed = set(self.completed_ids)
        self.failed_ids = [qid for qid in self.failed_ids if qid not in completed]
        return self

    @property
    def is_empty(self) -> bool:
        return not self.completed_ids and not self.failed_ids


class PointsNotice(BaseModel):
    """Transient "points earned" notification.

    The token changes on every award so identical point totals still
    re-trigger the notification.
    """

    points: int
    token: str
