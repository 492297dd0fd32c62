# automize/models/__init__.py

from automize.models.user import User
from automize.models.pod import Pod
from automize.models.sheet_snapshot import SheetRefreshSnapshot
from automize.models.snapshot_metric import RefreshSnapshotMetric
from automize.models.api_snapshot import ApiSnapshot
from automize.models.api_record import ApiRecord
from automize.models.form_submission import FormSubmission
from automize.models.rule import WatchtowerRule
from automize.models.alert import WatchtowerAlert
from automize.models.channel_id import WatchtowerChannelId


__all__ = [
    "User",
    "Pod",
    "SheetRefreshSnapshot",
    "RefreshSnapshotMetric",
    "ApiSnapshot",
    "ApiRecord",
    "FormSubmission",
    "WatchtowerRule",
    "WatchtowerAlert",
    "WatchtowerChannelId",
]
