from .models import WorkItem, ResultRecord, ResultStatus, GenerationOutcome, Credentials, Settings
from .runner import BatchRunner, BatchEvent, CancelToken
from .store import BatchStore

__all__ = [
    'WorkItem',
    'ResultRecord',
    'ResultStatus',
    'GenerationOutcome',
    'Credentials',
    'Settings',
    'BatchRunner',
    'BatchEvent',
    'CancelToken',
    'BatchStore',
]
