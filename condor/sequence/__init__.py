"""Pipeline stages"""

from .base import CancellationToken, Stage, StageDetails, StageKind, StageState
from .status import ProgressChannel
