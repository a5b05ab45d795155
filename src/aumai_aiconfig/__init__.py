"""AumAI AIConfig — resolve remotely-managed AI configurations and track usage."""

from aumai_aiconfig.context import Context, flatten
from aumai_aiconfig.core import ConfigResolver, Evaluator, EventRecorder
from aumai_aiconfig.errors import (
    AIConfigError,
    ConfigurationError,
    ContextError,
    FlagFileError,
)
from aumai_aiconfig.memory import InMemoryEvaluator, InMemoryEventRecorder
from aumai_aiconfig.models import (
    AIConfig,
    FeedbackKind,
    Message,
    MetricSummary,
    ModelConfig,
    ProviderConfig,
    TokenUsage,
)
from aumai_aiconfig.templating import render
from aumai_aiconfig.tracker import UsageTracker

__version__ = "1.0.0"

__all__ = [
    "AIConfig",
    "ModelConfig",
    "ProviderConfig",
    "Message",
    "TokenUsage",
    "FeedbackKind",
    "MetricSummary",
    "Context",
    "flatten",
    "render",
    "ConfigResolver",
    "Evaluator",
    "EventRecorder",
    "UsageTracker",
    "InMemoryEvaluator",
    "InMemoryEventRecorder",
    "AIConfigError",
    "ConfigurationError",
    "ContextError",
    "FlagFileError",
]
