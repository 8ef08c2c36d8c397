"""auditnav widgets."""

from .breadcrumb import Breadcrumb
from .references import ReferencePanel, ReferencesPanel
from .topic_panel import TopicPanel
from .view_host import TopicViewHost

__all__ = [
    "Breadcrumb",
    "ReferencePanel",
    "ReferencesPanel",
    "TopicPanel",
    "TopicViewHost",
]
