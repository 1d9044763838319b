# Orchestration exports
from .orchestrator import NewsOrchestrator, Summarizer

__all__ = [
    "NewsOrchestrator",
    "Summarizer",
]
