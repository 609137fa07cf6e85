from src.orchestrator.quote_orchestrator import QuoteOrchestrator

__all__ = ["QuoteOrchestrator"]
