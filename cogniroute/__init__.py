"""
CogniRoute - Cost-aware LLM orchestration with semantic caching and tree-structured reasoning.

Example:
    >>> from cogniroute.domains.orchestration import CognitiveOrchestrator
    >>> orchestrator = CognitiveOrchestrator(invoker=llm_service)
    >>> result = await orchestrator.process_complex_query("What is 2+2?")
"""

__version__ = "1.0.0"
__all__ = ["__version__"]
