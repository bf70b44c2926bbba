"""
Cortex Runner - one-shot speech-to-text jobs against the Mediator orchestrator
"""
__version__ = "1.0.0"
